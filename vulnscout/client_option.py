"""Options of the command that scans through a remote server."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from vulnscout.options import (
    ArtifactOption,
    GlobalOption,
    ImageOption,
    ReportOption,
    _flag_list,
    _flag_str,
)

_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~0123456789"
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)


def _canonical_header_key(key: str) -> str:
    """Capitalise each dash-separated part of a valid header name."""
    if not key or any(char not in _TOKEN_CHARS for char in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


def split_custom_headers(headers: Iterable[str]) -> dict[str, str]:
    """Turn "name:value" strings into a header mapping, skipping malformed ones."""
    result: dict[str, str] = {}
    for header in headers:
        name, sep, value = header.partition(":")
        if not sep:
            continue
        result[_canonical_header_key(name)] = value
    return result


@dataclass
class ClientOption:
    """All option groups accepted by the client command."""

    global_option: GlobalOption = field(default_factory=GlobalOption)
    artifact: ArtifactOption = field(default_factory=ArtifactOption)
    image: ImageOption = field(default_factory=ImageOption)
    report: ReportOption = field(default_factory=ReportOption)

    remote_addr: str = ""
    token: str = ""
    token_header: str = ""
    custom_header_flags: list[str] = field(default_factory=list)

    # populated by init()
    custom_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any], args: Sequence[str]) -> ClientOption:
        return cls(
            global_option=GlobalOption.from_flags(flags, args),
            artifact=ArtifactOption.from_flags(flags),
            image=ImageOption.from_flags(flags),
            report=ReportOption.from_flags(flags),
            remote_addr=_flag_str(flags, "remote"),
            token=_flag_str(flags, "token"),
            token_header=_flag_str(flags, "token-header"),
            custom_header_flags=_flag_list(flags, "custom-headers"),
        )

    @property
    def logger(self) -> logging.Logger:
        return self.global_option.logger

    def init(self) -> None:
        """Build the request headers and validate the report and artifact options."""
        # --clear-cache doesn't conduct the scan
        if self.artifact.clear_cache:
            return

        self.custom_headers = split_custom_headers(self.custom_header_flags)
        if self.token:
            self.custom_headers[_canonical_header_key(self.token_header)] = self.token

        self.report.init(self.logger)
        self.artifact.init(self.global_option.args, self.logger)