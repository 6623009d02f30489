"""Options of the commands that scan an artifact locally."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from vulnscout.options import (
    ArtifactOption,
    CacheOption,
    DBOption,
    GlobalOption,
    ImageOption,
    ReportOption,
    _flag_bool,
    _flag_str,
)

DEPRECATION_WARNING = (
    "--only-update, --refresh and --auto-refresh are unnecessary and ignored now. "
    "These commands will be removed in the next version."
)


@dataclass
class Option:
    """All option groups accepted by the image, filesystem and repository commands."""

    global_option: GlobalOption = field(default_factory=GlobalOption)
    artifact: ArtifactOption = field(default_factory=ArtifactOption)
    db: DBOption = field(default_factory=DBOption)
    image: ImageOption = field(default_factory=ImageOption)
    report: ReportOption = field(default_factory=ReportOption)
    cache: CacheOption = field(default_factory=CacheOption)

    # Deprecated flags, accepted and ignored.
    only_update: str = ""
    refresh: bool = False
    auto_refresh: bool = False

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any], args: Sequence[str]) -> Option:
        return cls(
            global_option=GlobalOption.from_flags(flags, args),
            artifact=ArtifactOption.from_flags(flags),
            db=DBOption.from_flags(flags),
            image=ImageOption.from_flags(flags),
            report=ReportOption.from_flags(flags),
            cache=CacheOption.from_flags(flags),
            only_update=_flag_str(flags, "only-update"),
            refresh=_flag_bool(flags, "refresh"),
            auto_refresh=_flag_bool(flags, "auto-refresh"),
        )

    @property
    def logger(self) -> logging.Logger:
        return self.global_option.logger

    def init(self) -> None:
        """Validate every option group and pick the scan target."""
        if self.only_update or self.refresh or self.auto_refresh:
            self.logger.warning(DEPRECATION_WARNING)

        self.report.init(self.logger)
        self.db.init()
        self.cache.init()

        # --clear-cache, --download-db-only and --reset don't conduct the scan
        if self.skip_scan():
            return

        self.artifact.init(self.global_option.args, self.logger)

    def skip_scan(self) -> bool:
        """Return whether the command only maintains the cache or database."""
        return self.artifact.clear_cache or self.db.download_db_only or self.db.reset