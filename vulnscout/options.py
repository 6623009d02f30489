"""Command-line option groups shared by the scanning commands."""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum, IntEnum
from typing import IO, Any

LOGGER_NAME = "vulnscout"


class OptionError(Exception):
    """Raised when command-line options are invalid or inconsistent."""


class UsageRequested(Exception):
    """Raised when a command was started without anything to work on.

    The caller is expected to show the command's help and exit successfully.
    """


class Severity(IntEnum):
    """Vulnerability severity, ordered from least to most severe."""

    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def parse(cls, name: str) -> Severity:
        """Return the severity with exactly this name."""
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"unknown severity: {name}") from None

    def __str__(self) -> str:
        return self.name


class VulnType(str, Enum):
    """Kinds of packages whose vulnerabilities are reported."""

    OS = "os"
    LIBRARY = "library"


class SecurityCheck(str, Enum):
    """Kinds of security checks a scan can run."""

    VULNERABILITY = "vuln"
    CONFIG = "config"


def _flag_str(flags: Mapping[str, Any], name: str) -> str:
    value = flags.get(name)
    return "" if value is None else str(value)


def _flag_bool(flags: Mapping[str, Any], name: str) -> bool:
    return bool(flags.get(name, False))


def _flag_int(flags: Mapping[str, Any], name: str) -> int:
    value = flags.get(name)
    return 0 if value is None else int(value)


def _flag_list(flags: Mapping[str, Any], name: str) -> list[str]:
    value = flags.get(name)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _flag_duration(flags: Mapping[str, Any], name: str) -> timedelta:
    value = flags.get(name)
    if value is None:
        return timedelta(0)
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=float(value))


def _new_logger(debug: bool, quiet: bool) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if quiet:
        logger.setLevel(logging.ERROR)
    elif debug:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)
    return logger


def split_severity(logger: logging.Logger, severity: str) -> list[Severity]:
    """Parse a comma-separated severity list; unknown names become UNKNOWN."""
    logger.debug("Severities: %s", severity)
    severities = []
    for name in severity.split(","):
        try:
            severities.append(Severity.parse(name))
        except ValueError as exc:
            logger.warning("unknown severity option: %s", exc)
            severities.append(Severity.UNKNOWN)
    return severities


@dataclass
class GlobalOption:
    """Options that every command accepts."""

    args: list[str] = field(default_factory=list)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger(LOGGER_NAME), compare=False, repr=False
    )
    app_version: str = ""
    quiet: bool = False
    debug: bool = False
    cache_dir: str = ""

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any], args: Sequence[str]) -> GlobalOption:
        quiet = _flag_bool(flags, "quiet")
        debug = _flag_bool(flags, "debug")
        return cls(
            args=list(args),
            logger=_new_logger(debug, quiet),
            app_version=_flag_str(flags, "app-version"),
            quiet=quiet,
            debug=debug,
            cache_dir=_flag_str(flags, "cache-dir"),
        )


@dataclass
class ArtifactOption:
    """Options for scanning a single artifact."""

    input: str = ""
    timeout: timedelta = timedelta(0)
    clear_cache: bool = False
    skip_dirs: list[str] = field(default_factory=list)
    skip_files: list[str] = field(default_factory=list)
    target: str = ""

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> ArtifactOption:
        return cls(
            input=_flag_str(flags, "input"),
            timeout=_flag_duration(flags, "timeout"),
            clear_cache=_flag_bool(flags, "clear-cache"),
            skip_files=_flag_list(flags, "skip-files"),
            skip_dirs=_flag_list(flags, "skip-dirs"),
        )

    def init(self, args: Sequence[str], logger: logging.Logger) -> None:
        """Pick the scan target from the positional arguments."""
        if not self.input and not args:
            logger.debug("vulnscout requires at least 1 argument or --input option")
            raise UsageRequested("a target or --input is required")
        if len(args) > 1:
            logger.error("multiple targets cannot be specified")
            raise OptionError("arguments error")
        if not self.input:
            self.target = args[0]


@dataclass
class CacheOption:
    """Options selecting the cache backend."""

    cache_backend: str = ""

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> CacheOption:
        return cls(cache_backend=_flag_str(flags, "cache-backend"))

    def init(self) -> None:
        """Check that the backend is "fs", a redis:// URL, or empty."""
        backend = self.cache_backend
        if not backend.startswith("redis://") and backend not in ("fs", ""):
            raise OptionError(f"unsupported cache backend: {backend}")


@dataclass
class DBOption:
    """Options controlling the vulnerability database."""

    reset: bool = False
    download_db_only: bool = False
    skip_update: bool = False
    light: bool = False
    no_progress: bool = False

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> DBOption:
        return cls(
            reset=_flag_bool(flags, "reset"),
            download_db_only=_flag_bool(flags, "download-db-only"),
            skip_update=_flag_bool(flags, "skip-update"),
            light=_flag_bool(flags, "light"),
            no_progress=_flag_bool(flags, "no-progress"),
        )

    def init(self) -> None:
        if self.skip_update and self.download_db_only:
            raise OptionError(
                "--skip-update and --download-db-only options can not be specified both"
            )


@dataclass
class ImageOption:
    """Options specific to image scanning."""

    scan_removed_pkgs: bool = False
    list_all_pkgs: bool = False

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> ImageOption:
        return cls(
            scan_removed_pkgs=_flag_bool(flags, "removed-pkgs"),
            list_all_pkgs=_flag_bool(flags, "list-all-pkgs"),
        )


@dataclass
class ReportOption:
    """Options for filtering and writing scan results.

    The ``*_flag`` and ``output_path`` fields hold raw flag values;
    ``init`` turns them into the parsed lists and the output stream.
    """

    format: str = ""
    template: str = ""
    ignore_file: str = ""
    ignore_unfixed: bool = False
    exit_code: int = 0
    ignore_policy: str = ""

    vuln_type_flag: str = ""
    security_checks_flag: str = ""
    output_path: str = ""
    severity_flag: str = ""

    vuln_type: list[VulnType] = field(default_factory=list)
    security_checks: list[SecurityCheck] = field(default_factory=list)
    output: IO[str] | None = None
    severities: list[Severity] = field(default_factory=list)

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> ReportOption:
        return cls(
            output_path=_flag_str(flags, "output"),
            format=_flag_str(flags, "format"),
            template=_flag_str(flags, "template"),
            ignore_policy=_flag_str(flags, "ignore-policy"),
            vuln_type_flag=_flag_str(flags, "vuln-type"),
            security_checks_flag=_flag_str(flags, "security-checks"),
            severity_flag=_flag_str(flags, "severity"),
            ignore_file=_flag_str(flags, "ignorefile"),
            ignore_unfixed=_flag_bool(flags, "ignore-unfixed"),
            exit_code=_flag_int(flags, "exit-code"),
        )

    def init(self, logger: logging.Logger) -> None:
        """Validate the flags and populate the parsed fields."""
        if self.template:
            if not self.format:
                logger.warning(
                    "--template is ignored because --format template is not specified. "
                    "Use --template option with --format template option."
                )
            elif self.format != "template":
                logger.warning(
                    "--template is ignored because --format %s is specified. "
                    "Use --template option with --format template option.",
                    self.format,
                )
        if self.format == "template" and not self.template:
            logger.warning(
                "--format template is ignored because --template not is specified. "
                "Specify --template option when you use --format template."
            )

        self.severities = split_severity(logger, self.severity_flag)

        for name in self.vuln_type_flag.split(","):
            try:
                self.vuln_type.append(VulnType(name))
            except ValueError:
                raise OptionError(
                    f"vuln type: unknown vulnerability type ({name})"
                ) from None

        for name in self.security_checks_flag.split(","):
            try:
                self.security_checks.append(SecurityCheck(name))
            except ValueError:
                raise OptionError(
                    f"security checks: unknown security check ({name})"
                ) from None

        self.severity_flag = ""
        self.vuln_type_flag = ""
        self.security_checks_flag = ""

        if self.output_path:
            try:
                self.output = open(self.output_path, "w", encoding="utf-8")
            except OSError as exc:
                raise OptionError(f"failed to create an output file: {exc}") from exc
        else:
            self.output = sys.stdout