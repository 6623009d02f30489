import logging
import sys

import pytest

from vulnscout.artifact_option import Option
from vulnscout.options import (
    OptionError,
    SecurityCheck,
    Severity,
    UsageRequested,
    VulnType,
)

DEFAULT_FLAGS = {
    "quiet": False,
    "no-progress": False,
    "reset": False,
    "skip-update": False,
    "download-db-only": False,
    "auto-refresh": False,
    "severity": "CRITICAL",
    "vuln-type": "os,library",
    "security-checks": "vuln",
    "only-update": "",
    "template": "",
    "format": "",
}

DEPRECATION_MESSAGE = (
    "--only-update, --refresh and --auto-refresh are unnecessary and ignored now. "
    "These commands will be removed in the next version."
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def captured():
    logger = logging.getLogger("vulnscout-test-artifact-option")
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(logging.INFO)
    handler = _ListHandler()
    logger.addHandler(handler)
    yield logger, handler.messages
    logger.handlers.clear()


def _make(flags, args, logger):
    opt = Option.from_flags({**DEFAULT_FLAGS, **flags}, args)
    opt.global_option.logger = logger
    return opt


@pytest.mark.parametrize(
    "flags, args, logs, severities, vuln_types, target",
    [
        pytest.param(
            {"severity": "CRITICAL", "vuln-type": "os", "quiet": True},
            ["alpine:3.10"],
            [],
            [Severity.CRITICAL],
            [VulnType.OS],
            "alpine:3.10",
            id="happy path",
        ),
        pytest.param(
            {"reset": True},
            [],
            [],
            [Severity.CRITICAL],
            [VulnType.OS, VulnType.LIBRARY],
            "",
            id="happy path: reset",
        ),
        pytest.param(
            {"severity": "CRITICAL,INVALID"},
            ["centos:7"],
            ["unknown severity option: unknown severity: INVALID"],
            [Severity.CRITICAL, Severity.UNKNOWN],
            [VulnType.OS, VulnType.LIBRARY],
            "centos:7",
            id="unknown severity",
        ),
        pytest.param(
            {"only-update": "alpine", "severity": "LOW"},
            ["debian:buster"],
            [DEPRECATION_MESSAGE],
            [Severity.LOW],
            [VulnType.OS, VulnType.LIBRARY],
            "debian:buster",
            id="deprecated options",
        ),
    ],
)
def test_init_happy_paths(captured, flags, args, logs, severities, vuln_types, target):
    logger, messages = captured
    opt = _make(flags, args, logger)
    opt.init()
    assert messages == logs
    assert opt.report.severities == severities
    assert opt.report.vuln_type == vuln_types
    assert opt.report.security_checks == [SecurityCheck.VULNERABILITY]
    assert opt.report.output is sys.stdout
    assert opt.artifact.target == target


def test_init_happy_path_quiet_flag(captured):
    logger, _ = captured
    opt = _make({"quiet": True}, ["alpine:3.10"], logger)
    opt.init()
    assert opt.global_option.quiet is True
    assert opt.db.reset is False


def test_init_reset_sets_db_option(captured):
    logger, _ = captured
    opt = _make({"reset": True}, [], logger)
    opt.init()
    assert opt.db.reset is True
    assert opt.skip_scan() is True


def test_init_deprecated_keeps_only_update(captured):
    logger, _ = captured
    opt = _make({"only-update": "alpine", "severity": "LOW"}, ["debian:buster"], logger)
    opt.init()
    assert opt.only_update == "alpine"


def test_init_template_without_format(captured):
    logger, messages = captured
    opt = _make({"template": "@contrib/gitlab.tpl"}, ["gitlab/gitlab-ce:12.7.2-ce.0"], logger)
    opt.init()
    assert messages == [
        "--template is ignored because --format template is not specified. "
        "Use --template option with --format template option."
    ]
    assert opt.report.template == "@contrib/gitlab.tpl"
    assert opt.report.severities == [Severity.CRITICAL]
    assert opt.artifact.target == "gitlab/gitlab-ce:12.7.2-ce.0"


def test_init_template_with_json_format(captured):
    logger, messages = captured
    opt = _make(
        {"format": "json", "template": "@contrib/gitlab.tpl"},
        ["gitlab/gitlab-ce:12.7.2-ce.0"],
        logger,
    )
    opt.init()
    assert messages == [
        "--template is ignored because --format json is specified. "
        "Use --template option with --format template option."
    ]
    assert opt.report.format == "json"
    assert opt.report.template == "@contrib/gitlab.tpl"
    assert opt.artifact.target == "gitlab/gitlab-ce:12.7.2-ce.0"


def test_init_format_template_without_template(captured):
    logger, messages = captured
    opt = _make(
        {"format": "template", "severity": "MEDIUM"},
        ["gitlab/gitlab-ce:12.7.2-ce.0"],
        logger,
    )
    opt.init()
    assert messages == [
        "--format template is ignored because --template not is specified. "
        "Specify --template option when you use --format template."
    ]
    assert opt.report.format == "template"
    assert opt.report.severities == [Severity.MEDIUM]
    assert opt.report.vuln_type == [VulnType.OS, VulnType.LIBRARY]


def test_init_skip_update_and_download_db_only(captured):
    logger, messages = captured
    opt = _make({"skip-update": True, "download-db-only": True}, ["alpine:3.10"], logger)
    with pytest.raises(
        OptionError,
        match="--skip-update and --download-db-only options can not be specified both",
    ):
        opt.init()
    assert messages == []


def test_init_multiple_targets(captured):
    logger, messages = captured
    opt = _make({}, ["centos:7", "alpine:3.10"], logger)
    with pytest.raises(OptionError, match="arguments error"):
        opt.init()
    assert messages == ["multiple targets cannot be specified"]


def test_init_without_target_requests_usage(captured):
    logger, _ = captured
    opt = _make({}, [], logger)
    with pytest.raises(UsageRequested):
        opt.init()


def test_init_refresh_flag_warns(captured):
    logger, messages = captured
    opt = _make({"refresh": True, "severity": "HIGH"}, ["alpine:3.10"], logger)
    opt.init()
    assert messages == [DEPRECATION_MESSAGE]
    assert opt.artifact.target == "alpine:3.10"
    assert opt.report.severities == [Severity.HIGH]
    assert opt.skip_scan() is False


def test_init_unsupported_cache_backend(captured):
    logger, _ = captured
    opt = _make({"cache-backend": "unknown://"}, ["alpine:3.10"], logger)
    with pytest.raises(OptionError, match="unsupported cache backend: unknown://"):
        opt.init()


@pytest.mark.parametrize(
    "flags, expected",
    [
        ({}, False),
        ({"reset": True}, True),
        ({"download-db-only": True}, True),
        ({"clear-cache": True}, True),
    ],
)
def test_skip_scan(flags, expected):
    opt = Option.from_flags({**DEFAULT_FLAGS, **flags}, [])
    assert opt.skip_scan() is expected


def test_clear_cache_skips_target_check(captured):
    logger, _ = captured
    opt = _make({"clear-cache": True}, [], logger)
    opt.init()
    assert opt.artifact.target == ""
    assert opt.artifact.clear_cache is True