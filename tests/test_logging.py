import logging

import pytest

from canvasslog.utils import logging as log_utils
from canvasslog.utils.logging import get_logger, operation_logger


def test_operation_logger_binds_and_restores_context():
    before = log_utils.correlation_id.get()

    with operation_logger("import_homes", "corr-1", rows=3) as op_logger:
        op_logger.with_canvasser("user-1")
        assert log_utils.correlation_id.get() == "corr-1"
        assert log_utils.operation_context.get() == {
            "operation": "import_homes",
            "rows": 3,
            "canvasser_id": "user-1",
        }

    assert log_utils.correlation_id.get() == before
    assert log_utils.operation_context.get() is None


def test_operation_logger_reraises():
    with pytest.raises(RuntimeError):
        with operation_logger("log_visit"):
            raise RuntimeError("boom")

    assert log_utils.operation_context.get() is None


def test_correlation_processor_adds_id():
    with operation_logger("dashboard", "corr-2"):
        event = log_utils.CorrelationIDProcessor()(None, "info", {"event": "x"})

    assert event["correlation_id"] == "corr-2"


def test_get_logger_wraps_structlog():
    logger = get_logger("canvasslog.test")
    assert logger.with_correlation_id("corr-3") is logger
    assert log_utils.correlation_id.get() == "corr-3"


@pytest.mark.parametrize(
    "verbose, quiet, configured, expected",
    [
        (False, False, "warning", logging.WARNING),
        (False, False, "DEBUG", logging.DEBUG),
        (False, False, "chatty", logging.INFO),
        (True, False, "ERROR", logging.DEBUG),
        (False, True, "DEBUG", logging.WARNING),
    ],
)
def test_configured_log_level_unless_overridden(verbose, quiet, configured, expected):
    assert log_utils.resolve_log_level(verbose, quiet, configured) == expected
