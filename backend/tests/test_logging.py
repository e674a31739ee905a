"""Tests for JSON structured logging."""
import json
import logging


def _record(name: str = "test-service", level: int = logging.INFO, msg: str = "test message",
            exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def test_json_formatter_has_required_fields() -> None:
    """Log output must contain timestamp, level, service, message fields."""
    from portrait_studio.core.logging import JSONFormatter
    parsed = json.loads(JSONFormatter().format(_record("my-service", logging.WARNING, "something happened")))

    assert "timestamp" in parsed
    assert parsed["level"] == "WARNING"
    assert parsed["service"] == "my-service"
    assert parsed["message"] == "something happened"


def test_json_formatter_includes_error_type_on_exception() -> None:
    """Log output should include error_type field when an exception is attached."""
    from portrait_studio.core.logging import JSONFormatter
    try:
        raise ValueError("test error")
    except ValueError:
        import sys
        exc_info = sys.exc_info()

    parsed = json.loads(JSONFormatter().format(_record(level=logging.ERROR, exc_info=exc_info)))

    assert parsed["error_type"] == "ValueError"
    assert "test error" in parsed["error_detail"]


def test_json_formatter_copies_slot_context() -> None:
    """Slot and batch extras are included in the payload."""
    from portrait_studio.core.logging import JSONFormatter
    record = _record()
    record.slot = 2
    record.batch = "edit"

    parsed = json.loads(JSONFormatter().format(record))

    assert parsed["slot"] == 2
    assert parsed["batch"] == "edit"


def test_json_formatter_omits_absent_context() -> None:
    from portrait_studio.core.logging import JSONFormatter
    parsed = json.loads(JSONFormatter().format(_record()))
    assert "slot" not in parsed
    assert "batch" not in parsed


def test_setup_logging_returns_logger() -> None:
    """setup_logging() should return a configured Logger instance."""
    from portrait_studio.core.logging import setup_logging
    logger = setup_logging("test-app")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test-app"


def test_setup_logging_is_idempotent() -> None:
    from portrait_studio.core.logging import setup_logging
    first = setup_logging("idempotent-app")
    second = setup_logging("idempotent-app")
    assert first is second
    assert len(second.handlers) == 1
