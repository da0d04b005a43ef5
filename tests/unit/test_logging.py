"""Unit tests for the logging configuration module."""

import json
import logging

import pytest
import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

from oauth_server.utils.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_logging():
    """Fixture to reset logging configuration before and after each test."""
    original_handlers = list(logging.root.handlers)
    original_level = logging.root.level
    original_structlog_config = structlog.get_config()

    yield

    logging.root.handlers[:] = original_handlers
    logging.root.setLevel(original_level)
    structlog.configure(**original_structlog_config)


def _last_line(capsys: pytest.CaptureFixture[str]) -> str:
    return capsys.readouterr().out.strip().splitlines()[-1]


def _root_formatter() -> structlog.stdlib.ProcessorFormatter:
    formatters = [
        h.formatter
        for h in logging.getLogger().handlers
        if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)
    ]
    assert len(formatters) == 1
    return formatters[0]


def test_configure_logging_info_level():
    """Test that logging renders JSON at INFO level."""
    configure_logging(log_level="INFO")

    assert logging.getLevelName(logging.getLogger().level) == "INFO"
    renderer = _root_formatter().processors[-1]
    assert isinstance(renderer, JSONRenderer)


def test_configure_logging_debug_level():
    """Test that logging renders for the console at DEBUG level."""
    configure_logging(log_level="debug")

    assert logging.getLevelName(logging.getLogger().level) == "DEBUG"
    renderer = _root_formatter().processors[-1]
    assert isinstance(renderer, ConsoleRenderer)


def test_structlog_leaves_rendering_to_the_formatter():
    configure_logging(log_level="INFO")
    processors = structlog.get_config()["processors"]
    assert processors[-1] is structlog.stdlib.ProcessorFormatter.wrap_for_formatter
    assert not any(isinstance(p, (JSONRenderer, ConsoleRenderer)) for p in processors)


def test_event_fields_are_top_level_json(capsys: pytest.CaptureFixture[str]):
    configure_logging(log_level="INFO")
    get_logger("oauth_server.auth.tokens").info(
        "client_credentials_token_issued", client_id="c1", token_hash="abcd1234"
    )

    record = json.loads(_last_line(capsys))

    assert record["event"] == "client_credentials_token_issued"
    assert record["client_id"] == "c1"
    assert record["token_hash"] == "abcd1234"
    assert record["level"] == "info"
    assert record["logger"] == "oauth_server.auth.tokens"
    assert "timestamp" in record


def test_stdlib_records_are_rendered_as_json(capsys: pytest.CaptureFixture[str]):
    configure_logging(log_level="INFO")
    logging.getLogger("uvicorn.error").warning("Started server process [%d]", 42)

    record = json.loads(_last_line(capsys))

    assert record["event"] == "Started server process [42]"
    assert record["level"] == "warning"
    assert record["logger"] == "uvicorn.error"


def test_records_below_level_are_dropped(capsys: pytest.CaptureFixture[str]):
    configure_logging(log_level="WARNING")
    get_logger("oauth_server.engine").info("oauth_engine_built")
    assert capsys.readouterr().out == ""


def test_debug_output_is_human_readable(capsys: pytest.CaptureFixture[str]):
    configure_logging(log_level="DEBUG")
    get_logger("oauth_server.auth.validation").debug("oauth_token_validated", client_id="c1")

    line = _last_line(capsys)
    assert "oauth_token_validated" in line
    assert "client_id" in line
    with pytest.raises(ValueError):
        json.loads(line)


def test_get_logger_returns_logger():
    """Test that get_logger returns a valid logger instance."""
    configure_logging()
    logger = get_logger("test_logger")
    assert isinstance(logger.bind(), structlog.stdlib.BoundLogger)
