"""
Tests for structured logging setup.
"""

import io
import json
import logging

import pytest
from pythonjsonlogger.json import JsonFormatter

from forward_proxy.core.config import ProxyConfig
from forward_proxy.core.logging_config import CustomJsonFormatter, get_logger, setup_logging


@pytest.fixture
def restore_logger():
    """Put the named test logger back the way it was."""
    name = "forward_proxy.tests.logging"
    logger = logging.getLogger(name)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield name
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_json_output_carries_event_fields(restore_logger):
    stream = io.StringIO()
    logger = setup_logging(name=restore_logger, level="INFO", json_format=True, log_file="", stream=stream)

    logger.info("Proxy target set", extra={"event": "proxy.target_set", "proxy": "0xabc"})

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["message"] == "Proxy target set"
    assert record["event"] == "proxy.target_set"
    assert record["proxy"] == "0xabc"
    assert record["level"] == "info"
    assert record["service"] == "forward_proxy"
    assert record["timestamp"]
    assert record["source"]["function"] == "test_json_output_carries_event_fields"


def test_text_output(restore_logger):
    stream = io.StringIO()
    logger = setup_logging(name=restore_logger, level="WARNING", json_format=False, log_file="", stream=stream)

    logger.info("hidden")
    logger.warning("Access denied")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "WARNING" in output
    assert "Access denied" in output


def test_setup_replaces_handlers(restore_logger):
    logger = setup_logging(name=restore_logger, level="INFO", log_file="", stream=io.StringIO())
    logger = setup_logging(name=restore_logger, level="INFO", log_file="", stream=io.StringIO())
    assert len(logger.handlers) == 1


def test_file_handler_writes_json(restore_logger, tmp_path):
    log_file = tmp_path / "logs" / "proxy.log"
    logger = setup_logging(
        name=restore_logger,
        level="INFO",
        json_format=False,
        log_file=str(log_file),
        stream=io.StringIO(),
    )

    logger.info("Ward added", extra={"event": "proxy.ward_added"})
    for handler in logger.handlers:
        handler.flush()

    record = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert record["event"] == "proxy.ward_added"
    for handler in logger.handlers:
        handler.close()


def test_get_logger_reuses_configured_logger(restore_logger):
    configured = setup_logging(name=restore_logger, level="INFO", log_file="", stream=io.StringIO())
    assert get_logger(restore_logger) is configured
    assert len(configured.handlers) == 1


def test_formatter_service_name():
    formatter = CustomJsonFormatter(service_name="relay")
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
    payload = json.loads(formatter.format(record))
    assert payload["service"] == "relay"
    assert payload["level"] == "error"


def test_settings_supply_defaults(restore_logger):
    stream = io.StringIO()
    settings = ProxyConfig(log_level="WARNING", log_json=True, log_file="")
    logger = setup_logging(name=restore_logger, stream=stream, settings=settings)

    logger.info("hidden")
    logger.warning("Access denied", extra={"event": "proxy.access_denied"})

    lines = stream.getvalue().strip().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["event"] == "proxy.access_denied"


def test_formatter_uses_current_json_module():
    assert issubclass(CustomJsonFormatter, JsonFormatter)
