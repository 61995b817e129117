import io
import json
import logging

import structlog

from productivity_insights.logging_config import PACKAGE_LOGGER, get_logger, setup_logging


def _reset(package_logger):
    structlog.reset_defaults()
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


def test_json_output_goes_to_package_handler_only():
    stream = io.StringIO()
    root_handlers = list(logging.getLogger().handlers)
    package_logger = setup_logging(level="INFO", json_output=True, stream=stream)
    try:
        get_logger("productivity_insights.collection").info("collection_cycle", records=3)
        get_logger("productivity_insights.collection").debug("hidden_below_level")
    finally:
        _reset(package_logger)

    lines = [line for line in stream.getvalue().splitlines() if line]
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["event"] == "collection_cycle"
    assert event["records"] == 3
    assert event["level"] == "info"
    assert event["logger"] == "productivity_insights.collection"
    assert logging.getLogger().handlers == root_handlers
    assert package_logger.name == PACKAGE_LOGGER


def test_setup_twice_keeps_a_single_handler(monkeypatch):
    monkeypatch.setenv("PRODUCTIVITY_INSIGHTS_LOG_LEVEL", "WARNING")
    package_logger = setup_logging(stream=io.StringIO())
    try:
        setup_logging(stream=io.StringIO())
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.WARNING
    finally:
        _reset(package_logger)
