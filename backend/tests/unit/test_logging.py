# backend/tests/unit/test_logging.py
import json
import logging

import pytest
import structlog

from armelle.config.settings import Settings
from armelle.utils.logging import bind_turn, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_setup_logging_replaces_the_root_handler(root_logger):
    config = Settings(environment="production", log_level="debug")

    setup_logging(config)
    setup_logging(config)

    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert root_logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_plain_loggers_carry_the_bound_turn(root_logger, capsys):
    setup_logging(Settings(environment="production", log_level="INFO"))

    with bind_turn("237690000000", workflow="onboarding"):
        logging.getLogger("armelle.services.test").info("Turn handled for Étienne")
    logging.getLogger("armelle.services.test").info("Outside any turn")

    first, second = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
    assert first["event"] == "Turn handled for Étienne"
    assert first["session_key"] == "237690000000"
    assert first["workflow"] == "onboarding"
    assert first["level"] == "info"
    assert first["logger"] == "armelle.services.test"
    assert "session_key" not in second


def test_bind_turn_is_cleared_on_exit():
    with bind_turn("s1"):
        assert structlog.contextvars.get_contextvars()["session_key"] == "s1"
    assert "session_key" not in structlog.contextvars.get_contextvars()
