from __future__ import annotations

import logging

from margin_analyzer.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    enable_debug,
    get_logger,
    log_summary,
    reset_logging,
    setup_logging,
)


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("margin_analyzer.test", level, __file__, 1, msg, None, None)


def test_setup_logging_creates_logger_with_labeled_formatter():
    """setup_logging configures the package logger with one labeled handler."""
    logger = setup_logging()

    assert logger.name == LOGGER_NAME == "margin_analyzer"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    first = setup_logging()
    assert setup_logging() is first
    assert get_logger() is first
    assert len(first.handlers) == 1


def test_reset_logging_does_not_duplicate_handlers():
    setup_logging()
    reset_logging()
    logger = setup_logging()
    assert len(logger.handlers) == 1


def test_labeled_prefixes():
    fmt = LabeledFormatter()
    assert fmt.format(_record(logging.INFO, "hello")) == "INFO hello"
    assert fmt.format(_record(logging.WARNING, "careful")) == "WARN careful"
    assert fmt.format(_record(logging.ERROR, "boom")) == "ERROR boom"
    assert fmt.format(_record(SUMMARY_LEVEL, "products=1")) == "SUMMARY products=1"
    assert fmt.format(_record(logging.DEBUG, "details")) == "DEBUG details"


def test_child_loggers_share_handler(capsys):
    setup_logging()
    logging.getLogger("margin_analyzer.services.importer").warning("store is full")
    assert "WARN store is full" in capsys.readouterr().out


def test_log_summary_writes_summary_label(capsys):
    log_summary("products=3 avg_margin=55 low=1 medium=1 high=1")
    out = capsys.readouterr().out
    assert out.strip() == "SUMMARY products=3 avg_margin=55 low=1 medium=1 high=1"


def test_debug_hidden_until_enabled(capsys):
    logger = get_logger()
    logger.debug("invisible")
    assert "invisible" not in capsys.readouterr().out

    enable_debug()
    logger.debug("visible")
    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG visible" in out
