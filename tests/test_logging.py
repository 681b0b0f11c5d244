import logging
from pathlib import Path

import pytest

from commandkit import setup_command_logger
from commandkit.logging_utils import LOG_FORMAT


@pytest.fixture
def logger_name():
    name = "commandkit_test_logging"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True


def test_writes_unicode_text_with_utf8_encoding(tmp_path: Path, logger_name):
    logger, log_file = setup_command_logger(logger_name, level="INFO", log_dir=str(tmp_path / "logs"))

    logger.debug("Entry with arrow → and accents é.")
    for handler in logger.handlers:
        handler.flush()

    assert log_file == str(tmp_path / "logs" / f"{logger_name}_oplog.log")
    content = Path(log_file).read_text(encoding="utf-8")
    assert "Command logging initialized (level=INFO)" in content
    assert "| DEBUG | Entry with arrow → and accents é." in content


def test_stream_only_logger_uses_requested_level(logger_name):
    logger, log_file = setup_command_logger(logger_name, level="warning")

    assert log_file is None
    assert logger.level == logging.WARNING
    assert logger.propagate is False
    assert len(logger.handlers) == 1
    assert logger.handlers[0].formatter._fmt == LOG_FORMAT


def test_repeated_setup_replaces_handlers(tmp_path: Path, logger_name):
    setup_command_logger(logger_name, log_dir=str(tmp_path))
    logger, _log_file = setup_command_logger(logger_name, log_dir=str(tmp_path))

    assert len(logger.handlers) == 2


def test_unknown_level_is_rejected(logger_name):
    with pytest.raises(ValueError, match="Unknown log level"):
        setup_command_logger(logger_name, level="LOUD")
