from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int) and not isinstance(level, bool):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_command_logger(
    name: str = "commandkit",
    *,
    level: str | int = "INFO",
    log_dir: str | None = None,
) -> tuple[logging.Logger, str | None]:
    """
    Configure the framework logger.

    Messages at `level` and above go to stderr; when `log_dir` is given, every
    message (DEBUG and up) is also written to `<log_dir>/<name>_oplog.log`.
    Returns the logger and the log file path (or None).
    """

    stream_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(stream_level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file: str | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"{name}_oplog.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG if log_file else stream_level)
    logger.propagate = False

    logger.info("Command logging initialized (level=%s)", logging.getLevelName(stream_level))
    if log_file:
        logger.debug("Command log file: %s", log_file)
    return logger, log_file
