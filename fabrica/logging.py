"""Logging for fabrica.

Console lines look like a task runner's log:

    [14:02:11] Starting 'styles'...
    [14:02:11] Finished 'styles' after 84 ms
    [14:02:12] WARNING styles lint: main.css:3: empty rule

Only warnings and errors carry their level. The optional log file keeps
the full record with level and logger name.
"""

import logging
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "fabrica"


class TaskLogFormatter(logging.Formatter):
    """``[HH:MM:SS] message``, with the level name added from WARNING up."""

    def __init__(self):
        super().__init__("[%(asctime)s] %(message)s", "%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if record.levelno < logging.WARNING:
            return line
        stamp, _, message = line.partition('] ')
        return f"{stamp}] {record.levelname} {message}"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for a fabrica module, e.g. get_logger('tasks') -> fabrica.tasks"""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def configure_logging(*, verbose: bool = False,
                      log_file: Optional[Path] = None) -> logging.Logger:
    """Send fabrica logs to stderr and, optionally, a file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Also append full records to this file
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(TaskLogFormatter())
    logger.addHandler(console)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["TaskLogFormatter", "configure_logging", "get_logger"]
