"""Logging utilities for comment2code."""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Deque, List, Tuple

_LOGGER_NAME = "comment2code"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the comment2code hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the comment2code logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(
        logging.Formatter("[comment2code] %(levelname)s %(message)s")
    )
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


class Notifier:
    """User-facing notifications routed through the logging hierarchy.

    Editors surface these messages (the HTTP host returns the recent history);
    the console host simply sees them as log records.
    """

    PREFIX = "[comment2code]"

    def __init__(self, *, enabled: bool = True, history_size: int = 50) -> None:
        self.enabled = enabled
        self._logger = get_logger("notify")
        self._history: Deque[Tuple[int, str]] = deque(maxlen=history_size)

    def __call__(self, message: str, level: int = logging.INFO) -> None:
        self._history.append((level, message))
        if not self.enabled:
            return
        self._logger.log(level, "%s %s", self.PREFIX, message)

    def info(self, message: str) -> None:
        self(message, logging.INFO)

    def warning(self, message: str) -> None:
        self(message, logging.WARNING)

    def error(self, message: str) -> None:
        self(message, logging.ERROR)

    def history(self) -> List[Tuple[int, str]]:
        return list(self._history)

    def drain(self) -> List[Tuple[int, str]]:
        """Return and forget the recorded notifications."""
        items = list(self._history)
        self._history.clear()
        return items


__all__ = ["Notifier", "configure_logging", "get_logger"]
