from __future__ import annotations

import logging
import sys
from typing import Any

from .base import Logger

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s %(message)s"


class ConsoleLogger(Logger):
    """Logger writing ``message key=value ...`` lines to stderr via ``logging``."""

    def __init__(self, name: str = "zipload", level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(_FORMAT))
            self._logger.addHandler(handler)
        self._logger.propagate = False

    @property
    def name(self) -> str:
        return self._logger.name

    def set_level(self, level: int) -> None:
        self._logger.setLevel(level)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)

    def _log(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, format_fields(message, fields))


def format_fields(message: str, fields: dict[str, Any]) -> str:
    """Render ``message`` followed by ``key=value`` pairs.

    ``event`` repeats the message in most calls and is dropped when equal.
    Values containing whitespace are quoted.
    """
    parts = [message]
    for key, value in fields.items():
        if key == "event" and value == message:
            continue
        text = str(value)
        if not text or any(ch.isspace() for ch in text):
            text = repr(text)
        parts.append(f"{key}={text}")
    return " ".join(parts)
