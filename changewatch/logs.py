"""Logging context for watchers.

Watchers log through named child loggers obtained from an explicit
LogManager instead of a process-wide registry lookup. Levels map onto the
stdlib ``logging`` module, with an extra TRACE level below DEBUG for the
per-path diagnostics.
"""

import logging
from typing import Union

from .models import LogLevel

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVELS = {
    LogLevel.TRACE: TRACE,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class ChangeLogger(logging.LoggerAdapter):
    """Logger adapter adding a ``trace`` method."""

    def trace(self, msg, *args, **kwargs) -> None:
        self.log(TRACE, msg, *args, **kwargs)


class LogManager:
    """
    Hands out scoped loggers and controls their thresholds.

    Loggers are children of ``namespace`` and are created on demand the
    first time a name is requested.
    """

    def __init__(self, namespace: str = "changewatch"):
        self.namespace = namespace
        self._loggers: dict[str, ChangeLogger] = {}

    def get_logger(self, name: str) -> ChangeLogger:
        """Get (or create) the logger scoped to ``name``."""
        if name not in self._loggers:
            base = logging.getLogger(f"{self.namespace}.{name}")
            self._loggers[name] = ChangeLogger(base, {})
        return self._loggers[name]

    def set_log_level(self, name: str, level: Union[LogLevel, str]) -> None:
        """
        Set the severity threshold of a named logger.

        Takes effect immediately for every subsequent call on that logger.

        Raises:
            ValueError: If ``level`` is not a known log level
        """
        self.get_logger(name).logger.setLevel(to_logging_level(level))


def to_logging_level(level: Union[LogLevel, str]) -> int:
    """Map a LogLevel (or its string value) to a stdlib logging level."""
    try:
        return _LEVELS[LogLevel(level.lower() if isinstance(level, str) else level)]
    except ValueError:
        raise ValueError(f"Unknown log level: {level!r}") from None
