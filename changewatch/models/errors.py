"""Error types raised by the watcher."""

from enum import Enum
from typing import Optional


class WatcherErrorType(str, Enum):
    """Discriminator for watcher failures."""
    
    CONFIG_ERROR = "config_error"
    """Bad or missing options, raised at construction."""
    
    WATCH_ERROR = "watch_error"
    """The event source could not start, raised from watch()."""


class WatcherError(Exception):
    """
    Base class for all watcher failures.
    
    Carries a human-readable message and, when the failure was caused by
    another exception, that exception as ``cause`` (also chained as
    ``__cause__`` when raised with ``from``).
    """
    
    def __init__(
        self,
        type: WatcherErrorType,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.type = type
        self.message = message
        self.cause = cause
    
    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} ({self.cause})"
        return self.message


class ConfigurationError(WatcherError):
    """Options were missing or invalid."""
    
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(WatcherErrorType.CONFIG_ERROR, message, cause)


class WatchSetupError(WatcherError):
    """The underlying event source failed to start."""
    
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(WatcherErrorType.WATCH_ERROR, message, cause)
