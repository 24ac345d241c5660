"""Core data models for changewatch."""

from .enums import ChangeKind, LogLevel, WATCH_EVENTS
from .errors import WatcherErrorType, WatcherError, ConfigurationError, WatchSetupError
from .options import WatchOptions, ResolvedWatchConfig
from .signals import RawChangeSignal, ChangeNotification, ChangeHandler, SignalListener

__all__ = [
    "ChangeKind",
    "LogLevel",
    "WATCH_EVENTS",
    "WatcherErrorType",
    "WatcherError",
    "ConfigurationError",
    "WatchSetupError",
    "WatchOptions",
    "ResolvedWatchConfig",
    "RawChangeSignal",
    "ChangeNotification",
    "ChangeHandler",
    "SignalListener",
]
