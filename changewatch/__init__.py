"""changewatch - low-noise file change notifications."""

from .logs import LogManager
from .models import (
    ChangeKind,
    LogLevel,
    WatchOptions,
    WatcherError,
    WatcherErrorType,
    ConfigurationError,
    WatchSetupError,
)
from .watchers import Watcher, load_options_from_yaml

__version__ = "0.1.0"

__all__ = [
    "Watcher",
    "WatchOptions",
    "LogManager",
    "LogLevel",
    "ChangeKind",
    "WatcherError",
    "WatcherErrorType",
    "ConfigurationError",
    "WatchSetupError",
    "load_options_from_yaml",
]
