"""Enumerations for changewatch."""

from enum import Enum


class ChangeKind(str, Enum):
    """Kind of change reported by the event source."""
    
    CREATED = "add"
    """A file was created."""
    
    CREATED_DIR = "addDir"
    """A directory was created."""
    
    MODIFIED = "change"
    """A file was modified."""
    
    DELETED = "unlink"
    """A file was deleted."""
    
    DELETED_DIR = "unlinkDir"
    """A directory was deleted."""


WATCH_EVENTS = tuple(kind.value for kind in ChangeKind)


class LogLevel(str, Enum):
    """Diagnostic verbosity of a watcher's logger."""
    
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
