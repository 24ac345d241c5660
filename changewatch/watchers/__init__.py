"""File watching: exclusion, source configuration, dispatch and the Watcher facade."""

from .file_watcher import Watcher
from .dispatcher import ChangeDispatcher
from .exclusion import should_exclude, is_match, build_exclusion_predicate, validate_patterns
from .source_config import SourceConfig, WriteFinishPolicy, build_source_config
from .event_source import EventSource, Subscription, WatchfilesEventSource, WatchfilesSubscription
from .config_loader import load_options_from_yaml, save_options_to_yaml, write_example_config

__all__ = [
    "Watcher",
    "ChangeDispatcher",
    # Exclusion
    "should_exclude",
    "is_match",
    "build_exclusion_predicate",
    "validate_patterns",
    # Event source
    "SourceConfig",
    "WriteFinishPolicy",
    "build_source_config",
    "EventSource",
    "Subscription",
    "WatchfilesEventSource",
    "WatchfilesSubscription",
    # Config loading
    "load_options_from_yaml",
    "save_options_to_yaml",
    "write_example_config",
]
