"""Watch configuration builder - derives event source parameters from options."""

from dataclasses import dataclass, field
from typing import Callable

from ..models import ResolvedWatchConfig
from .exclusion import build_exclusion_predicate


def _ignore_nothing(path: str) -> bool:
    return False


@dataclass(frozen=True)
class WriteFinishPolicy:
    """How long a file must stay unchanged before it is reported.

    Attributes:
        stability_threshold: Seconds size and mtime must stay unchanged
        poll_interval: Seconds between stat checks while waiting
    """
    stability_threshold: float = 2.0
    poll_interval: float = 0.1


@dataclass(frozen=True)
class SourceConfig:
    """Parameters handed to an event source when subscribing.

    Attributes:
        cwd: Base directory; reported paths are relative to it
        persistent: Keep watching after the initial scan
        await_write_finish: Hold add/change events until the writer is done
        write_finish: Stability policy used when await_write_finish is set
        atomic: Collapse temp-file-then-replace edits into one change
        atomic_window: Seconds an unlink is held waiting for a re-add
        use_polling: Poll the filesystem instead of native OS events
        poll_delay_ms: Delay between polls in polling mode
        ignore_initial: Do not report entries that exist at startup
        ignore_permission_errors: Skip unreadable paths instead of failing
        follow_symlinks: Resolve symlinked roots to their targets
        ignored: Predicate deciding which paths are suppressed
    """
    cwd: str = "."
    persistent: bool = True
    await_write_finish: bool = True
    write_finish: WriteFinishPolicy = field(default_factory=WriteFinishPolicy)
    atomic: bool = True
    atomic_window: float = 0.1
    use_polling: bool = False
    poll_delay_ms: int = 300
    ignore_initial: bool = True
    ignore_permission_errors: bool = True
    follow_symlinks: bool = True
    ignored: Callable[[str], bool] = _ignore_nothing


DEFAULT_SOURCE_CONFIG = SourceConfig()


def build_source_config(resolved: ResolvedWatchConfig, log=None) -> SourceConfig:
    """
    Build the event source parameters for a resolved watch configuration.

    Everything except the polling flag and the exclusion predicate is fixed
    policy: cwd-relative paths, persistent subscription, write-finish
    debounce, atomic-write suppression, tolerated permission errors,
    followed symlinks and a silent initial scan.

    Args:
        resolved: The watcher's resolved configuration
        log: Logger receiving exclusion trace diagnostics

    Returns:
        SourceConfig for EventSource.subscribe()
    """
    return SourceConfig(
        cwd=DEFAULT_SOURCE_CONFIG.cwd,
        persistent=True,
        await_write_finish=True,
        write_finish=WriteFinishPolicy(),
        atomic=True,
        atomic_window=DEFAULT_SOURCE_CONFIG.atomic_window,
        use_polling=resolved.use_polling,
        poll_delay_ms=DEFAULT_SOURCE_CONFIG.poll_delay_ms,
        ignore_initial=True,
        ignore_permission_errors=True,
        follow_symlinks=True,
        ignored=build_exclusion_predicate(resolved.exclude, log),
    )
