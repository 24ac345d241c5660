"""Event sources - turn filesystem activity into raw (kind, path) signals."""

import asyncio
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from watchfiles import Change, awatch

from ..models import ChangeKind, RawChangeSignal, SignalListener
from .source_config import SourceConfig

logger = logging.getLogger(__name__)

# Swap and temp files written by editors doing atomic saves
ATOMIC_ARTIFACT_RE = re.compile(r"\..*\.(sw[px])$|~$|\.subl.*\.tmp")


@dataclass
class PendingWrite:
    """An event held back until the file stops changing."""

    kind: ChangeKind
    task: asyncio.Task


class Subscription(ABC):
    """A live subscription returned by an EventSource."""

    @abstractmethod
    def on_event(self, listener: SignalListener) -> None:
        """Register a listener on the unified "any kind" channel."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Stop producing signals and release resources."""
        ...


class EventSource(ABC):
    """
    Produces change signals for a set of root paths.

    Implementations honour every field of SourceConfig, in particular the
    ``ignored`` predicate, which must be applied before a signal is
    materialized.
    """

    @abstractmethod
    def subscribe(self, roots: Sequence[str], config: SourceConfig) -> Subscription:
        """
        Start monitoring ``roots``.

        Raises:
            Exception: Any failure to start; the caller wraps it
        """
        ...


class WatchfilesEventSource(EventSource):
    """Event source backed by ``watchfiles`` (native notify or polling)."""

    def subscribe(self, roots: Sequence[str], config: SourceConfig) -> "WatchfilesSubscription":
        # Raises RuntimeError when called outside a running event loop
        asyncio.get_running_loop()

        cwd = _normalize(Path(config.cwd or "."), config.follow_symlinks)
        paths = []
        for root in roots:
            path = _normalize(cwd / root, config.follow_symlinks)
            if not path.exists():
                raise FileNotFoundError(f"Watch path does not exist: {root}")
            paths.append(path)

        subscription = WatchfilesSubscription(paths, config, cwd)
        subscription.start()
        logger.debug(f"Subscribed to {len(paths)} root(s) (polling: {config.use_polling})")
        return subscription


class WatchfilesSubscription(Subscription):
    """
    One running watch over a set of roots.

    Raw ``watchfiles`` changes go through the write-finish and atomic-write
    policies before being queued; a single delivery task drains the queue
    and awaits each listener in turn, so listeners never see two signals
    at once.
    """

    def __init__(self, roots: List[Path], config: SourceConfig, cwd: Path):
        self.roots = roots
        self.config = config
        self._cwd = cwd
        self._listeners: List[SignalListener] = []
        self._queue: asyncio.Queue = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self._running = False
        self._tasks: List[asyncio.Task] = []

        self._known_dirs: Set[str] = set()
        self._pending_writes: Dict[str, PendingWrite] = {}
        self._pending_unlinks: Dict[str, asyncio.TimerHandle] = {}  # path -> deferred unlink

    @property
    def is_running(self) -> bool:
        return self._running

    def on_event(self, listener: SignalListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks.append(asyncio.create_task(self._deliver()))
        self._tasks.append(asyncio.create_task(self._watch()))

    async def close(self) -> None:
        self._running = False
        self._stop_event.set()

        for handle in self._pending_unlinks.values():
            handle.cancel()
        self._pending_unlinks.clear()

        tasks = [*self._tasks, *(p.task for p in self._pending_writes.values())]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tasks.clear()
        self._pending_writes.clear()
        logger.debug("Subscription closed")

    async def drain(self) -> None:
        """Wait until every queued signal has been delivered."""
        await self._queue.join()

    # -------------------------------------------------------------------------
    # Watch loop
    # -------------------------------------------------------------------------

    async def _watch(self) -> None:
        try:
            self._initial_scan()
            if not self.config.persistent:
                return

            async for changes in awatch(
                *self.roots,
                watch_filter=self.accepts,
                stop_event=self._stop_event,
                force_polling=self.config.use_polling,
                poll_delay_ms=self.config.poll_delay_ms,
                ignore_permission_denied=self.config.ignore_permission_errors,
                recursive=True,
            ):
                if not self._running:
                    break
                self.handle_changes(changes)

        except asyncio.CancelledError:
            logger.debug("Watch cancelled")
        except Exception as e:
            self._running = False
            logger.error(f"Error watching {', '.join(map(str, self.roots))}: {e}", exc_info=True)

    def accepts(self, change: Optional[Change], path: str) -> bool:
        """watch_filter hook: False for paths that must never become events."""
        if self.config.atomic and ATOMIC_ARTIFACT_RE.search(os.path.basename(path)):
            return False
        return not self.config.ignored(self._relative(path))

    def _initial_scan(self) -> None:
        """Record existing directories; report entries unless ignore_initial."""
        report = not self.config.ignore_initial

        for root in self.roots:
            if not root.is_dir():
                if report and self.accepts(None, str(root)):
                    self._emit(ChangeKind.CREATED, str(root))
                continue

            self._known_dirs.add(str(root))
            visited = set()
            for dirpath, dirnames, filenames in os.walk(
                root,
                followlinks=self.config.follow_symlinks,
                onerror=self._on_walk_error,
            ):
                real = os.path.realpath(dirpath)
                if real in visited:
                    # Symlink cycle
                    dirnames[:] = []
                    continue
                visited.add(real)

                dirnames[:] = [
                    d for d in dirnames if self.accepts(None, os.path.join(dirpath, d))
                ]
                for name in dirnames:
                    full = os.path.join(dirpath, name)
                    self._known_dirs.add(full)
                    if report:
                        self._emit(ChangeKind.CREATED_DIR, full)

                if report:
                    for name in filenames:
                        full = os.path.join(dirpath, name)
                        if self.accepts(None, full):
                            self._emit(ChangeKind.CREATED, full)

        logger.debug(f"Initial scan found {len(self._known_dirs)} directories")

    def _on_walk_error(self, error: OSError) -> None:
        """Skip a path the scan cannot read; the rest of the tree is still scanned."""
        if isinstance(error, PermissionError):
            if not self.config.ignore_permission_errors:
                logger.error(f"Permission denied scanning {error.filename}")
            else:
                logger.debug(f"Skipping unreadable path: {error.filename}")
        elif isinstance(error, FileNotFoundError):
            logger.debug(f"{error.filename} disappeared during the initial scan")
        else:
            logger.warning(f"Skipping {error.filename} during the initial scan: {error}")

    # -------------------------------------------------------------------------
    # Change policy
    # -------------------------------------------------------------------------

    def handle_changes(self, changes: Iterable[Tuple[Change, str]]) -> None:
        """
        Apply the change policy to one batch from watchfiles.

        Batches are unordered sets, so changes are grouped per path and
        resolved against the path's current state. Paths are handled in
        sorted order, which puts parent directories before their contents.
        """
        by_path: Dict[str, Set[Change]] = {}
        for change, path in changes:
            by_path.setdefault(path, set()).add(change)

        for path in sorted(by_path):
            self._handle_path(path, by_path[path])

    def _handle_path(self, path: str, changes: Set[Change]) -> None:
        exists = os.path.exists(path)

        if not exists:
            if Change.deleted in changes:
                self._on_deleted(path)
            return

        if os.path.isdir(path):
            if path not in self._known_dirs:
                self._known_dirs.add(path)
                self._emit(ChangeKind.CREATED_DIR, path)
            return

        if Change.deleted in changes and Change.added in changes:
            # Replaced within one batch
            if self.config.atomic:
                self._cancel_unlink(path)
                self._after_write_finish(ChangeKind.MODIFIED, path)
            else:
                self._emit(ChangeKind.DELETED, path)
                self._after_write_finish(ChangeKind.CREATED, path)
        elif Change.added in changes or Change.deleted in changes:
            self._on_added(path)
        else:
            self._after_write_finish(ChangeKind.MODIFIED, path)

    def _on_added(self, path: str) -> None:
        if self._cancel_unlink(path):
            self._after_write_finish(ChangeKind.MODIFIED, path)
        else:
            self._after_write_finish(ChangeKind.CREATED, path)

    def _on_deleted(self, path: str) -> None:
        pending = self._pending_writes.pop(path, None)
        if pending:
            pending.task.cancel()
            if pending.kind == ChangeKind.CREATED:
                # Never reported, so its removal is not reported either
                logger.debug(f"{path} was removed before its write finished")
                return

        if path in self._known_dirs:
            prefix = path + os.sep
            self._known_dirs = {
                d for d in self._known_dirs if d != path and not d.startswith(prefix)
            }
            self._emit(ChangeKind.DELETED_DIR, path)
            return

        if not self.config.atomic:
            self._emit(ChangeKind.DELETED, path)
            return

        if path in self._pending_unlinks:
            return
        loop = asyncio.get_running_loop()
        self._pending_unlinks[path] = loop.call_later(
            self.config.atomic_window, self._flush_unlink, path
        )

    def _flush_unlink(self, path: str) -> None:
        if self._pending_unlinks.pop(path, None) is not None:
            self._emit(ChangeKind.DELETED, path)

    def _cancel_unlink(self, path: str) -> bool:
        handle = self._pending_unlinks.pop(path, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug(f"Collapsed atomic write on {path}")
        return True

    def _after_write_finish(self, kind: ChangeKind, path: str) -> None:
        if not self.config.await_write_finish:
            self._emit(kind, path)
            return

        if path in self._pending_writes:
            # Coalesce into the event already waiting on this path
            return

        task = asyncio.create_task(self._wait_for_write_finish(kind, path))
        self._pending_writes[path] = PendingWrite(kind, task)

    async def _wait_for_write_finish(self, kind: ChangeKind, path: str) -> None:
        """Emit once size and mtime have been stable for the threshold."""
        policy = self.config.write_finish
        loop = asyncio.get_running_loop()
        last = None
        stable_since = loop.time()

        try:
            while True:
                try:
                    stat = os.stat(path)
                except FileNotFoundError:
                    logger.debug(f"{path} disappeared before its write finished")
                    return
                except PermissionError as e:
                    if not self.config.ignore_permission_errors:
                        logger.error(f"Cannot stat {path}: {e}")
                    return

                snapshot = (stat.st_size, stat.st_mtime_ns)
                now = loop.time()
                if snapshot != last:
                    last = snapshot
                    stable_since = now
                elif now - stable_since >= policy.stability_threshold:
                    break

                await asyncio.sleep(policy.poll_interval)
        finally:
            pending = self._pending_writes.get(path)
            if pending and pending.task is asyncio.current_task():
                del self._pending_writes[path]

        self._emit(kind, path)

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    def _emit(self, kind: ChangeKind, path: str) -> None:
        self._queue.put_nowait(RawChangeSignal(kind, self._relative(path)))

    def _relative(self, path: str) -> str:
        if not self.config.cwd:
            return path
        try:
            return os.path.relpath(path, self._cwd)
        except ValueError:
            # Different drive on Windows
            return path

    async def _deliver(self) -> None:
        try:
            while True:
                signal = await self._queue.get()
                try:
                    for listener in list(self._listeners):
                        try:
                            await listener(signal.kind, signal.path)
                        except Exception as e:
                            logger.error(f"Error in change listener for {signal.path}: {e}", exc_info=True)
                finally:
                    self._queue.task_done()
        except asyncio.CancelledError:
            pass


def _normalize(path: Path, follow_symlinks: bool) -> Path:
    return path.resolve() if follow_symlinks else path.absolute()
