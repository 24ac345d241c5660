"""Watcher - the public entry point for change notifications."""

import asyncio
from typing import Any, Mapping, Optional, Set, Union

from pydantic import ValidationError

from ..logs import LogManager
from ..models import (
    ChangeHandler,
    ConfigurationError,
    LogLevel,
    ResolvedWatchConfig,
    WatchOptions,
    WatchSetupError,
)
from .dispatcher import ChangeDispatcher
from .event_source import EventSource, Subscription, WatchfilesEventSource
from .exclusion import validate_patterns
from .source_config import build_source_config

LOGGER_NAME = "file-watcher"


class Watcher:
    """
    Watches one or more paths and reports changed paths to a handler.

    Options are validated when the watcher is constructed; a watcher that
    exists always has a usable source. ``watch()`` subscribes to the event
    source and must be called from within a running event loop when the
    default watchfiles source is used.

    Usage:
        watcher = Watcher({"source": "./src", "exclude": ["**/*.log"]})
        watcher.set_log_level("trace")

        async def on_change(path: str) -> None:
            print(f"File changed: {path}")

        watcher.watch(on_change)
    """

    def __init__(
        self,
        options: Union[WatchOptions, Mapping[str, Any]],
        *,
        log_manager: Optional[LogManager] = None,
        event_source: Optional[EventSource] = None,
    ):
        self.log_manager = log_manager or LogManager()
        self.logger = self.log_manager.get_logger(LOGGER_NAME)
        self.config = self._validate_options(options)
        self.event_source = event_source or WatchfilesEventSource()

        self._subscription: Optional[Subscription] = None
        self._dispatcher: Optional[ChangeDispatcher] = None
        self._closing: Set[asyncio.Task] = set()

    @staticmethod
    def _validate_options(options: Union[WatchOptions, Mapping[str, Any], None]) -> ResolvedWatchConfig:
        if options is None:
            raise ConfigurationError("Source is required")

        if not isinstance(options, WatchOptions):
            try:
                options = WatchOptions.model_validate(dict(options))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid watch options: {e.error_count()} error(s)", e) from e
            except (TypeError, ValueError) as e:
                raise ConfigurationError("Invalid watch options", e) from e

        config = ResolvedWatchConfig.from_options(options)
        try:
            validate_patterns(config.exclude)
        except ValueError as e:
            raise ConfigurationError("Invalid exclude pattern", e) from e
        return config

    @property
    def is_watching(self) -> bool:
        return self._subscription is not None

    @property
    def subscription(self) -> Optional[Subscription]:
        """The live subscription; tearing it down is up to its event source."""
        return self._subscription

    @property
    def notifications(self) -> int:
        """Number of notifications delivered to the handler so far."""
        return self._dispatcher.handled if self._dispatcher else 0

    def set_log_level(self, level: Union[LogLevel, str]) -> None:
        """Set this watcher's diagnostic verbosity. Does not affect watching."""
        self.log_manager.set_log_level(LOGGER_NAME, level)

    def watch(self, handler: ChangeHandler) -> None:
        """
        Start watching and deliver changed paths to ``handler``.

        Only the first call subscribes; later calls log a warning and keep
        the existing subscription.

        Args:
            handler: Coroutine function called with each changed path

        Raises:
            WatchSetupError: If the event source could not be started
        """
        if self._subscription is not None:
            self.logger.warning(f"Already watching {self.config.display_source}.")
            return

        subscription = None
        try:
            source_config = build_source_config(self.config, self.logger)
            subscription = self.event_source.subscribe(list(self.config.sources), source_config)

            dispatcher = ChangeDispatcher(handler, self.logger, ignored=source_config.ignored)
            subscription.on_event(dispatcher)
        except Exception as e:
            self.logger.error("Error watching files.", exc_info=e)
            if subscription is not None:
                self._discard(subscription)
            raise WatchSetupError("Error watching files.", e) from e

        self._subscription = subscription
        self._dispatcher = dispatcher
        self.logger.info(f"Watching {self.config.display_source}.")

    def _discard(self, subscription: Subscription) -> None:
        """Close a subscription that never became live."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning("No running event loop; could not close the failed subscription.")
            return
        task = loop.create_task(subscription.close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)
