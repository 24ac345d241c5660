"""Event normalizer and dispatcher - hands accepted signals to the caller."""

import asyncio
import logging
import os
from typing import Callable, Optional, Union

from ..logs import TRACE
from ..models import ChangeHandler, ChangeKind

logger = logging.getLogger(__name__)


class ChangeDispatcher:
    """
    Listener registered on an event source's unified channel.

    Each signal is normalized, checked against the exclusion predicate,
    traced, and passed to the handler as a bare path. Dispatches are
    serialized: the handler for one signal is awaited to completion before
    the next signal is looked at, in the order signals arrived. There is no
    timeout, so a handler that never returns stalls delivery.

    Usage:
        dispatcher = ChangeDispatcher(handler, log)
        subscription.on_event(dispatcher)
    """

    def __init__(
        self,
        handler: ChangeHandler,
        log=None,
        ignored: Optional[Callable[[str], bool]] = None,
    ):
        self.handler = handler
        self.log = log or logger
        self.ignored = ignored
        self.handled = 0
        self._lock = asyncio.Lock()

    async def __call__(self, kind: Union[ChangeKind, str], path: Union[str, os.PathLike]) -> None:
        await self.dispatch(kind, path)

    async def dispatch(self, kind: Union[ChangeKind, str], path: Union[str, os.PathLike]) -> None:
        """Process one raw signal."""
        kind = ChangeKind(kind)
        path = os.fspath(path)

        # asyncio.Lock wakes waiters in FIFO order
        async with self._lock:
            if self.ignored is not None and self.ignored(path):
                return

            self.log.log(TRACE, f"File {path} has been {kind.value}.")

            try:
                await self.handler(path)
                self.handled += 1
            except Exception as e:
                self.log.error(f"Error handling change for {path}.", exc_info=e)
