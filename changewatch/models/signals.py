"""Signals flowing from the event source to the caller's handler."""

from typing import Awaitable, Callable, NamedTuple

from .enums import ChangeKind


class RawChangeSignal(NamedTuple):
    """A single (kind, path) signal produced by the event source."""
    
    kind: ChangeKind
    path: str


ChangeNotification = str
"""The value delivered to the caller's handler: the affected path."""

ChangeHandler = Callable[[ChangeNotification], Awaitable[None]]
"""Caller-supplied coroutine function invoked once per accepted signal."""

SignalListener = Callable[[ChangeKind, str], Awaitable[None]]
"""Listener registered on an event source's unified channel."""
