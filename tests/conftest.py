"""Shared fixtures: an in-memory event source and an isolated log manager."""

from uuid import uuid4

import pytest

from changewatch.logs import TRACE, LogManager
from changewatch.watchers import EventSource, Subscription


class FakeSubscription(Subscription):
    """Subscription whose signals are pushed by the test."""
    
    def __init__(self, roots, config, listener_error=None):
        self.roots = roots
        self.config = config
        self.listener_error = listener_error
        self.listeners = []
        self.closed = False
    
    def on_event(self, listener):
        if self.listener_error is not None:
            raise self.listener_error
        self.listeners.append(listener)
    
    async def close(self):
        self.closed = True
    
    async def emit(self, kind, path):
        """Deliver one raw signal, honouring the exclusion hook like a real source."""
        if self.config.ignored(path):
            return
        for listener in self.listeners:
            await listener(kind, path)


class FakeEventSource(EventSource):
    """Records subscribe() calls; optionally fails to start or to register."""
    
    def __init__(self, error=None, listener_error=None):
        self.error = error
        self.listener_error = listener_error
        self.calls = []
        self.subscriptions = []
    
    def subscribe(self, roots, config):
        self.calls.append((roots, config))
        if self.error is not None:
            raise self.error
        subscription = FakeSubscription(roots, config, self.listener_error)
        self.subscriptions.append(subscription)
        return subscription


@pytest.fixture
def event_source():
    return FakeEventSource()


@pytest.fixture
def failing_event_source():
    return FakeEventSource(error=OSError("Watch failed"))


@pytest.fixture
def log_manager(caplog):
    """A LogManager under its own namespace, with TRACE records captured."""
    caplog.set_level(TRACE)
    return LogManager(namespace=f"changewatch-test-{uuid4().hex[:8]}")


@pytest.fixture
def unregistrable_event_source():
    return FakeEventSource(listener_error=RuntimeError("Listener rejected"))
