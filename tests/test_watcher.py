"""Tests for the Watcher facade."""

import asyncio
import logging

import pytest

from changewatch import (
    ConfigurationError,
    LogLevel,
    Watcher,
    WatcherError,
    WatcherErrorType,
    WatchOptions,
    WatchSetupError,
)
from changewatch.logs import TRACE


async def noop(path: str) -> None:
    pass


class TestConstruction:
    """Tests for option validation at construction."""

    def test_create_with_string_source(self, event_source):
        """Test constructing with a single source path."""
        watcher = Watcher({"source": "./test"}, event_source=event_source)

        assert watcher.config.sources == ("./test",)
        assert watcher.config.exclude == ()
        assert watcher.config.use_polling is False
        assert not watcher.is_watching

    def test_create_with_list_source(self, event_source):
        """Test constructing with several source paths."""
        watcher = Watcher({"source": ["./test1", "./test2"]}, event_source=event_source)

        assert watcher.config.sources == ("./test1", "./test2")

    def test_create_with_options_model(self, event_source):
        """Test constructing from a WatchOptions instance."""
        options = WatchOptions(source="./test", exclude="**/*.log", use_polling=True)
        watcher = Watcher(options, event_source=event_source)

        assert watcher.config.exclude == ("**/*.log",)
        assert watcher.config.use_polling is True

    def test_camel_case_polling_key(self, event_source):
        """Test that the usePolling spelling is accepted."""
        watcher = Watcher({"source": "./test", "usePolling": True}, event_source=event_source)

        assert watcher.config.use_polling is True

    @pytest.mark.parametrize("options", [{}, {"source": None}, {"source": ""}, {"source": []}, None])
    def test_missing_source(self, options, event_source):
        """Test that a missing source is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Watcher(options, event_source=event_source)

        assert exc_info.value.type == WatcherErrorType.CONFIG_ERROR
        assert exc_info.value.message == "Source is required"
        assert isinstance(exc_info.value, WatcherError)
        assert event_source.calls == []

    def test_invalid_option_type(self, event_source):
        """Test that malformed options are wrapped as configuration errors."""
        with pytest.raises(ConfigurationError) as exc_info:
            Watcher({"source": "./test", "usePolling": "sometimes"}, event_source=event_source)

        assert exc_info.value.cause is not None

    @pytest.mark.parametrize("options", ["./test", 42, ["./test"]])
    def test_options_not_a_mapping(self, options, event_source):
        """Test that options which are not a mapping are configuration errors."""
        with pytest.raises(ConfigurationError) as exc_info:
            Watcher(options, event_source=event_source)

        assert exc_info.value.message == "Invalid watch options"
        assert isinstance(exc_info.value.cause, (TypeError, ValueError))

    @pytest.mark.parametrize("pattern", ["", "!"])
    def test_invalid_exclude_pattern(self, pattern, event_source):
        """Test that an unusable exclude pattern is refused up front."""
        with pytest.raises(ConfigurationError) as exc_info:
            Watcher({"source": "./test", "exclude": ["**/*.log", pattern]}, event_source=event_source)

        assert exc_info.value.message == "Invalid exclude pattern"
        assert isinstance(exc_info.value.cause, ValueError)

    def test_brace_and_negated_patterns_accepted(self, event_source):
        """Test that brace and negation syntax pass validation."""
        watcher = Watcher(
            {"source": "./test", "exclude": ["**/*.{tmp,log}", "!**/*.md"]},
            event_source=event_source,
        )

        assert watcher.config.exclude == ("**/*.{tmp,log}", "!**/*.md")

    def test_unknown_option(self, event_source):
        """Test that unknown keys are rejected."""
        with pytest.raises(ConfigurationError):
            Watcher({"source": "./test", "include": ["**/*"]}, event_source=event_source)

    def test_config_is_immutable(self, event_source):
        """Test that the resolved configuration cannot be changed."""
        watcher = Watcher({"source": "./test"}, event_source=event_source)

        with pytest.raises(Exception):
            watcher.config.use_polling = True


class TestSetLogLevel:
    """Tests for log level control."""

    def test_sets_threshold_on_named_logger(self, event_source, log_manager):
        """Test that the level applies to the watcher's logger."""
        watcher = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)

        watcher.set_log_level("trace")
        assert watcher.logger.logger.level == TRACE

        watcher.set_log_level(LogLevel.ERROR)
        assert watcher.logger.logger.level == logging.ERROR

    @pytest.mark.parametrize("level", ["trace", "debug", "info", "warn", "error"])
    def test_accepts_all_levels(self, level, event_source, log_manager):
        """Test every supported level name."""
        watcher = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)
        watcher.set_log_level(level)

    def test_rejects_unknown_level(self, event_source, log_manager):
        """Test that an unknown level name is refused."""
        watcher = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)

        with pytest.raises(ValueError):
            watcher.set_log_level("verbose")

    def test_does_not_change_watch_behavior(self, event_source, log_manager):
        """Test that changing levels before watch() leaves the subscription untouched."""
        quiet = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)
        for level in ["trace", "error", "info", "trace"]:
            quiet.set_log_level(level)
        quiet.watch(noop)

        plain = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)
        plain.watch(noop)

        (roots_a, config_a), (roots_b, config_b) = event_source.calls
        assert roots_a == roots_b
        for name in ["cwd", "persistent", "await_write_finish", "atomic", "use_polling",
                     "ignore_initial", "ignore_permission_errors", "follow_symlinks"]:
            assert getattr(config_a, name) == getattr(config_b, name)

    def test_trace_hidden_at_error_level(self, event_source, log_manager, caplog):
        """Test that trace diagnostics disappear once the level is raised."""
        watcher = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)
        watcher.set_log_level("error")
        watcher.watch(noop)

        caplog.clear()
        event_source.calls[0][1].ignored("a.txt")

        assert caplog.messages == []


class TestWatch:
    """Tests for starting a watch."""

    def test_subscribes_with_fixed_policy(self, event_source):
        """Test the parameters handed to the event source."""
        watcher = Watcher({"source": "./test"}, event_source=event_source)
        watcher.watch(noop)

        roots, config = event_source.calls[0]
        assert roots == ["./test"]
        assert config.cwd == "."
        assert config.persistent is True
        assert config.await_write_finish is True
        assert config.atomic is True
        assert config.use_polling is False
        assert config.ignore_initial is True
        assert config.ignore_permission_errors is True
        assert config.follow_symlinks is True
        assert callable(config.ignored)
        assert watcher.is_watching

    def test_polling_option(self, event_source):
        """Test that usePolling reaches the event source."""
        watcher = Watcher({"source": "./test", "usePolling": True}, event_source=event_source)
        watcher.watch(noop)

        assert event_source.calls[0][1].use_polling is True

    def test_logs_watched_source(self, event_source, log_manager, caplog):
        """Test the info line naming the source."""
        watcher = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)
        watcher.watch(noop)

        assert "Watching ./test." in caplog.messages

    def test_registers_listener(self, event_source):
        """Test that one listener is registered on the subscription."""
        watcher = Watcher({"source": "./test"}, event_source=event_source)
        watcher.watch(noop)

        subscription = event_source.subscriptions[0]
        assert len(subscription.listeners) == 1
        assert watcher.subscription is subscription

    def test_second_watch_keeps_first_subscription(self, event_source, log_manager, caplog):
        """Test that a repeated watch() does not resubscribe."""
        watcher = Watcher({"source": ["./a", "./b"]}, event_source=event_source, log_manager=log_manager)
        watcher.watch(noop)
        first = watcher.subscription

        watcher.watch(noop)

        assert len(event_source.calls) == 1
        assert watcher.subscription is first
        assert len(first.listeners) == 1
        assert "Already watching ./a,./b." in caplog.messages

    @pytest.mark.asyncio
    async def test_change_reaches_handler(self, event_source, log_manager, caplog):
        """Test that a change signal yields exactly one handler call."""
        calls = []

        async def handler(path):
            calls.append(path)

        watcher = Watcher({"source": "./test"}, event_source=event_source, log_manager=log_manager)
        watcher.watch(handler)

        await event_source.subscriptions[0].emit("change", "a.txt")

        assert calls == ["a.txt"]
        assert "File a.txt has been change." in caplog.messages
        assert watcher.notifications == 1

    @pytest.mark.asyncio
    async def test_all_event_kinds(self, event_source):
        """Test that every kind is delivered as a bare path."""
        calls = []

        async def handler(path):
            calls.append(path)

        watcher = Watcher({"source": "./test"}, event_source=event_source)
        watcher.watch(handler)
        subscription = event_source.subscriptions[0]

        for kind in ["add", "change", "unlink", "addDir", "unlinkDir"]:
            await subscription.emit(kind, "test.txt")

        assert calls == ["test.txt"] * 5

    @pytest.mark.asyncio
    async def test_excluded_paths_never_reach_handler(self, event_source):
        """Test suppression of paths matching an exclude pattern."""
        calls = []

        async def handler(path):
            calls.append(path)

        watcher = Watcher({"source": "./test", "exclude": ["**/*.log"]}, event_source=event_source)
        watcher.watch(handler)
        subscription = event_source.subscriptions[0]

        await subscription.emit("change", "x.log")
        await subscription.emit("change", "x.txt")

        assert calls == ["x.txt"]

    @pytest.mark.asyncio
    async def test_order_is_preserved(self, event_source):
        """Test that paths arrive in the order signals were received."""
        calls = []

        async def handler(path):
            await asyncio.sleep(0)
            calls.append(path)

        watcher = Watcher({"source": "./test", "exclude": ["*.tmp"]}, event_source=event_source)
        watcher.watch(handler)
        subscription = event_source.subscriptions[0]

        signals = [("add", "a.txt"), ("change", "b.tmp"), ("change", "c.txt"), ("unlink", "a.txt")]
        await asyncio.gather(*(subscription.emit(kind, path) for kind, path in signals))

        assert calls == ["a.txt", "c.txt", "a.txt"]

    @pytest.mark.asyncio
    async def test_slow_handler_delays_next_signal(self, event_source):
        """Test that signal 2 waits until the handler for signal 1 completes."""
        release = asyncio.Event()
        started = []
        finished = []

        async def handler(path):
            started.append(path)
            if path == "one.txt":
                await release.wait()
            finished.append(path)

        watcher = Watcher({"source": "./test"}, event_source=event_source)
        watcher.watch(handler)
        subscription = event_source.subscriptions[0]

        first = asyncio.create_task(subscription.emit("change", "one.txt"))
        second = asyncio.create_task(subscription.emit("change", "two.txt"))
        await asyncio.sleep(0.05)

        assert started == ["one.txt"]
        assert finished == []

        release.set()
        await asyncio.gather(first, second)

        assert started == ["one.txt", "two.txt"]
        assert finished == ["one.txt", "two.txt"]


class TestWatchFailure:
    """Tests for event source startup failures."""

    def test_raises_watch_setup_error(self, failing_event_source):
        """Test that a startup failure is wrapped with its cause."""
        watcher = Watcher({"source": "./test"}, event_source=failing_event_source)

        with pytest.raises(WatchSetupError) as exc_info:
            watcher.watch(noop)

        error = exc_info.value
        assert error.type == WatcherErrorType.WATCH_ERROR
        assert error.message == "Error watching files."
        assert isinstance(error.cause, OSError)
        assert error.__cause__ is error.cause
        assert not watcher.is_watching

    def test_logs_error(self, failing_event_source, log_manager, caplog):
        """Test that the failure is logged with the original exception."""
        watcher = Watcher({"source": "./test"}, event_source=failing_event_source, log_manager=log_manager)

        with pytest.raises(WatchSetupError):
            watcher.watch(noop)

        records = [r for r in caplog.records if r.getMessage() == "Error watching files."]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert records[0].exc_info[1] is failing_event_source.error

    def test_handler_never_invoked(self, failing_event_source):
        """Test that the handler is not called when setup fails."""
        calls = []

        async def handler(path):
            calls.append(path)

        watcher = Watcher({"source": "./test"}, event_source=failing_event_source)
        with pytest.raises(WatchSetupError):
            watcher.watch(handler)

        assert calls == []

    @pytest.mark.asyncio
    async def test_registration_failure_closes_subscription(self, unregistrable_event_source, log_manager, caplog):
        """Test that a subscription whose listener was refused is closed, not kept."""
        watcher = Watcher({"source": "./test"}, event_source=unregistrable_event_source, log_manager=log_manager)

        with pytest.raises(WatchSetupError) as exc_info:
            watcher.watch(noop)
        await asyncio.sleep(0)

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert unregistrable_event_source.subscriptions[0].closed
        assert not watcher.is_watching
        assert "Watching ./test." not in caplog.messages

    def test_default_source_needs_running_loop(self, tmp_path):
        """Test that watching outside an event loop fails cleanly."""
        watcher = Watcher({"source": str(tmp_path)})

        with pytest.raises(WatchSetupError) as exc_info:
            watcher.watch(noop)

        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path):
        """Test that a nonexistent root fails at watch() time."""
        watcher = Watcher({"source": str(tmp_path / "missing")})

        with pytest.raises(WatchSetupError) as exc_info:
            watcher.watch(noop)

        assert isinstance(exc_info.value.cause, FileNotFoundError)
