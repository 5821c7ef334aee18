"""Tests for periodic pollers and their registry."""

import threading

import pytest

from cityreport.services.pollers import PeriodicTask, PollerRegistry


@pytest.fixture()
def registry(logger):
    registry = PollerRegistry(logger)
    yield registry
    registry.stop_all()


class TestPeriodicTask:
    """Start / stop lifecycle of a single loop."""

    def test_rejects_non_positive_interval(self, logger):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None, logger)

    def test_ticks_until_stopped(self, logger):
        ticked = threading.Event()
        task = PeriodicTask("ticker", 0.01, ticked.set, logger)

        task.start()
        assert ticked.wait(timeout=5)
        task.stop()

        assert not task.is_running
        count = task.tick_count
        assert count >= 1
        ticked.clear()
        assert not ticked.wait(timeout=0.05)
        assert task.tick_count == count

    def test_failing_tick_keeps_running(self, logger):
        calls = []
        second = threading.Event()

        def tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("store unavailable")
            second.set()

        task = PeriodicTask("flaky", 0.01, tick, logger)
        task.start()
        assert second.wait(timeout=5)
        task.stop()

    def test_start_is_idempotent(self, logger):
        task = PeriodicTask("ticker", 0.5, lambda: None, logger)
        task.start()
        thread = task._thread
        task.start()
        assert task._thread is thread
        task.stop()
        task.stop()


class TestPollerRegistry:
    """Named registration with a single teardown point."""

    def test_register_starts(self, registry):
        task = registry.register("map", 0.5, lambda: None)
        assert task.is_running
        assert registry.names() == ["map"]

    def test_register_replaces(self, registry):
        first = registry.register("map", 0.5, lambda: None)
        second = registry.register("map", 0.5, lambda: None)

        assert not first.is_running
        assert second.is_running
        assert registry.names() == ["map"]

    def test_unregister(self, registry):
        task = registry.register("history", 0.5, lambda: None)
        assert registry.unregister("history") is True
        assert not task.is_running
        assert registry.unregister("history") is False

    def test_stop_all(self, registry):
        tasks = [
            registry.register(name, 0.5, lambda: None)
            for name in ("report-list", "map", "history", "alert-check")
        ]
        registry.stop_all()

        assert registry.names() == []
        assert all(not t.is_running for t in tasks)
        registry.stop_all()
