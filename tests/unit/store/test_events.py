"""
Unit tests for the concurrency helpers.
"""

import threading
import time

import pytest

from wingetwizard.store.events import (
    BackgroundWorker,
    CancellationToken,
    Debouncer,
    EventBus,
    EventType,
    InventoryEvent,
)


class TestEventBus:
    """Tests for EventBus."""

    def test_fan_out(self):
        """Test that every subscriber receives every event."""
        bus = EventBus()
        first = bus.subscribe()
        second = bus.subscribe()

        bus.publish(InventoryEvent(type=EventType.PROGRESS, message="hello"))

        assert [e.message for e in EventBus.drain(first)] == ["hello"]
        assert [e.message for e in EventBus.drain(second)] == ["hello"]

    def test_unsubscribe(self):
        """Test that unsubscribed queues receive nothing."""
        bus = EventBus()
        q = bus.subscribe()
        bus.unsubscribe(q)

        bus.publish(InventoryEvent(type=EventType.PROGRESS))

        assert EventBus.drain(q) == []

    def test_full_queue_drops_event(self):
        """Test that a full subscriber queue does not block publishing."""
        bus = EventBus()
        q = bus.subscribe(maxsize=1)

        bus.publish(InventoryEvent(type=EventType.PROGRESS, message="1"))
        bus.publish(InventoryEvent(type=EventType.PROGRESS, message="2"))

        assert [e.message for e in EventBus.drain(q)] == ["1"]


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel(self):
        """Test the cancel flag."""
        token = CancellationToken()
        assert not token.is_cancelled
        token.cancel()
        assert token.is_cancelled


class TestBackgroundWorker:
    """Tests for BackgroundWorker."""

    def test_jobs_run_in_order_on_one_thread(self):
        """Test that jobs are serialized on a single worker thread."""
        results = []
        threads = set()

        def job(value):
            threads.add(threading.current_thread().name)
            results.append(value)
            return value

        with BackgroundWorker() as worker:
            futures = [worker.submit(job, i) for i in range(5)]
            assert [f.result(timeout=5) for f in futures] == [0, 1, 2, 3, 4]

        assert results == [0, 1, 2, 3, 4]
        assert len(threads) == 1

    def test_exception_reaches_future(self):
        """Test that job failures surface through the Future."""
        def failing():
            raise RuntimeError("boom")

        with BackgroundWorker() as worker:
            future = worker.submit(failing)
            with pytest.raises(RuntimeError, match="boom"):
                future.result(timeout=5)


class TestDebouncer:
    """Tests for Debouncer."""

    def test_burst_runs_callback_once(self):
        """Test that rapid triggers coalesce into one call."""
        calls = []
        done = threading.Event()

        def callback():
            calls.append(time.monotonic())
            done.set()

        debouncer = Debouncer(0.05, callback)
        for _ in range(10):
            debouncer.trigger()

        assert done.wait(timeout=5)
        time.sleep(0.1)
        assert len(calls) == 1
        assert not debouncer.pending

    def test_flush_runs_pending_callback(self):
        """Test that flush runs the pending callback immediately."""
        calls = []
        debouncer = Debouncer(60, lambda: calls.append(1))

        debouncer.trigger()
        assert debouncer.pending
        debouncer.flush()

        assert calls == [1]
        assert not debouncer.pending

    def test_flush_without_pending(self):
        """Test that flush is a no-op when nothing is pending."""
        calls = []
        Debouncer(60, lambda: calls.append(1)).flush()
        assert calls == []

    def test_cancel(self):
        """Test that a cancelled trigger never fires."""
        calls = []
        debouncer = Debouncer(0.01, lambda: calls.append(1))

        debouncer.trigger()
        debouncer.cancel()
        time.sleep(0.05)

        assert calls == []

    def test_superseded_timer_does_not_fire(self):
        """Test that a replaced timer reaching its callback leaves the live timer alone."""
        calls = []
        debouncer = Debouncer(60, lambda: calls.append(1))
        debouncer.trigger()
        debouncer.trigger()

        # Same state as a cancelled timer thread that already passed its wait
        stale = threading.Thread(target=debouncer._fire)
        stale.start()
        stale.join(timeout=5)

        assert calls == []
        assert debouncer.pending

        debouncer.cancel()
        assert not debouncer.pending
        assert calls == []
