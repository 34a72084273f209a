"""
Concurrency Glue

Background execution, change notifications and cancellation for the
orchestration core.

The presentation layer is single-threaded. Batch work runs on a
BackgroundWorker; every state change is announced as an InventoryEvent on
the EventBus, and the presentation thread drains its own queue instead of
being touched directly from worker threads.
"""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Kinds of inventory change notifications."""
    REPLACED = "replaced"
    STATUS_CHANGED = "status_changed"
    RECOMMENDATION_SET = "recommendation_set"
    PROGRESS = "progress"
    BATCH_FINISHED = "batch_finished"


@dataclass
class InventoryEvent:
    """A change notification delivered to subscribers."""

    type: EventType
    package_id: Optional[str] = None
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)


class EventBus:
    """
    Fan-out of events to subscriber queues.

    Each subscriber owns a queue.Queue and drains it on its own thread.
    Publishing never blocks on a slow subscriber.
    """

    def __init__(self):
        self._subscribers: List[queue.Queue] = []
        self._lock = threading.Lock()

    def subscribe(self, maxsize: int = 0) -> queue.Queue:
        """Register a new subscriber and return its queue."""
        q: queue.Queue = queue.Queue(maxsize=maxsize)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    def publish(self, event: InventoryEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for q in subscribers:
            try:
                q.put_nowait(event)
            except queue.Full:
                logger.warning(f"[events] Subscriber queue full, dropping {event.type.value} event")

    @staticmethod
    def drain(q: queue.Queue) -> List[InventoryEvent]:
        """Collect every event currently waiting in a subscriber queue."""
        events: List[InventoryEvent] = []
        while True:
            try:
                events.append(q.get_nowait())
            except queue.Empty:
                return events


class CancellationToken:
    """Cooperative cancellation flag checked between batch items."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class BackgroundWorker:
    """
    Single-threaded task queue for batch operations.

    One worker thread keeps submitted jobs in order, which also keeps
    lifecycle batches from overlapping.
    """

    def __init__(self, name: str = "wingetwizard-worker"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Queue a job and return its Future."""
        return self._executor.submit(self._run, fn, *args, **kwargs)

    @staticmethod
    def _run(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            logger.error(f"[worker] Job {getattr(fn, '__name__', fn)} failed: {e}")
            raise

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BackgroundWorker":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(wait=True)


class Debouncer:
    """
    Delay a callback until calls have been quiet for `delay` seconds.

    Every `trigger()` restarts the timer; only the last trigger in a burst
    runs the callback.
    """

    def __init__(self, delay: float, callback: Callable[[], Any]):
        self.delay = delay
        self._callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            # A timer cancelled while waiting on the lock must not run or
            # clear its replacement
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        try:
            self._callback()
        except Exception as e:
            logger.warning(f"[events] Debounced callback failed: {e}")

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> None:
        """Run a pending callback immediately."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            self._callback()
