"""Shared inventory state and concurrency helpers."""

from .events import (
    BackgroundWorker,
    CancellationToken,
    Debouncer,
    EventBus,
    EventType,
    InventoryEvent,
)
from .inventory import InventoryStore

__all__ = [
    "BackgroundWorker",
    "CancellationToken",
    "Debouncer",
    "EventBus",
    "EventType",
    "InventoryEvent",
    "InventoryStore",
]
