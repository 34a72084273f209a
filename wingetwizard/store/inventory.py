"""
Inventory Store

Thread-safe snapshot of package records shared by the orchestrator, the AI
pipeline and the presentation layer.

All access goes through a single lock held only for the duration of a
copy or replace, never across I/O. A refresh replaces the whole list in
one critical section, so readers see either the old or the new snapshot.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models import PackageRecord
from .events import EventBus, EventType, InventoryEvent

logger = logging.getLogger(__name__)


SORT_KEYS: Dict[str, Callable[[PackageRecord], str]] = {
    "name": lambda r: r.name,
    "id": lambda r: r.id,
    "version": lambda r: r.installed_version,
    "available": lambda r: r.available_version,
    "status": lambda r: r.status,
    "source": lambda r: r.source,
}


def _contains(value: str, needle: Optional[str]) -> bool:
    if not needle or not needle.strip():
        return True
    return needle.strip().casefold() in value.casefold()


def sort_records(
    records: Sequence[PackageRecord],
    sort_by: str = "name",
    descending: bool = False,
) -> List[PackageRecord]:
    """
    Order records by one field.

    Comparison is case-insensitive and stable. Unknown keys sort by name.
    """
    key = SORT_KEYS.get((sort_by or "").lower(), SORT_KEYS["name"])
    return sorted(records, key=lambda r: key(r).casefold(), reverse=descending)


class InventoryStore:
    """Shared package inventory."""

    def __init__(self, event_bus: Optional[EventBus] = None):
        self._lock = threading.Lock()
        self._records: List[PackageRecord] = []
        self._index: Dict[str, int] = {}
        self._recommended: set = set()
        self._generation = 0
        self.event_bus = event_bus

    # =========================================================================
    # Writers
    # =========================================================================

    def replace(self, records: Sequence[PackageRecord]) -> int:
        """
        Replace the whole inventory.

        Duplicate ids keep the first occurrence.

        Args:
            records: New records (copied)

        Returns:
            Generation number of the new snapshot
        """
        new_records: List[PackageRecord] = []
        new_index: Dict[str, int] = {}
        for record in records:
            if record.id in new_index:
                logger.debug(f"[inventory] Duplicate id {record.id} ignored")
                continue
            new_index[record.id] = len(new_records)
            new_records.append(record.copy())

        with self._lock:
            self._records = new_records
            self._index = new_index
            self._recommended = set()
            self._generation += 1
            generation = self._generation

        logger.info(f"[inventory] Replaced inventory with {len(new_records)} records")
        self._publish(InventoryEvent(
            type=EventType.REPLACED,
            data={"count": len(new_records), "generation": generation},
        ))
        return generation

    def clear(self) -> None:
        self.replace([])

    def update_status(self, package_id: str, status: str) -> bool:
        """
        Set the status of one record.

        Returns:
            False if the id is not in the current snapshot
        """
        with self._lock:
            index = self._index.get(package_id)
            if index is None:
                return False
            self._records[index].status = status

        self._publish(InventoryEvent(
            type=EventType.STATUS_CHANGED, package_id=package_id, message=status,
        ))
        return True

    def begin_research_cycle(self, package_ids: Sequence[str]) -> None:
        """Allow one new recommendation for each of the given ids."""
        with self._lock:
            for package_id in package_ids:
                self._recommended.discard(package_id)

    def set_recommendation(self, package_id: str, text: str) -> bool:
        """
        Write a recommendation, at most once per research cycle.

        Returns:
            False if the id is unknown or already has a recommendation
            for the current cycle
        """
        with self._lock:
            index = self._index.get(package_id)
            if index is None or package_id in self._recommended:
                return False
            self._records[index].recommendation = text
            self._recommended.add(package_id)

        self._publish(InventoryEvent(
            type=EventType.RECOMMENDATION_SET, package_id=package_id,
        ))
        return True

    def notify_progress(self, message: str, package_id: Optional[str] = None) -> None:
        """Announce batch progress to subscribers."""
        self._publish(InventoryEvent(type=EventType.PROGRESS, package_id=package_id, message=message))

    def notify_batch_finished(self, summary: Dict[str, Any]) -> None:
        self._publish(InventoryEvent(type=EventType.BATCH_FINISHED, data=dict(summary)))

    # =========================================================================
    # Readers
    # =========================================================================

    def snapshot(self) -> List[PackageRecord]:
        """Copy of the current records, in order."""
        with self._lock:
            return [record.copy() for record in self._records]

    def get(self, package_id: str) -> Optional[PackageRecord]:
        with self._lock:
            index = self._index.get(package_id)
            return self._records[index].copy() if index is not None else None

    def select(self, package_ids: Sequence[str]) -> List[PackageRecord]:
        """Copies of the requested records in inventory order; unknown ids are skipped."""
        wanted = set(package_ids)
        with self._lock:
            return [r.copy() for r in self._records if r.id in wanted]

    def filter(
        self,
        name: Optional[str] = None,
        package_id: Optional[str] = None,
        version: Optional[str] = None,
        status: Optional[str] = None,
        source: Optional[str] = None,
        has_update: Optional[bool] = None,
        sort_by: Optional[str] = None,
        descending: bool = False,
        limit: int = 0,
    ) -> List[PackageRecord]:
        """
        Filter the current snapshot.

        Text criteria are case-insensitive substring matches; blank criteria
        match everything. All given criteria must hold.

        Args:
            name: Substring of the display name
            package_id: Substring of the package id
            version: Substring of the installed version
            status: Substring of the status text
            source: Substring of the source
            has_update: Keep only records with (True) or without (False) an update
            sort_by: Sort key (name, id, version, available, status, source);
                inventory order is kept when omitted
            descending: Reverse the sort
            limit: Maximum number of results; 0 means no limit

        Returns:
            Matching record copies
        """
        matches = [
            r for r in self.snapshot()
            if _contains(r.name, name)
            and _contains(r.id, package_id)
            and _contains(r.installed_version, version)
            and _contains(r.status, status)
            and _contains(r.source, source)
            and (has_update is None or r.has_update == has_update)
        ]
        if sort_by:
            matches = sort_records(matches, sort_by, descending)
        if limit > 0:
            matches = matches[:limit]
        logger.debug(f"[inventory] Filter matched {len(matches)} records")
        return matches

    def sort(self, sort_by: str = "name", descending: bool = False) -> List[PackageRecord]:
        """Snapshot ordered by one field; see sort_records."""
        return sort_records(self.snapshot(), sort_by, descending)

    def suggestions(self, prefix: str, limit: int = 10) -> List[str]:
        """
        Names, ids and versions starting with a prefix.

        Args:
            prefix: Case-insensitive prefix; blank returns nothing
            limit: Maximum number of suggestions

        Returns:
            Distinct values in inventory order
        """
        needle = prefix.strip().casefold()
        if not needle or limit <= 0:
            return []
        found: List[str] = []
        for record in self.snapshot():
            for value in (record.name, record.id, record.installed_version):
                if value and value.casefold().startswith(needle) and value not in found:
                    found.append(value)
                    if len(found) >= limit:
                        return found
        return found

    def statistics(self) -> Dict[str, Any]:
        """
        Summary figures for the current snapshot.

        Returns:
            Dict with total, with_updates, by_source and name length figures
            (average, longest, shortest; all 0 for an empty inventory)
        """
        records = self.snapshot()
        by_source: Dict[str, int] = {}
        for record in records:
            by_source[record.source] = by_source.get(record.source, 0) + 1
        lengths = [len(r.name) for r in records]
        return {
            "total": len(records),
            "with_updates": sum(1 for r in records if r.has_update),
            "by_source": by_source,
            "average_name_length": sum(lengths) / len(lengths) if lengths else 0.0,
            "longest_name": max(lengths, default=0),
            "shortest_name": min(lengths, default=0),
        }

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _publish(self, event: InventoryEvent) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)
