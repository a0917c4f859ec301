"""In-memory implementation of the record store."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Dict, Optional, Set

from .models import ColourRecord
from .store import Precondition, RecordStore, check_precondition


class InMemoryRecordStore(RecordStore):
    """Store records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._items: Dict[str, ColourRecord] = {}
        self._by_correlation: Dict[str, Set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    def _unindex(self, item_id: str) -> None:
        previous = self._items.get(item_id)
        if previous is None:
            return
        ids = self._by_correlation[previous.correlation_id]
        ids.discard(item_id)
        if not ids:
            del self._by_correlation[previous.correlation_id]

    async def get(self, item_id: str) -> ColourRecord | None:
        record = self._items.get(item_id)
        return record.model_copy() if record else None

    async def put(
        self, record: ColourRecord, precondition: Precondition = Precondition.NONE
    ) -> None:
        async with self._lock:
            check_precondition(record.item_id, record.item_id in self._items, precondition)
            self._unindex(record.item_id)
            self._items[record.item_id] = record.model_copy()
            self._by_correlation[record.correlation_id].add(record.item_id)

    async def delete(
        self, item_id: str, precondition: Precondition = Precondition.NONE
    ) -> None:
        async with self._lock:
            check_precondition(item_id, item_id in self._items, precondition)
            self._unindex(item_id)
            self._items.pop(item_id, None)

    async def scan(self) -> list[ColourRecord]:
        return [r.model_copy() for r in self._items.values()]

    async def query_by_correlation_id(self, correlation_id: str) -> list[ColourRecord]:
        ids = sorted(self._by_correlation.get(correlation_id, ()))
        return [self._items[i].model_copy() for i in ids if i in self._items]

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop expired records the way the table's TTL sweeper would."""
        async with self._lock:
            expired = [i for i, r in self._items.items() if r.is_expired(now)]
            for item_id in expired:
                self._unindex(item_id)
                del self._items[item_id]
        return len(expired)
