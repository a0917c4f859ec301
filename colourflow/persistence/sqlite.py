"""SQLite implementation of the record store."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .models import ColourRecord
from .store import Precondition, PreconditionFailed, RecordStore

_COLUMNS = "ItemId, Colour, CorrelationId, UpdateTime, ExpiryTime"


class SQLiteRecordStore(RecordStore):
    """Persist colour records using SQLite."""

    def __init__(self, db_path: str | Path, table_name: str = "items"):
        self.db_path = str(db_path)
        self.table_name = table_name
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                ItemId TEXT PRIMARY KEY,
                Colour TEXT NOT NULL,
                CorrelationId TEXT NOT NULL,
                UpdateTime TEXT NOT NULL,
                ExpiryTime INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            f"CREATE INDEX IF NOT EXISTS {self.table_name}_correlation "
            f"ON {self.table_name} (CorrelationId, ItemId)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
            return cur.rowcount

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    @staticmethod
    def _to_record(row: sqlite3.Row) -> ColourRecord:
        return ColourRecord.model_validate(dict(row))

    def _write(self, record: ColourRecord, precondition: Precondition) -> None:
        item = record.to_item()
        values = (
            item["ItemId"],
            item["Colour"],
            item["CorrelationId"],
            item["UpdateTime"],
            item["ExpiryTime"],
        )
        if precondition is Precondition.REQUIRE_EXISTS:
            changed = self._execute(
                f"UPDATE {self.table_name} SET Colour = ?, CorrelationId = ?, "
                "UpdateTime = ?, ExpiryTime = ? WHERE ItemId = ?",
                *values[1:],
                values[0],
            )
        elif precondition is Precondition.REQUIRE_ABSENT:
            changed = self._execute(
                f"INSERT INTO {self.table_name} ({_COLUMNS}) VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(ItemId) DO NOTHING",
                *values,
            )
        else:
            changed = self._execute(
                f"INSERT OR REPLACE INTO {self.table_name} ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?)",
                *values,
            )
        if changed == 0:
            raise PreconditionFailed(record.item_id, precondition)

    def _remove(self, item_id: str, precondition: Precondition) -> None:
        if precondition is Precondition.REQUIRE_ABSENT:
            rows = self._fetchall(
                f"SELECT ItemId FROM {self.table_name} WHERE ItemId = ?", item_id
            )
            if rows:
                raise PreconditionFailed(item_id, precondition)
            return
        changed = self._execute(
            f"DELETE FROM {self.table_name} WHERE ItemId = ?", item_id
        )
        if changed == 0 and precondition is Precondition.REQUIRE_EXISTS:
            raise PreconditionFailed(item_id, precondition)

    # ------------------------------------------------------------------
    # Store API
    async def get(self, item_id: str) -> ColourRecord | None:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_COLUMNS} FROM {self.table_name} WHERE ItemId = ?",
            item_id,
        )
        return self._to_record(rows[0]) if rows else None

    async def put(
        self, record: ColourRecord, precondition: Precondition = Precondition.NONE
    ) -> None:
        await asyncio.to_thread(self._write, record, precondition)

    async def delete(
        self, item_id: str, precondition: Precondition = Precondition.NONE
    ) -> None:
        await asyncio.to_thread(self._remove, item_id, precondition)

    async def scan(self) -> list[ColourRecord]:
        rows = await asyncio.to_thread(
            self._fetchall, f"SELECT {_COLUMNS} FROM {self.table_name}"
        )
        return [self._to_record(r) for r in rows]

    async def query_by_correlation_id(self, correlation_id: str) -> list[ColourRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_COLUMNS} FROM {self.table_name} "
            "WHERE CorrelationId = ? ORDER BY ItemId",
            correlation_id,
        )
        return [self._to_record(r) for r in rows]

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop expired records the way the table's TTL sweeper would."""
        now = now or datetime.now(timezone.utc)
        return await asyncio.to_thread(
            self._execute,
            f"DELETE FROM {self.table_name} WHERE ExpiryTime <= ?",
            int(now.timestamp()),
        )

    def close(self) -> None:
        self._conn.close()
