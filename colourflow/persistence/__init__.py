"""Persistence layer for colour records."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ColourflowConfig, load_config
from .inmemory import InMemoryRecordStore
from .models import Colour, ColourRecord
from .sqlite import SQLiteRecordStore
from .store import Precondition, PreconditionFailed, RecordStore, StoreError

_store_instance: RecordStore | None = None


def get_store(
    database_url: Optional[str] = None, config: Optional[ColourflowConfig] = None
) -> RecordStore:
    """Factory function to obtain a record store.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``COLOURFLOW_DATABASE_URL``, or from
    loaded configuration. When no database is configured, an in-memory store
    is returned.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("COLOURFLOW_DATABASE_URL")
        or getattr(config, "database_url", None)
    )
    table_name = config.table_name or "items"

    if not database_url:
        _store_instance = InMemoryRecordStore()
        return _store_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteRecordStore(path, table_name=table_name)
    elif database_url.startswith("dynamodb://"):
        from .dynamodb import DynamoRecordStore

        name = database_url.replace("dynamodb://", "", 1) or table_name
        _store_instance = DynamoRecordStore(
            name, endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL")
        )
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _store_instance


__all__ = [
    "Colour",
    "ColourRecord",
    "InMemoryRecordStore",
    "Precondition",
    "PreconditionFailed",
    "RecordStore",
    "SQLiteRecordStore",
    "StoreError",
    "get_store",
]
