"""Store abstraction for colour records."""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from .models import ColourRecord


class Precondition(str, Enum):
    """Existence check the store applies atomically with a write."""

    NONE = "none"
    REQUIRE_ABSENT = "require_absent"
    REQUIRE_EXISTS = "require_exists"


class StoreError(Exception):
    """Unexpected failure inside a store backend."""


class PreconditionFailed(StoreError):
    """The conditional write precondition did not hold."""

    def __init__(self, item_id: str, precondition: Precondition) -> None:
        super().__init__(f"{precondition.value} failed for {item_id}")
        self.item_id = item_id
        self.precondition = precondition


class RecordStore(Protocol):
    """Protocol for colour record persistence backends."""

    async def get(self, item_id: str) -> ColourRecord | None:
        """Return the record stored under ``item_id``."""

    async def put(
        self, record: ColourRecord, precondition: Precondition = Precondition.NONE
    ) -> None:
        """Write ``record``, enforcing ``precondition`` atomically."""

    async def delete(
        self, item_id: str, precondition: Precondition = Precondition.NONE
    ) -> None:
        """Remove the record, enforcing ``precondition`` atomically."""

    async def scan(self) -> list[ColourRecord]:
        """Return every record in the collection."""

    async def query_by_correlation_id(self, correlation_id: str) -> list[ColourRecord]:
        """Return records whose correlation id matches."""


def check_precondition(
    item_id: str, exists: bool, precondition: Precondition
) -> None:
    """Raise :class:`PreconditionFailed` when ``exists`` violates ``precondition``."""
    if precondition is Precondition.REQUIRE_ABSENT and exists:
        raise PreconditionFailed(item_id, precondition)
    if precondition is Precondition.REQUIRE_EXISTS and not exists:
        raise PreconditionFailed(item_id, precondition)
