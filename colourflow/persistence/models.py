"""Data models for persisted colour records."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Colour(str, Enum):
    """Classification assigned to every record at write time."""

    RED = "RED"
    BLUE = "BLUE"
    BLACK = "BLACK"
    PURPLE = "PURPLE"


class ColourRecord(BaseModel):
    """A stored colour entry, serialized with the table's attribute names."""

    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(alias="ItemId")
    colour: Colour = Field(alias="Colour")
    correlation_id: str = Field(alias="CorrelationId")
    update_time: str = Field(alias="UpdateTime")
    expiry_time: int = Field(alias="ExpiryTime")

    @classmethod
    def stamp(
        cls,
        item_id: str,
        colour: Colour,
        correlation_id: str,
        retention_days: int,
        now: Optional[datetime] = None,
    ) -> "ColourRecord":
        """Build a record written at ``now`` that expires after ``retention_days``."""
        now = now or datetime.now(timezone.utc)
        return cls(
            item_id=item_id,
            colour=colour,
            correlation_id=correlation_id,
            update_time=now.isoformat(timespec="seconds"),
            expiry_time=int((now + timedelta(days=retention_days)).timestamp()),
        )

    def to_item(self) -> dict:
        """Return the record keyed by table attribute names."""
        return self.model_dump(by_alias=True, mode="json")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expiry_time <= int(now.timestamp())
