"""DynamoDB implementation of the record store."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Dict, Optional

try:
    import boto3
    from botocore.exceptions import BotoCoreError
    from botocore.exceptions import ClientError as BotoClientError
except ImportError:
    boto3 = None
    BotoClientError = BotoCoreError = None

from ..constants import CORRELATION_INDEX
from .models import ColourRecord
from .store import Precondition, PreconditionFailed, RecordStore, StoreError

_CONDITIONS = {
    Precondition.REQUIRE_ABSENT: "attribute_not_exists(ItemId)",
    Precondition.REQUIRE_EXISTS: "attribute_exists(ItemId)",
}
_BOTO_ERRORS = tuple(e for e in (BotoClientError, BotoCoreError) if e is not None)


def _error_code(exc: Exception) -> str:
    if BotoClientError is None or not isinstance(exc, BotoClientError):
        return ""
    return exc.response.get("Error", {}).get("Code", "")


def _from_item(item: Dict[str, Any]) -> ColourRecord:
    expiry = item.get("ExpiryTime")
    if isinstance(expiry, Decimal):
        item = {**item, "ExpiryTime": int(expiry)}
    return ColourRecord.model_validate(item)


class DynamoRecordStore(RecordStore):
    """Persist colour records in a DynamoDB table keyed by ``ItemId``.

    The table is expected to carry a global secondary index named
    ``CorrelationId`` with ``CorrelationId`` as partition key.
    """

    def __init__(
        self,
        table_name: str,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        table: Any = None,
    ) -> None:
        if table is None and boto3 is None:
            raise ImportError("boto3 package is required for DynamoRecordStore")

        self.table_name = table_name
        self._table = table or boto3.resource(
            "dynamodb", region_name=region_name, endpoint_url=endpoint_url
        ).Table(table_name)

    # ------------------------------------------------------------------
    def _conditional(self, precondition: Precondition) -> Dict[str, str]:
        condition = _CONDITIONS.get(precondition)
        return {"ConditionExpression": condition} if condition else {}

    def _call(self, item_id: str, precondition: Precondition, fn, **kwargs) -> Any:
        try:
            return fn(**kwargs)
        except Exception as exc:
            code = _error_code(exc)
            if code == "ConditionalCheckFailedException" or (
                code == "ResourceNotFoundException"
                and precondition is Precondition.REQUIRE_EXISTS
            ):
                raise PreconditionFailed(item_id, precondition) from exc
            if isinstance(exc, _BOTO_ERRORS):
                raise StoreError(f"DynamoDB request failed: {exc}") from exc
            raise

    def _collect(self, fn, **kwargs) -> list[ColourRecord]:
        records: list[ColourRecord] = []
        while True:
            page = self._call("", Precondition.NONE, fn, **kwargs)
            records.extend(_from_item(i) for i in page.get("Items", []))
            last_key = page.get("LastEvaluatedKey")
            if not last_key:
                return records
            kwargs["ExclusiveStartKey"] = last_key

    # ------------------------------------------------------------------
    async def get(self, item_id: str) -> ColourRecord | None:
        response = await asyncio.to_thread(
            self._call,
            item_id,
            Precondition.NONE,
            self._table.get_item,
            Key={"ItemId": item_id},
        )
        item = response.get("Item")
        return _from_item(item) if item else None

    async def put(
        self, record: ColourRecord, precondition: Precondition = Precondition.NONE
    ) -> None:
        await asyncio.to_thread(
            self._call,
            record.item_id,
            precondition,
            self._table.put_item,
            Item=record.to_item(),
            **self._conditional(precondition),
        )

    async def delete(
        self, item_id: str, precondition: Precondition = Precondition.NONE
    ) -> None:
        await asyncio.to_thread(
            self._call,
            item_id,
            precondition,
            self._table.delete_item,
            Key={"ItemId": item_id},
            **self._conditional(precondition),
        )

    async def scan(self) -> list[ColourRecord]:
        # Usually not a good idea to scan but the collection is small.
        return await asyncio.to_thread(self._collect, self._table.scan)

    async def query_by_correlation_id(self, correlation_id: str) -> list[ColourRecord]:
        return await asyncio.to_thread(
            self._collect,
            self._table.query,
            IndexName=CORRELATION_INDEX,
            KeyConditionExpression="CorrelationId = :id",
            ExpressionAttributeValues={":id": correlation_id},
        )
