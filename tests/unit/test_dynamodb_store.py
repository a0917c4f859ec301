from decimal import Decimal

import pytest

pytest.importorskip("boto3")
botocore_exceptions = pytest.importorskip("botocore.exceptions")

from colourflow.persistence import Colour, ColourRecord, Precondition, PreconditionFailed, StoreError
from colourflow.persistence.dynamodb import DynamoRecordStore


def _client_error(code: str):
    return botocore_exceptions.ClientError(
        {"Error": {"Code": code, "Message": code}}, "PutItem"
    )


class FakeTable:
    def __init__(self):
        self.calls = []
        self.fail_with = None
        self.pages = []

    def put_item(self, **kwargs):
        self.calls.append(("put_item", kwargs))
        if self.fail_with:
            raise _client_error(self.fail_with)
        return {}

    def delete_item(self, **kwargs):
        self.calls.append(("delete_item", kwargs))
        if self.fail_with:
            raise _client_error(self.fail_with)
        return {}

    def get_item(self, **kwargs):
        return {}

    def scan(self, **kwargs):
        self.calls.append(("scan", kwargs))
        return self.pages.pop(0)

    def query(self, **kwargs):
        self.calls.append(("query", kwargs))
        return self.pages.pop(0)


def _item(item_id):
    return {
        "ItemId": item_id,
        "Colour": "BLUE",
        "CorrelationId": "batch",
        "UpdateTime": "2024-05-01T00:00:00+00:00",
        "ExpiryTime": Decimal("1717200000"),
    }


@pytest.mark.asyncio
async def test_put_uses_condition_expressions():
    table = FakeTable()
    store = DynamoRecordStore("ToolsDemoTable", table=table)
    rec = ColourRecord.model_validate({**_item("a"), "ExpiryTime": 1717200000})

    await store.put(rec, Precondition.REQUIRE_ABSENT)
    await store.put(rec, Precondition.REQUIRE_EXISTS)
    await store.put(rec)

    conditions = [c[1].get("ConditionExpression") for c in table.calls]
    assert conditions == [
        "attribute_not_exists(ItemId)",
        "attribute_exists(ItemId)",
        None,
    ]


@pytest.mark.asyncio
async def test_conditional_failure_maps_to_precondition():
    table = FakeTable()
    table.fail_with = "ConditionalCheckFailedException"
    store = DynamoRecordStore("ToolsDemoTable", table=table)

    with pytest.raises(PreconditionFailed):
        await store.delete("a", Precondition.REQUIRE_EXISTS)

    table.fail_with = "ProvisionedThroughputExceededException"
    with pytest.raises(StoreError):
        await store.delete("a", Precondition.REQUIRE_EXISTS)


@pytest.mark.asyncio
async def test_query_follows_pages():
    table = FakeTable()
    table.pages = [
        {"Items": [_item("a")], "LastEvaluatedKey": {"ItemId": "a"}},
        {"Items": [_item("b")]},
    ]
    store = DynamoRecordStore("ToolsDemoTable", table=table)

    records = await store.query_by_correlation_id("batch")

    assert [r.item_id for r in records] == ["a", "b"]
    assert records[0].colour is Colour.BLUE
    assert records[0].expiry_time == 1717200000
    first, second = table.calls
    assert first[1]["IndexName"] == "CorrelationId"
    assert second[1]["ExclusiveStartKey"] == {"ItemId": "a"}
