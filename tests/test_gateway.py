"""Routing layer and handler boundary."""

import asyncio
import json

import pytest

from colourflow.errors import ClientError, HandlerError, InternalError
from colourflow.gateway import ApiGateway
from colourflow.handlers import read_handler, write_handler


@pytest.mark.asyncio
async def test_handler_packs_error_into_message(service):
    event = {
        "context": {"requestId": "req-1", "httpMethod": "PUT"},
        "params": {"isRed": True},
    }

    with pytest.raises(HandlerError) as info:
        await write_handler(service, event)

    assert json.loads(str(info.value)) == {
        "statusCode": 400,
        "message": "itemId is required for an update",
        "requestId": "req-1",
    }


@pytest.mark.asyncio
async def test_handler_returns_camel_case_payload(service):
    event = {
        "context": {"requestId": "req-1", "httpMethod": "POST"},
        "params": {"isBlue": True, "correlationId": "batch"},
    }

    result = await write_handler(service, event)

    assert result == {
        "success": True,
        "requestId": "req-1",
        "itemId": "req-1",
        "correlationId": "batch",
        "colour": "BLUE",
    }

    read = await read_handler(
        service, {"context": {"requestId": "req-2"}, "params": {"correlationId": "batch"}}
    )
    assert read["data"]["count"] == 1
    assert read["data"]["items"][0]["ItemId"] == "req-1"


@pytest.mark.asyncio
async def test_gateway_routes_verbs(service):
    ids = iter(["create-1", "update-1", "read-1", "delete-1"])
    gateway = ApiGateway(service, request_ids=lambda: next(ids))

    created = await gateway.handle("POST", body={"isRed": True, "correlationId": "c"})
    assert created.status_code == 200
    assert created.body["itemId"] == "create-1"

    updated = await gateway.handle(
        "PUT", body={"itemId": "create-1", "isBlue": True, "correlationId": "c"}
    )
    assert updated.body["colour"] == "BLUE"

    read = await gateway.handle("GET", query={"correlationId": "c", "itemId": ""})
    assert read.body["data"]["count"] == 1

    deleted = await gateway.handle("DELETE", body={"itemId": "create-1"})
    assert deleted.ok
    assert deleted.body["correlationId"] == "delete-1"


@pytest.mark.asyncio
async def test_gateway_maps_client_and_internal_errors(gateway):
    client = await gateway.handle("PUT", body={"itemId": "ghost", "isRed": True})
    assert client.status_code == 400
    assert client.body["errorMessage"] == "ghost does not exist"

    internal = await gateway.handle("POST", body={"isRed": True, "throwError": True})
    assert internal.status_code == 500
    assert internal.body["errorMessage"] == "Internal Error"
    assert internal.body["requestId"]


@pytest.mark.asyncio
async def test_gateway_rejects_malformed_parameters_as_client_error(gateway, metrics, traces):
    update = await gateway.handle("PUT", body={"itemId": 123, "isRed": True})
    assert update.status_code == 400
    assert "itemId" in update.body["errorMessage"]
    assert metrics.count("WARNING", function_name="CreateFnc") == 1
    assert metrics.count("ERROR") == 0

    create = await gateway.handle("POST", body={"isRed": "maybe", "correlationId": "batch"})
    assert create.status_code == 400
    assert "isRed" in create.body["errorMessage"]
    assert metrics.count("WARNING") == 2
    assert traces.find("correlationId", "batch")


def test_map_error_falls_back_to_selection_pattern():
    assert ApiGateway.map_error(ClientError("bad", "r1").packed()).status_code == 400
    assert ApiGateway.map_error(InternalError("boom", "r1").packed()).status_code == 500
    assert ApiGateway.map_error("Error:404 not here").status_code == 400
    assert ApiGateway.map_error("kaboom").status_code == 500


@pytest.mark.asyncio
async def test_gateway_rejects_unknown_verb(gateway):
    response = await gateway.handle("PATCH", body={})
    assert response.status_code == 405


@pytest.mark.asyncio
async def test_gateway_times_out_slow_handler(service, monkeypatch):
    async def slow_read(params, ctx=None):
        await asyncio.sleep(1)

    monkeypatch.setattr(service, "read", slow_read)
    gateway = ApiGateway(service, timeouts={"read": 0.01})

    response = await gateway.handle("GET", query={})

    assert response.status_code == 500
    assert response.body["errorMessage"] == "Internal Error"
