"""Synthetic workflow driver."""

import asyncio

import pytest

from colourflow.chaos import ScriptedChaos, cycle
from colourflow.errors import RequestFailed
from colourflow.gateway import ApiGateway
from colourflow.transports import BaseTransport, InMemoryTransport
from colourflow.workflow import RunStatus, WorkflowDriver, WorkflowState


class ScriptedTransport(BaseTransport):
    """Answer each verb with a canned result or failure."""

    def __init__(self, fail=(), delay=None):
        self.fail = set(fail)
        self.delay = delay or {}
        self.calls = []

    async def request(self, method, body=None, query=None):
        self.calls.append((method, body, query))
        if method in self.delay:
            await asyncio.sleep(self.delay[method])
        if method in self.fail:
            raise RequestFailed(400, f"{method} rejected", "req")
        if method == "POST":
            return {"success": True, "itemId": f"item-{len(self.calls)}"}
        if method == "GET":
            return {"success": True, "data": {"count": 0, "items": []}}
        return {"success": True}

    def methods(self):
        return [c[0] for c in self.calls]


@pytest.mark.asyncio
async def test_failed_update_deletes_item():
    transport = ScriptedTransport(fail={"PUT"})
    driver = WorkflowDriver(transport, chaos=ScriptedChaos(), execution_names=lambda: "run-1")

    outcome = await driver.run(iterations=1)

    assert transport.methods() == ["POST", "PUT", "DELETE", "GET"]
    assert outcome.status is RunStatus.SUCCEEDED
    assert outcome.state.remaining == 0
    assert len(outcome.visits(WorkflowState.REDUCE)) == 1
    _, delete_body, _ = transport.calls[2]
    assert delete_body == {"itemId": "item-1", "correlationId": "run-1"}
    _, _, query = transport.calls[3]
    assert query == {"correlationId": "run-1"}


@pytest.mark.asyncio
async def test_failed_create_skips_update():
    transport = ScriptedTransport(fail={"POST"})
    driver = WorkflowDriver(transport, chaos=ScriptedChaos())

    outcome = await driver.run(iterations=3)

    assert transport.methods() == ["POST", "POST", "POST", "GET"]
    assert outcome.succeeded
    assert [s.output for s in outcome.visits(WorkflowState.REDUCE)] == [
        {"remaining": 2},
        {"remaining": 1},
        {"remaining": 0},
    ]


@pytest.mark.asyncio
async def test_successful_update_skips_delete():
    transport = ScriptedTransport()
    driver = WorkflowDriver(transport, chaos=ScriptedChaos())

    outcome = await driver.run(iterations=2)

    assert transport.methods() == ["POST", "PUT", "POST", "PUT", "GET"]
    assert outcome.state.last_created_id == "item-3"


@pytest.mark.asyncio
async def test_delete_failure_does_not_fail_run():
    transport = ScriptedTransport(fail={"PUT", "DELETE"})
    driver = WorkflowDriver(transport, chaos=ScriptedChaos())

    outcome = await driver.run(iterations=1)

    assert outcome.succeeded
    assert outcome.visits(WorkflowState.DELETE)[0].status == "failed"


@pytest.mark.asyncio
async def test_read_failure_fails_run():
    transport = ScriptedTransport(fail={"GET"})
    driver = WorkflowDriver(transport, chaos=ScriptedChaos())

    outcome = await driver.run(iterations=1)

    assert outcome.status is RunStatus.FAILED
    assert outcome.steps[-1].name is WorkflowState.FAILED
    assert "GET rejected" in outcome.error


@pytest.mark.asyncio
async def test_call_timeout_counts_as_failure():
    transport = ScriptedTransport(delay={"PUT": 1})
    driver = WorkflowDriver(transport, chaos=ScriptedChaos(), call_timeout=0.01)

    outcome = await driver.run(iterations=1)

    assert transport.methods() == ["POST", "PUT", "DELETE", "GET"]
    assert "Timed out" in outcome.visits(WorkflowState.UPDATE)[0].error


@pytest.mark.asyncio
async def test_run_timeout():
    transport = ScriptedTransport(delay={"POST": 0.05})
    driver = WorkflowDriver(transport, chaos=ScriptedChaos(), run_timeout=0.02)

    outcome = await driver.run(iterations=5)

    assert outcome.status is RunStatus.TIMED_OUT
    assert outcome.state.remaining == 5
    interrupted = outcome.steps[-1]
    assert interrupted.name is WorkflowState.CREATE
    assert interrupted.status == "aborted"
    assert interrupted.completed_at is not None


@pytest.mark.asyncio
async def test_rejects_non_positive_iterations():
    driver = WorkflowDriver(ScriptedTransport())
    with pytest.raises(ValueError):
        await driver.run(iterations=0)


@pytest.mark.asyncio
async def test_randomized_inputs_come_from_chaos():
    transport = ScriptedTransport()
    chaos = ScriptedChaos(fail=lambda: False, colour=cycle(True, False))
    driver = WorkflowDriver(transport, chaos=chaos, execution_names=lambda: "run-2")

    await driver.run(iterations=1)

    _, create_body, _ = transport.calls[0]
    assert create_body == {
        "correlationId": "run-2",
        "isRed": True,
        "isBlue": False,
        "throwError": False,
    }


@pytest.mark.asyncio
async def test_run_against_record_service(service, store):
    # Every write is RED; the failure flag cycles so the run mixes a failed
    # update, a failed create and clean cycles.
    service.chaos = ScriptedChaos()
    transport = InMemoryTransport(ApiGateway(service))
    chaos = ScriptedChaos(fail=cycle(False, True, False), colour=cycle(True, False))
    driver = WorkflowDriver(transport, chaos=chaos, execution_names=lambda: "batch-1")

    outcome = await driver.run(iterations=4)

    assert outcome.succeeded
    stored = await store.query_by_correlation_id("batch-1")
    assert outcome.result["count"] == len(stored)
    assert all(r.correlation_id == "batch-1" for r in stored)
    methods = [m for m, _ in transport.calls]
    assert methods[-1] == "GET"
    assert methods.count("DELETE") == len(outcome.visits(WorkflowState.DELETE))


@pytest.mark.asyncio
async def test_inmemory_transport_keeps_recent_calls_only(service):
    transport = InMemoryTransport(ApiGateway(service), history=3)

    for n in range(5):
        await transport.request("POST", body={"isRed": True, "correlationId": f"c{n}"})

    assert [body["correlationId"] for _, body in transport.calls] == ["c2", "c3", "c4"]
