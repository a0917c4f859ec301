"""Synthetic workflow driver.

Drives a batch of create/update/delete calls through the record API under a
single correlation token and finishes with a read of everything the batch
wrote::

    StartPass -> CreateItem -> UpdateItem -> (DeleteItem | ReduceCount)
        -> CountChoice -> (CreateItem | GetItems) -> Success | Failed

Create and update failures never abort the run: a failed create skips to
``ReduceCount`` and a failed update deletes the item first. Only a failing
``GetItems`` fails the run.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .chaos import Chaos, RandomChaos
from .config import ColourflowConfig
from .constants import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_ITERATIONS,
    DEFAULT_RUN_TIMEOUT_SECONDS,
)
from .transports import BaseTransport

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    START = "StartPass"
    CREATE = "CreateItem"
    UPDATE = "UpdateItem"
    DELETE = "DeleteItem"
    REDUCE = "ReduceCount"
    COUNT_CHECK = "CountChoice"
    READ = "GetItems"
    SUCCESS = "Success"
    FAILED = "Failed"


TERMINAL_STATES = (WorkflowState.SUCCESS, WorkflowState.FAILED)


class RunStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


class RunState(BaseModel):
    """Mutable state carried between steps of one run."""

    correlation_id: str
    total: int
    remaining: int
    last_created_id: str = ""


class StepRecord(BaseModel):
    """Record of one visited state."""

    name: WorkflowState
    status: str = "completed"
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class RunOutcome(BaseModel):
    """Result and history of a workflow run."""

    execution_name: str
    status: RunStatus = RunStatus.RUNNING
    state: RunState
    steps: List[StepRecord] = Field(default_factory=list)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    def visits(self, name: WorkflowState) -> List[StepRecord]:
        return [s for s in self.steps if s.name is name]


StepHandler = Callable[[RunState, RunOutcome], Awaitable[WorkflowState]]


class WorkflowDriver:
    """Run the synthetic test workflow against a transport.

    Args:
        transport: Client side of the record API.
        chaos: Strategy deciding colour flags and injected failures.
        call_timeout: Seconds allowed for each API call; a timeout counts as
            a failed call.
        run_timeout: Wall-clock ceiling for the whole run.
        execution_names: Generates the run name, which is also the
            correlation token of every request in the run.
    """

    def __init__(
        self,
        transport: BaseTransport,
        chaos: Optional[Chaos] = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS,
        run_timeout: float = DEFAULT_RUN_TIMEOUT_SECONDS,
        execution_names: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._transport = transport
        self._chaos = chaos or RandomChaos()
        self.call_timeout = call_timeout
        self.run_timeout = run_timeout
        self._execution_names = execution_names
        self._handlers: Dict[WorkflowState, StepHandler] = {
            WorkflowState.CREATE: self._create_item,
            WorkflowState.UPDATE: self._update_item,
            WorkflowState.DELETE: self._delete_item,
            WorkflowState.REDUCE: self._reduce_count,
            WorkflowState.COUNT_CHECK: self._count_choice,
            WorkflowState.READ: self._get_items,
        }

    async def run(self, iterations: int = DEFAULT_ITERATIONS) -> RunOutcome:
        """Execute one run of ``iterations`` create/update cycles."""
        if iterations < 1:
            raise ValueError("iterations must be at least 1")

        execution_name = self._execution_names()
        state = RunState(
            correlation_id=execution_name, total=iterations, remaining=iterations
        )
        outcome = RunOutcome(execution_name=execution_name, state=state)
        outcome.steps.append(
            StepRecord(
                name=WorkflowState.START,
                completed_at=datetime.now(timezone.utc),
                output=state.model_dump(),
            )
        )
        logger.info(f"Starting workflow for correlation_id={execution_name}")

        try:
            await asyncio.wait_for(self._execute(state, outcome), self.run_timeout)
        except asyncio.TimeoutError:
            outcome.status = RunStatus.TIMED_OUT
            outcome.error = f"Run exceeded {self.run_timeout}s"
            logger.error(
                f"Workflow timed out for correlation_id={execution_name} "
                f"with {state.remaining} iterations remaining"
            )
        return outcome

    async def _execute(self, state: RunState, outcome: RunOutcome) -> None:
        step = WorkflowState.CREATE
        while step not in TERMINAL_STATES:
            step = await self._handlers[step](state, outcome)

        outcome.steps.append(
            StepRecord(name=step, completed_at=datetime.now(timezone.utc))
        )
        outcome.status = (
            RunStatus.SUCCEEDED if step is WorkflowState.SUCCESS else RunStatus.FAILED
        )
        logger.info(
            f"Workflow {outcome.status.value.lower()} for correlation_id={state.correlation_id}"
        )

    # ------------------------------------------------------------------
    # Calls
    def _random_write(self, state: RunState) -> Dict[str, Any]:
        return {
            "correlationId": state.correlation_id,
            "isRed": self._chaos.pick_colour(),
            "isBlue": self._chaos.pick_colour(),
            "throwError": self._chaos.should_fail(),
        }

    async def _call(
        self,
        name: WorkflowState,
        outcome: RunOutcome,
        method: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> Tuple[bool, Dict[str, Any]]:
        """Issue one API call and record it; failures become ``(False, {})``."""
        step = StepRecord(name=name)
        outcome.steps.append(step)
        try:
            result = await asyncio.wait_for(
                self._transport.request(method, body=body, query=query),
                self.call_timeout,
            )
        except asyncio.TimeoutError:
            step.status = "failed"
            step.error = f"Timed out after {self.call_timeout}s"
        except asyncio.CancelledError:
            step.status = "aborted"
            step.error = "Cancelled before the call completed"
            step.completed_at = datetime.now(timezone.utc)
            raise
        except Exception as e:
            step.status = "failed"
            step.error = str(e) or e.__class__.__name__
        else:
            step.output = result
        step.completed_at = datetime.now(timezone.utc)

        if step.status == "failed":
            logger.warning(
                f"{name.value} failed for correlation_id={outcome.state.correlation_id}: {step.error}"
            )
            return False, {}
        return True, result

    # ------------------------------------------------------------------
    # States
    async def _create_item(self, state: RunState, outcome: RunOutcome) -> WorkflowState:
        ok, result = await self._call(
            WorkflowState.CREATE, outcome, "POST", body=self._random_write(state)
        )
        if not ok:
            return WorkflowState.REDUCE
        state.last_created_id = result.get("itemId") or result.get("requestId", "")
        return WorkflowState.UPDATE

    async def _update_item(self, state: RunState, outcome: RunOutcome) -> WorkflowState:
        body = {"itemId": state.last_created_id, **self._random_write(state)}
        ok, _ = await self._call(WorkflowState.UPDATE, outcome, "PUT", body=body)
        return WorkflowState.REDUCE if ok else WorkflowState.DELETE

    async def _delete_item(self, state: RunState, outcome: RunOutcome) -> WorkflowState:
        body = {"itemId": state.last_created_id, "correlationId": state.correlation_id}
        await self._call(WorkflowState.DELETE, outcome, "DELETE", body=body)
        return WorkflowState.REDUCE

    async def _reduce_count(self, state: RunState, outcome: RunOutcome) -> WorkflowState:
        state.remaining -= 1
        outcome.steps.append(
            StepRecord(
                name=WorkflowState.REDUCE,
                completed_at=datetime.now(timezone.utc),
                output={"remaining": state.remaining},
            )
        )
        return WorkflowState.COUNT_CHECK

    async def _count_choice(self, state: RunState, outcome: RunOutcome) -> WorkflowState:
        outcome.steps.append(
            StepRecord(
                name=WorkflowState.COUNT_CHECK, completed_at=datetime.now(timezone.utc)
            )
        )
        return WorkflowState.CREATE if state.remaining > 0 else WorkflowState.READ

    async def _get_items(self, state: RunState, outcome: RunOutcome) -> WorkflowState:
        ok, result = await self._call(
            WorkflowState.READ,
            outcome,
            "GET",
            query={"correlationId": state.correlation_id},
        )
        if not ok:
            outcome.error = outcome.steps[-1].error
            return WorkflowState.FAILED
        outcome.result = result.get("data")
        return WorkflowState.SUCCESS


def build_driver(
    transport: BaseTransport,
    config: Optional[ColourflowConfig] = None,
    chaos: Optional[Chaos] = None,
) -> WorkflowDriver:
    """Assemble a :class:`WorkflowDriver` from configuration."""
    config = config or ColourflowConfig()
    wf = config.workflow
    return WorkflowDriver(
        transport,
        chaos=chaos
        or RandomChaos(
            failure_probability=wf.failure_probability,
            colour_probability=wf.colour_probability,
        ),
        call_timeout=wf.call_timeout_seconds,
        run_timeout=wf.timeout_seconds,
    )
