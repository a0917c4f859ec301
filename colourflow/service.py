"""Record service: validation, colour classification and persistence."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from pydantic import ValidationError

from .chaos import Chaos, RandomChaos
from .config import ColourflowConfig
from .constants import DEFAULT_LOG_EXPIRY_DAYS
from .contracts import (
    DeleteParams,
    DeleteResult,
    ReadData,
    ReadParams,
    ReadResult,
    RequestContext,
    WriteParams,
    WriteResult,
)
from .errors import ClientError, InternalError, RecordServiceError
from .persistence import (
    Colour,
    ColourRecord,
    Precondition,
    PreconditionFailed,
    RecordStore,
)
from .telemetry import OperationScope, Telemetry

WRITE_FUNCTION = "CreateFnc"
READ_FUNCTION = "ReadFnc"
DELETE_FUNCTION = "DeleteFnc"

COLOUR_FEATURE = {"feature": "colourPicker"}


def classify(is_red: bool, is_blue: bool) -> Tuple[Colour, Optional[str]]:
    """Map the two colour flags to a colour and an optional rejection reason."""
    if is_red and is_blue:
        return Colour.PURPLE, "Invalid colour choices"
    if not is_red and not is_blue:
        return Colour.BLACK, "Missing colour choice"
    return (Colour.RED if is_red else Colour.BLUE), None


def _as_context(ctx: Optional[RequestContext], method: str) -> RequestContext:
    ctx = ctx or RequestContext()
    return ctx.model_copy(update={"http_method": method})


class RecordService:
    """Create, update, delete and read colour records.

    Operations are independent of each other and hold no state between
    calls; consistency between concurrent writers comes from the store's
    conditional write. Failures are raised as :class:`ClientError` or
    :class:`InternalError` after being logged and counted.
    """

    def __init__(
        self,
        store: Optional[RecordStore],
        telemetry: Optional[Telemetry] = None,
        chaos: Optional[Chaos] = None,
        retention_days: int = DEFAULT_LOG_EXPIRY_DAYS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.store = store
        self.telemetry = telemetry or Telemetry()
        self.chaos = chaos or RandomChaos()
        self.retention_days = retention_days
        self._clock = clock

    # ------------------------------------------------------------------
    # Public operations
    async def create(
        self, params: WriteParams, ctx: Optional[RequestContext] = None
    ) -> WriteResult:
        return await self.write(_as_context(ctx, "POST"), params)

    async def update(
        self, params: WriteParams, ctx: Optional[RequestContext] = None
    ) -> WriteResult:
        return await self.write(_as_context(ctx, "PUT"), params)

    async def write(self, ctx: RequestContext, params: WriteParams) -> WriteResult:
        """Create (POST) or update (PUT) a record depending on ``ctx.http_method``."""
        request_id = ctx.request_id
        correlation_id = params.correlation_id or request_id

        with self.telemetry.scope(WRITE_FUNCTION, request_id) as scope:
            scope.bind_correlation_id(correlation_id)
            with self._reporting(scope, params):
                self._check_ready()
                if self._inject_failure(params):
                    raise InternalError("You asked me to throw an error")

                if ctx.http_method not in ("POST", "PUT"):
                    raise InternalError("Invalid method")
                create_record = ctx.http_method == "POST"

                if not create_record and not params.item_id:
                    raise ClientError("itemId is required for an update")
                if create_record and params.item_id:
                    raise ClientError("Do not specify itemId when creating a new item")
                item_id = params.item_id or request_id

                is_red, is_blue = self._colour_flags(params)
                colour, problem = classify(is_red, is_blue)
                scope.logger.info("Colour", extra={"data": colour.value})
                scope.single_metric(colour.value, dimensions=COLOUR_FEATURE)
                if problem:
                    raise ClientError(problem, colour=colour)

                record = ColourRecord.stamp(
                    item_id,
                    colour,
                    correlation_id,
                    self.retention_days,
                    now=self._clock(),
                )
                scope.logger.debug("Record item", extra={"data": record.to_item()})
                await self._persist(record, create_record)

        return WriteResult(
            request_id=request_id,
            item_id=item_id,
            correlation_id=correlation_id,
            colour=colour,
        )

    async def delete(
        self, params: DeleteParams, ctx: Optional[RequestContext] = None
    ) -> DeleteResult:
        if ctx is None or not ctx.http_method:
            ctx = _as_context(ctx, "DELETE")
        request_id = ctx.request_id
        correlation_id = params.correlation_id or request_id

        with self.telemetry.scope(DELETE_FUNCTION, request_id) as scope:
            scope.bind_correlation_id(correlation_id)
            with self._reporting(scope, params):
                self._check_ready()
                if params.throw_error:
                    raise InternalError("You asked me to throw an error")
                if ctx.http_method != "DELETE":
                    raise InternalError("Invalid method")
                if not params.item_id:
                    raise ClientError("itemId is required")

                try:
                    await self.store.delete(params.item_id, Precondition.REQUIRE_EXISTS)
                except PreconditionFailed as exc:
                    raise ClientError(f"{params.item_id} does not exist") from exc
                scope.logger.debug(f"Deleted Item: {params.item_id}")

        return DeleteResult(request_id=request_id, correlation_id=correlation_id)

    async def read(
        self, params: ReadParams, ctx: Optional[RequestContext] = None
    ) -> ReadResult:
        """Return records scoped by correlation id, then filtered by item id."""
        ctx = ctx or RequestContext()
        request_id = ctx.request_id
        correlation_id = params.correlation_id

        with self.telemetry.scope(READ_FUNCTION, request_id) as scope:
            if correlation_id:
                scope.bind_correlation_id(correlation_id)
            with self._reporting(scope, params):
                self._check_ready()
                if params.throw_error:
                    raise InternalError("You asked me to throw an error")

                if correlation_id:
                    all_items = await self.store.query_by_correlation_id(correlation_id)
                else:
                    all_items = await self.store.scan()
                if not all_items:
                    raise ClientError("No items found")

                items = (
                    [i for i in all_items if i.item_id == params.item_id]
                    if params.item_id
                    else all_items
                )

        return ReadResult(
            request_id=request_id,
            correlation_id=correlation_id or "",
            data=ReadData(count=len(items), items=items),
        )

    def reject(
        self,
        ctx: RequestContext,
        function_name: str,
        exc: ValidationError,
        params: Dict[str, Any],
    ) -> ClientError:
        """Log and count request parameters that failed validation.

        Returns the :class:`ClientError` for the caller to raise.
        """
        problems = "; ".join(
            f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()
        )
        err = ClientError(f"Invalid request parameters ({problems})", ctx.request_id)
        with self.telemetry.scope(function_name, ctx.request_id) as scope:
            correlation_id = params.get("correlationId")
            if isinstance(correlation_id, str) and correlation_id:
                scope.bind_correlation_id(correlation_id)
            elif function_name != READ_FUNCTION:
                scope.bind_correlation_id(ctx.request_id)
            self._report(scope, err, params, cause=exc)
        return err

    # ------------------------------------------------------------------
    # Helpers
    def _check_ready(self) -> None:
        if self.store is None:
            raise InternalError("Missing required env variables")

    def _inject_failure(self, params: WriteParams) -> bool:
        if params.surprise_me:
            return self.chaos.should_fail()
        return bool(params.throw_error)

    def _colour_flags(self, params: WriteParams) -> Tuple[bool, bool]:
        if params.surprise_me:
            return self.chaos.pick_colour(), self.chaos.pick_colour()
        return bool(params.is_red), bool(params.is_blue)

    async def _persist(self, record: ColourRecord, create_record: bool) -> None:
        precondition = (
            Precondition.REQUIRE_ABSENT if create_record else Precondition.REQUIRE_EXISTS
        )
        try:
            await self.store.put(record, precondition)
        except PreconditionFailed as exc:
            reason = "already exists" if create_record else "does not exist"
            raise ClientError(f"{record.item_id} {reason}", colour=record.colour) from exc

    @contextmanager
    def _reporting(
        self,
        scope: OperationScope,
        params: Union[WriteParams, DeleteParams, ReadParams],
    ) -> Iterator[None]:
        """Classify, log and count any failure raised inside the block."""
        try:
            yield
        except RecordServiceError as err:
            err.request_id = scope.request_id
            self._report(scope, err, params.model_dump(by_alias=True))
            raise
        except Exception as exc:
            err = InternalError(str(exc) or exc.__class__.__name__, scope.request_id)
            self._report(scope, err, params.model_dump(by_alias=True), cause=exc)
            raise err from exc

    @staticmethod
    def _report(
        scope: OperationScope,
        err: RecordServiceError,
        data: Dict[str, Any],
        cause: Optional[BaseException] = None,
    ) -> None:
        scope.add_dimension("function_name", scope.function_name)
        if isinstance(err, ClientError):
            scope.logger.warning(
                err.message, extra={"data": data}
            )
            scope.add_metric("WARNING")
        else:
            scope.logger.error(err.message, exc_info=cause or err)
            scope.add_metric("ERROR")


def build_service(
    config: Optional[ColourflowConfig] = None,
    store: Optional[RecordStore] = None,
    telemetry: Optional[Telemetry] = None,
    chaos: Optional[Chaos] = None,
) -> RecordService:
    """Assemble a :class:`RecordService` from configuration."""
    from .persistence import get_store

    config = config or ColourflowConfig()
    if store is None and config.table_name:
        store = get_store(config=config)
    return RecordService(
        store,
        telemetry=telemetry
        or Telemetry(service_name=config.service_name, namespace=config.metrics_namespace),
        chaos=chaos
        or RandomChaos(
            failure_probability=config.workflow.failure_probability,
            colour_probability=config.workflow.colour_probability,
        ),
        retention_days=config.log_expiry_days,
    )
