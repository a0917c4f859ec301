"""Function-style entry points invoked by the routing layer.

Each handler takes an event of the form ``{"context": {"requestId",
"httpMethod"}, "params": {...}}`` and returns the camelCase result payload.
Failures are re-raised as :class:`HandlerError`, whose message packs the
status code, message and request id into one JSON string for the routing
layer to parse.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Union

from pydantic import BaseModel, ValidationError

from .contracts import (
    DeleteParams,
    HandlerEvent,
    ReadParams,
    WriteParams,
    dump_result,
)
from .errors import HandlerError, RecordServiceError
from .service import DELETE_FUNCTION, READ_FUNCTION, WRITE_FUNCTION, RecordService

Event = Union[HandlerEvent, Dict[str, Any]]
Handler = Callable[[RecordService, Event], Awaitable[Dict[str, Any]]]


def _parse(event: Event) -> HandlerEvent:
    if isinstance(event, HandlerEvent):
        return event
    return HandlerEvent.model_validate(event)


async def _invoke(call: Callable[[], Awaitable[BaseModel]]) -> Dict[str, Any]:
    try:
        result = await call()
    except RecordServiceError as err:
        raise HandlerError(err) from err
    return dump_result(result)


def _params(
    service: RecordService,
    function_name: str,
    model: type[BaseModel],
    event: HandlerEvent,
) -> BaseModel:
    try:
        return model.model_validate(event.params)
    except ValidationError as exc:
        error = service.reject(event.context, function_name, exc, event.params)
        raise HandlerError(error) from exc


async def write_handler(service: RecordService, event: Event) -> Dict[str, Any]:
    """Create (POST) or update (PUT) a record."""
    evt = _parse(event)
    params = _params(service, WRITE_FUNCTION, WriteParams, evt)
    return await _invoke(lambda: service.write(evt.context, params))


async def delete_handler(service: RecordService, event: Event) -> Dict[str, Any]:
    """Delete a record from the item table."""
    evt = _parse(event)
    params = _params(service, DELETE_FUNCTION, DeleteParams, evt)
    return await _invoke(lambda: service.delete(params, evt.context))


async def read_handler(service: RecordService, event: Event) -> Dict[str, Any]:
    """Return all records, or those matching a correlation id and item id."""
    evt = _parse(event)
    params = _params(service, READ_FUNCTION, ReadParams, evt)
    return await _invoke(lambda: service.read(params, evt.context))
