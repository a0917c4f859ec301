"""HTTP-shaped routing layer in front of the record handlers."""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, Field

from .constants import DELETE_TIMEOUT_SECONDS, READ_TIMEOUT_SECONDS, WRITE_TIMEOUT_SECONDS
from .contracts import HandlerEvent, RequestContext
from .errors import HandlerError, unpack_error
from .handlers import Handler, delete_handler, read_handler, write_handler
from .service import RecordService

logger = logging.getLogger(__name__)

# Integration response selection pattern, used when the packed error carries
# no parseable status code.
CLIENT_ERROR_PATTERN = re.compile(r".*:4\d{2}.*", re.DOTALL)


class GatewayResponse(BaseModel):
    status_code: int
    body: Dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ApiGateway:
    """Route HTTP verbs to handlers and map packed errors to status codes.

    ``POST``/``PUT`` go to the write handler, ``DELETE`` to the delete
    handler and ``GET`` (with query parameters) to the read handler. Each
    handler call is bounded by its own timeout.
    """

    def __init__(
        self,
        service: RecordService,
        timeouts: Optional[Dict[str, float]] = None,
        request_ids: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.service = service
        self._request_ids = request_ids
        timeouts = timeouts or {}
        write_timeout = timeouts.get("write", WRITE_TIMEOUT_SECONDS)
        self._routes: Dict[str, Tuple[Handler, float]] = {
            "POST": (write_handler, write_timeout),
            "PUT": (write_handler, write_timeout),
            "DELETE": (delete_handler, timeouts.get("delete", DELETE_TIMEOUT_SECONDS)),
            "GET": (read_handler, timeouts.get("read", READ_TIMEOUT_SECONDS)),
        }

    async def handle(
        self,
        method: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> GatewayResponse:
        method = method.upper()
        request_id = self._request_ids()
        route = self._routes.get(method)
        if route is None:
            return GatewayResponse(
                status_code=405,
                body={"errorMessage": f"Unsupported method {method}", "requestId": request_id},
            )

        handler, timeout = route
        params = dict(query or {}) if method == "GET" else dict(body or {})
        event = HandlerEvent(
            context=RequestContext(request_id=request_id, http_method=method),
            params=params,
        )
        try:
            result = await asyncio.wait_for(handler(self.service, event), timeout)
        except HandlerError as err:
            return self.map_error(str(err))
        except asyncio.TimeoutError:
            logger.error(f"{method} timed out after {timeout}s for request {request_id}")
            return _internal_error(request_id)
        except Exception:
            logger.exception(f"Unhandled error in {method} handler for request {request_id}")
            return _internal_error(request_id)
        return GatewayResponse(status_code=200, body=result)

    @staticmethod
    def map_error(error_message: str) -> GatewayResponse:
        """Select the response for a packed handler error message."""
        payload = unpack_error(error_message)
        request_id = payload.get("requestId", "")
        status = payload.get("statusCode")
        if isinstance(status, int):
            is_client_error = 400 <= status < 500
        else:
            is_client_error = bool(CLIENT_ERROR_PATTERN.fullmatch(error_message))
        if is_client_error:
            return GatewayResponse(
                status_code=400,
                body={"errorMessage": payload.get("message", ""), "requestId": request_id},
            )
        return _internal_error(request_id)


def _internal_error(request_id: str) -> GatewayResponse:
    return GatewayResponse(
        status_code=500,
        body={"errorMessage": "Internal Error", "requestId": request_id},
    )
