"""Error taxonomy for the record service and its boundary."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional

from .persistence.models import Colour


class Outcome(str, Enum):
    SUCCESS = "Success"
    CLIENT_ERROR = "ClientError"
    INTERNAL_ERROR = "InternalError"


class RecordServiceError(Exception):
    """Base class for failures reported by a record service operation.

    Attributes:
        message: Human readable description returned to the caller.
        request_id: Identifier of the request that produced the error.
        colour: Colour classified before the failure, if any.
    """

    status_code = 500
    outcome = Outcome.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        request_id: str = "",
        colour: Optional[Colour] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.colour = colour

    def to_payload(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "message": self.message,
            "requestId": self.request_id,
        }

    def packed(self) -> str:
        """Serialize status, message and request id into one string."""
        return json.dumps(self.to_payload(), separators=(",", ":"))


class ClientError(RecordServiceError):
    """Caller-correctable failure."""

    status_code = 400
    outcome = Outcome.CLIENT_ERROR


class InternalError(RecordServiceError):
    """Any failure the caller cannot correct, including injected ones."""


class HandlerError(Exception):
    """Raised by a handler; the message is the packed error payload."""

    def __init__(self, error: RecordServiceError) -> None:
        super().__init__(error.packed())
        self.error = error


def unpack_error(packed: str) -> Dict[str, Any]:
    """Parse a packed error payload, tolerating non-JSON messages."""
    try:
        payload = json.loads(packed)
    except (TypeError, ValueError):
        return {"statusCode": None, "message": str(packed), "requestId": ""}
    if not isinstance(payload, dict):
        return {"statusCode": None, "message": str(packed), "requestId": ""}
    return payload


class RequestFailed(Exception):
    """A call across the request/response boundary returned an error status."""

    def __init__(self, status_code: int, message: str, request_id: str = "") -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.request_id = request_id

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500
