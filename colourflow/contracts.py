"""Request and result contracts for the record service."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .persistence.models import Colour, ColourRecord


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RequestContext(_CamelModel):
    """Per-invocation context supplied by the routing layer."""

    request_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), alias="requestId"
    )
    http_method: Optional[str] = Field(default=None, alias="httpMethod")


class WriteParams(_CamelModel):
    """Parameters accepted by create and update."""

    item_id: Optional[str] = Field(default=None, alias="itemId")
    is_red: Optional[bool] = Field(default=None, alias="isRed")
    is_blue: Optional[bool] = Field(default=None, alias="isBlue")
    surprise_me: Optional[bool] = Field(default=None, alias="surpriseMe")
    correlation_id: Optional[str] = Field(default=None, alias="correlationId")
    throw_error: Optional[bool] = Field(default=None, alias="throwError")


class DeleteParams(_CamelModel):
    item_id: Optional[str] = Field(default=None, alias="itemId")
    correlation_id: Optional[str] = Field(default=None, alias="correlationId")
    throw_error: Optional[bool] = Field(default=None, alias="throwError")


class ReadParams(_CamelModel):
    item_id: Optional[str] = Field(default=None, alias="itemId")
    correlation_id: Optional[str] = Field(default=None, alias="correlationId")
    throw_error: Optional[bool] = Field(default=None, alias="throwError")


class WriteResult(_CamelModel):
    """Successful create or update."""

    success: bool = True
    request_id: str = Field(alias="requestId")
    item_id: str = Field(alias="itemId")
    correlation_id: str = Field(alias="correlationId")
    colour: Colour


class DeleteResult(_CamelModel):
    success: bool = True
    request_id: str = Field(alias="requestId")
    correlation_id: str = Field(alias="correlationId")


class ReadData(BaseModel):
    count: int
    items: List[ColourRecord] = Field(default_factory=list)


class ReadResult(_CamelModel):
    success: bool = True
    request_id: str = Field(alias="requestId")
    correlation_id: str = Field(default="", alias="correlationId")
    data: ReadData


class HandlerEvent(BaseModel):
    """Event shape delivered to a handler by the routing layer."""

    context: RequestContext = Field(default_factory=RequestContext)
    params: Dict[str, Any] = Field(default_factory=dict)


def dump_result(result: BaseModel) -> Dict[str, Any]:
    """Serialize a result with its wire (camelCase) field names."""
    return result.model_dump(by_alias=True, mode="json")
