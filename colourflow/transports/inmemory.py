"""In-process transport that routes requests straight to an ApiGateway."""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple

from ..errors import RequestFailed
from ..gateway import ApiGateway
from .base import BaseTransport


class InMemoryTransport(BaseTransport):
    """Call an :class:`ApiGateway` living in the same process.

    The most recent ``history`` requests are kept in :attr:`calls`.
    """

    def __init__(self, gateway: ApiGateway, history: int = 100) -> None:
        self.gateway = gateway
        self.calls: Deque[Tuple[str, Dict[str, Any]]] = deque(maxlen=history)

    async def request(
        self,
        method: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        method = method.upper()
        self.calls.append((method, dict((query if method == "GET" else body) or {})))
        response = await self.gateway.handle(method, body=body, query=query)
        if not response.ok:
            raise RequestFailed(
                response.status_code,
                response.body.get("errorMessage", ""),
                response.body.get("requestId", ""),
            )
        return response.body
