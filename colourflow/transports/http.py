"""HTTP transport for a deployed record API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..constants import DEFAULT_CALL_TIMEOUT_SECONDS
from ..errors import RequestFailed
from .base import BaseTransport


class HttpTransport(BaseTransport):
    """Send requests to the API root with httpx."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if self._client is None:
            await self.connect()

        method = method.upper()
        params = {k: v for k, v in (query or {}).items() if v is not None}
        response = await self._client.request(
            method,
            "/",
            params=params or None,
            json=body if method != "GET" else None,
        )
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise RequestFailed(
                response.status_code,
                response.reason_phrase
                if response.is_error
                else f"Unexpected response body: {response.text[:200]}",
            )
        if response.is_error:
            raise RequestFailed(
                response.status_code,
                payload.get("errorMessage", response.reason_phrase),
                payload.get("requestId", ""),
            )
        return payload
