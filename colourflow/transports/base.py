"""Base transport interface for calling the record API."""

from __future__ import annotations

import abc
from typing import Any, Dict, Optional


class BaseTransport(metaclass=abc.ABCMeta):
    """Abstract client side of the request/response boundary."""

    async def connect(self) -> None:
        """Open underlying connections (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Release underlying connections (no-op by default)."""
        pass

    @abc.abstractmethod
    async def request(
        self,
        method: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded success body.

        Raises:
            RequestFailed: If the API answered with a non-2xx status.
        """
        raise NotImplementedError

    async def __aenter__(self) -> "BaseTransport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
