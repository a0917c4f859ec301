"""Transport factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ColourflowConfig, load_config
from ..gateway import ApiGateway
from ..service import build_service
from .base import BaseTransport
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None,
    config: Optional[ColourflowConfig] = None,
    gateway: Optional[ApiGateway] = None,
) -> BaseTransport:
    """Factory function to get the configured transport."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("COLOURFLOW_TRANSPORT")
        or config.transport.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryTransport(gateway or ApiGateway(build_service(config)))
    elif backend == "http":
        from .http import HttpTransport

        http_conf = config.transport.http
        return HttpTransport(base_url=http_conf.base_url, timeout=http_conf.timeout)
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = ["BaseTransport", "InMemoryTransport", "get_transport"]
