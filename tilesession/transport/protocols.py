"""
Transport Protocol Definitions

Structural subtyping protocol (PEP 544) for the HTTP primitive the
session layer and the requesters depend on. Given a method, URL and
optional JSON body a transport returns status and body asynchronously;
a request that cannot be completed raises TransportError.

Design Principles:
    - Async-first for non-blocking I/O
    - Non-2xx statuses are returned, not raised; callers classify them
    - Protocol classes for structural subtyping
"""

from __future__ import annotations

import json as _json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Status, headers and raw body of a completed request."""
    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ValueError: body is not valid JSON
        """
        return _json.loads(self.body)


@runtime_checkable
class HttpTransport(Protocol):
    """
    Asynchronous HTTP primitive.

    Implementations:
        HttpxTransport: httpx.AsyncClient-backed default
    """

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        ...

    async def aclose(self) -> None:
        ...
