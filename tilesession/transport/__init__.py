"""
Transport module: HTTP protocol and the httpx-backed default.
"""

from tilesession.transport.protocols import HttpResponse, HttpTransport
from tilesession.transport.httpx_transport import HttpxTransport

__all__ = [
    "HttpResponse",
    "HttpTransport",
    "HttpxTransport",
]
