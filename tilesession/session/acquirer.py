"""
Token Acquirer: Session Handshake

Performs exactly one handshake per call. It holds no state between
calls and never retries; deduplication of concurrent callers is the
store's job, retry timing is the scheduler's.
"""

from __future__ import annotations

import logging
from typing import Callable

from tilesession.core.config import TileServiceConfig
from tilesession.core.errors import TokenAcquisitionError, TransportError
from tilesession.core.types import Timestamp
from tilesession.session.token import SessionToken
from tilesession.transport.protocols import HttpTransport

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class TokenAcquirer:
    """
    Issues the createSession handshake.

    Method, endpoint and body are fully determined by the layer's
    TokenRequestConfig and API key.
    """

    __slots__ = ("_config", "_transport", "_clock")

    def __init__(
        self,
        config: TileServiceConfig,
        transport: HttpTransport,
        clock: Callable[[], Timestamp] = Timestamp.now,
    ) -> None:
        self._config = config
        self._transport = transport
        self._clock = clock

    async def acquire(self) -> SessionToken:
        """
        Request a new session token.

        Raises:
            TokenAcquisitionError: non-2xx status, transport failure,
                or a body without a usable token
        """
        url = self._config.endpoints.session_url(self._config.api_key)
        body = self._config.request.to_request_body()

        try:
            response = await self._transport.request(
                "POST", url, json=body, headers=JSON_HEADERS,
            )
        except TransportError as e:
            raise TokenAcquisitionError.transport_failed(e) from e

        if not response.ok:
            logger.warning(f"Session handshake rejected with HTTP {response.status}")
            raise TokenAcquisitionError.http_status(response.status, response.text())

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenAcquisitionError.malformed_response(
                f"invalid JSON ({e})", response.status,
            ) from e

        token = SessionToken.from_response(payload, self._clock(), response.status)
        logger.debug(
            f"Acquired session token {token.value[:6]}..., "
            f"{token.seconds_remaining(self._clock()):.0f}s remaining"
        )
        return token
