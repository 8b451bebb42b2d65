"""
Configuration Management for the Tile Session Client

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration (ConfigurationError at construction)
- Type-safe with dataclasses
- Fixed for the lifetime of one layer; a different map type, language
  or region means a new layer
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional

from tilesession.core import constants as C
from tilesession.core.errors import ConfigurationError
from tilesession.core.types import Result, Ok, Err, ImageScale, MapType


@dataclass(frozen=True)
class TokenRequestConfig:
    """
    Parameters a session token is issued under.

    A token is only valid for the config it was requested with.
    """

    map_type: MapType = MapType.ROADMAP
    language: str = C.DEFAULT_LANGUAGE
    region: str = C.DEFAULT_REGION
    overlay: bool = True
    scale: ImageScale = ImageScale.X1

    def to_request_body(self) -> dict[str, Any]:
        """JSON body of the session handshake."""
        return {
            "mapType": self.map_type.value,
            "language": self.language,
            "region": self.region,
            "overlay": self.overlay,
            "scale": self.scale.value,
        }


@dataclass(frozen=True)
class EndpointConfig:
    """Service endpoint templates."""

    base_url: str = C.DEFAULT_BASE_URL
    session_path: str = C.SESSION_TOKEN_PATH
    tile_path: str = C.TILE_PATH
    attribution_path: str = C.ATTRIBUTION_PATH

    def session_url(self, api_key: str) -> str:
        return self._root + self.session_path.format(api_key=api_key)

    def tile_url(self, *, z: int, x: int, y: int, session_token: str, api_key: str) -> str:
        return self._root + self.tile_path.format(
            z=z, x=x, y=y, session_token=session_token, api_key=api_key,
        )

    def attribution_url(
        self,
        *,
        session_token: str,
        zoom: int,
        south: float,
        east: float,
        north: float,
        west: float,
        api_key: str,
    ) -> str:
        return self._root + self.attribution_path.format(
            session_token=session_token,
            zoom=zoom,
            south=south,
            east=east,
            north=north,
            west=west,
            api_key=api_key,
        )

    @property
    def _root(self) -> str:
        return self.base_url.rstrip("/")


@dataclass(frozen=True)
class RefreshConfig:
    """Proactive refresh timing and failed-refresh backoff."""

    safety_margin_s: float = C.REFRESH_SAFETY_MARGIN_S
    retry_base_ms: int = C.REFRESH_RETRY_BASE_MS
    retry_max_ms: int = C.REFRESH_RETRY_MAX_MS
    retry_exponential_base: float = 2.0
    retry_jitter: bool = True


@dataclass(frozen=True)
class TransportConfig:
    """HTTP transport settings."""

    timeout_s: float = C.REQUEST_TIMEOUT_S


@dataclass(frozen=True)
class TileServiceConfig:
    """Root configuration for one tile layer."""

    api_key: str
    request: TokenRequestConfig = field(default_factory=TokenRequestConfig)
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)

    @classmethod
    def create(
        cls,
        api_key: Optional[str],
        *,
        map_type: Any = C.DEFAULT_MAP_TYPE,
        language: str = C.DEFAULT_LANGUAGE,
        region: str = C.DEFAULT_REGION,
        scale: Any = C.DEFAULT_SCALE,
        endpoints: Optional[EndpointConfig] = None,
        refresh: Optional[RefreshConfig] = None,
        transport: Optional[TransportConfig] = None,
    ) -> TileServiceConfig:
        """
        Build and validate a configuration.

        Raises:
            ConfigurationError: missing API key, map type outside
                {roadmap, satellite}, or an invalid timing value
        """
        if not api_key:
            raise ConfigurationError.missing_api_key()

        parsed_map_type = MapType.parse(map_type)
        if parsed_map_type.is_err():
            raise ConfigurationError.invalid_map_type(map_type)

        parsed_scale = ImageScale.parse(scale)
        if parsed_scale.is_err():
            raise ConfigurationError.invalid_value("scale", scale, parsed_scale.error)

        config = cls(
            api_key=api_key,
            request=TokenRequestConfig(
                map_type=parsed_map_type.unwrap(),
                language=language,
                region=region,
                scale=parsed_scale.unwrap(),
            ),
            endpoints=endpoints or EndpointConfig(),
            refresh=refresh or RefreshConfig(),
            transport=transport or TransportConfig(),
        )

        validation = config.validate()
        if validation.is_err():
            name, value, reason = validation.error
            raise ConfigurationError.invalid_value(name, value, reason)
        return config

    @classmethod
    def from_env(cls, **overrides: Any) -> Result[TileServiceConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with TILESESSION_.
        Example: TILESESSION_API_KEY, TILESESSION_MAP_TYPE
        Keyword overrides win over the environment when not None.
        """
        def env(name: str, default: Optional[str] = None) -> Optional[str]:
            value = overrides.get(name.lower())
            if value is not None:
                return value
            return os.getenv(C.ENV_PREFIX + name, default)

        try:
            refresh = RefreshConfig(
                safety_margin_s=float(env("REFRESH_MARGIN_S", str(C.REFRESH_SAFETY_MARGIN_S))),
            )
            transport = TransportConfig(
                timeout_s=float(env("TIMEOUT_S", str(C.REQUEST_TIMEOUT_S))),
            )
            config = cls.create(
                env("API_KEY"),
                map_type=env("MAP_TYPE", C.DEFAULT_MAP_TYPE),
                language=env("LANGUAGE", C.DEFAULT_LANGUAGE),
                region=env("REGION", C.DEFAULT_REGION),
                scale=env("SCALE", C.DEFAULT_SCALE),
                endpoints=EndpointConfig(base_url=env("BASE_URL", C.DEFAULT_BASE_URL)),
                refresh=refresh,
                transport=transport,
            )
            return Ok(config)
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")
        except ConfigurationError as e:
            return Err(e.message)

    def validate(self) -> Result[None, tuple[str, Any, str]]:
        """Validate configuration invariants."""
        if self.refresh.safety_margin_s < 0:
            return Err(("safety_margin_s", self.refresh.safety_margin_s, "must be >= 0"))
        if self.refresh.retry_base_ms <= 0:
            return Err(("retry_base_ms", self.refresh.retry_base_ms, "must be > 0"))
        if self.refresh.retry_max_ms < self.refresh.retry_base_ms:
            return Err(("retry_max_ms", self.refresh.retry_max_ms, "must be >= retry_base_ms"))
        if self.transport.timeout_s <= 0:
            return Err(("timeout_s", self.transport.timeout_s, "must be > 0"))
        return Ok(None)
