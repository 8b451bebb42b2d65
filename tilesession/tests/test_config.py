"""
Unit Tests: Configuration

Tests:
    - Construction-time validation (API key, map type, scale, timings)
    - Handshake body rendering
    - Endpoint URL templates
    - Environment loading
"""

import pytest

from tilesession.core.config import (
    EndpointConfig,
    RefreshConfig,
    TileServiceConfig,
    TokenRequestConfig,
)
from tilesession.core.errors import ConfigurationError, ErrorCode
from tilesession.core.types import ImageScale, MapType
from tilesession.layer.google import GoogleTileLayer
from tilesession.tests.fakes import FakeTransport


class TestTileServiceConfig:
    """Tests for TileServiceConfig.create."""

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError) as info:
            TileServiceConfig.create(None)
        assert info.value.code == ErrorCode.CONFIG_MISSING_API_KEY

    def test_empty_api_key(self):
        with pytest.raises(ConfigurationError):
            TileServiceConfig.create("")

    def test_invalid_map_type(self):
        with pytest.raises(ConfigurationError) as info:
            TileServiceConfig.create("key", map_type="hybrid")
        assert info.value.code == ErrorCode.CONFIG_INVALID_MAP_TYPE
        assert "'hybrid' is an invalid mapType" in str(info.value)

    def test_valid_roadmap(self):
        config = TileServiceConfig.create("key", map_type="roadmap")
        assert config.api_key == "key"
        assert config.request.map_type is MapType.ROADMAP
        assert config.request.language == "en-GB"
        assert config.request.region == "gb"

    def test_map_type_enum_accepted(self):
        config = TileServiceConfig.create("key", map_type=MapType.SATELLITE)
        assert config.request.map_type is MapType.SATELLITE

    def test_invalid_scale(self):
        with pytest.raises(ConfigurationError) as info:
            TileServiceConfig.create("key", scale="scaleFactor3x")
        assert info.value.code == ErrorCode.CONFIG_INVALID_VALUE

    def test_negative_safety_margin(self):
        with pytest.raises(ConfigurationError):
            TileServiceConfig.create("key", refresh=RefreshConfig(safety_margin_s=-1))

    def test_retry_cap_below_base(self):
        with pytest.raises(ConfigurationError):
            TileServiceConfig.create(
                "key", refresh=RefreshConfig(retry_base_ms=500, retry_max_ms=100),
            )

    def test_config_is_immutable(self):
        config = TileServiceConfig.create("key")
        with pytest.raises(AttributeError):
            config.api_key = "other"


class TestLayerConstruction:
    """Construction contract of GoogleTileLayer."""

    def test_without_api_key_fails(self):
        with pytest.raises(ConfigurationError):
            GoogleTileLayer(transport=FakeTransport())

    def test_hybrid_fails(self):
        with pytest.raises(ConfigurationError):
            GoogleTileLayer("key", map_type="hybrid", transport=FakeTransport())

    def test_roadmap_yields_empty_state(self):
        layer = GoogleTileLayer("key", map_type="roadmap", transport=FakeTransport())
        state = layer.state
        assert state.is_empty
        assert state.current_token is None
        assert not state.refresh_armed
        assert not layer.refresh_armed
        assert layer.get_attribution() is None

    def test_options_forwarded(self):
        layer = GoogleTileLayer(
            "key",
            map_type="satellite",
            language="de-DE",
            region="de",
            scale="scaleFactor2x",
            transport=FakeTransport(),
        )
        request = layer.config.request
        assert request.map_type is MapType.SATELLITE
        assert request.language == "de-DE"
        assert request.region == "de"
        assert request.scale is ImageScale.X2


class TestTokenRequestConfig:

    def test_request_body(self):
        body = TokenRequestConfig(
            map_type=MapType.SATELLITE, language="fr-FR", region="fr",
        ).to_request_body()
        assert body == {
            "mapType": "satellite",
            "language": "fr-FR",
            "region": "fr",
            "overlay": True,
            "scale": "scaleFactor1x",
        }


class TestEndpointConfig:

    def test_session_url(self):
        url = EndpointConfig().session_url("abc")
        assert url == "https://www.googleapis.com/tile/v1/createSession?key=abc"

    def test_tile_url(self):
        url = EndpointConfig().tile_url(z=3, x=4, y=5, session_token="tok", api_key="abc")
        assert url == (
            "https://www.googleapis.com/tile/v1/tiles/3/4/5"
            "?session=tok&orientation=0&key=abc"
        )

    def test_base_url_trailing_slash(self):
        url = EndpointConfig(base_url="http://localhost:8080/").session_url("k")
        assert url == "http://localhost:8080/createSession?key=k"


class TestFromEnv:

    def test_loads_environment(self, monkeypatch):
        monkeypatch.setenv("TILESESSION_API_KEY", "env-key")
        monkeypatch.setenv("TILESESSION_MAP_TYPE", "satellite")
        monkeypatch.setenv("TILESESSION_REFRESH_MARGIN_S", "120")

        result = TileServiceConfig.from_env()

        assert result.is_ok()
        config = result.unwrap()
        assert config.api_key == "env-key"
        assert config.request.map_type is MapType.SATELLITE
        assert config.refresh.safety_margin_s == 120.0

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("TILESESSION_API_KEY", "env-key")
        result = TileServiceConfig.from_env(api_key="flag-key", map_type=None)
        assert result.unwrap().api_key == "flag-key"
        assert result.unwrap().request.map_type is MapType.ROADMAP

    def test_missing_key_is_err(self, monkeypatch):
        monkeypatch.delenv("TILESESSION_API_KEY", raising=False)
        result = TileServiceConfig.from_env()
        assert result.is_err()
        assert "API key" in result.error

    def test_bad_number_is_err(self, monkeypatch):
        monkeypatch.setenv("TILESESSION_API_KEY", "k")
        monkeypatch.setenv("TILESESSION_TIMEOUT_S", "soon")
        result = TileServiceConfig.from_env()
        assert result.is_err()
