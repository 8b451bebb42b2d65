"""
In-memory collaborators for the test suite: a scripted HTTP transport,
a map host and a manually advanced clock.
"""

from __future__ import annotations

import asyncio
import json as _json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union
from urllib.parse import parse_qs, urlsplit

from tilesession.core.config import RefreshConfig, TileServiceConfig
from tilesession.core.types import Bounds, Timestamp
from tilesession.layer.host import ViewportListener
from tilesession.transport.protocols import HttpResponse

Scripted = Union[HttpResponse, Exception]


def json_response(payload: Any, status: int = 200) -> HttpResponse:
    return HttpResponse(
        status=status,
        body=_json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )


def make_config(**refresh: Any) -> TileServiceConfig:
    """Valid config; keyword arguments override RefreshConfig fields."""
    return TileServiceConfig.create(
        "test-key",
        map_type="roadmap",
        refresh=RefreshConfig(**refresh) if refresh else None,
    )


def query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


@dataclass
class RecordedRequest:
    method: str
    url: str
    json: Optional[Any] = None
    headers: Optional[Mapping[str, str]] = None


@dataclass
class FakeTransport:
    """
    Scripted HttpTransport.

    Handshakes succeed with "token-<n>" and `lifetime_s` unless a
    response or exception is queued in `session_script`. Setting
    `session_gate` holds every handshake until the event is set.
    """
    lifetime_s: float = 7200.0
    session_script: list[Scripted] = field(default_factory=list)
    session_gate: Optional[asyncio.Event] = None
    tile_script: list[Scripted] = field(default_factory=list)
    attribution_script: list[Scripted] = field(default_factory=list)
    attribution_delays: list[float] = field(default_factory=list)
    requests: list[RecordedRequest] = field(default_factory=list)
    handshakes: int = 0
    closed: bool = False

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        self.requests.append(RecordedRequest(method, url, json, headers))
        await asyncio.sleep(0)

        if "/createSession" in url:
            self.handshakes += 1
            number = self.handshakes
            if self.session_gate is not None:
                await self.session_gate.wait()
            if self.session_script:
                return _play(self.session_script.pop(0))
            return json_response({
                "session": f"token-{number}",
                "expiry": str(self.lifetime_s),
                "tileWidth": 256,
                "tileHeight": 256,
                "imageFormat": "png",
            })

        if "/tiles/" in url:
            if self.tile_script:
                return _play(self.tile_script.pop(0))
            return HttpResponse(200, b"\x89PNG-tile", {"Content-Type": "image/png"})

        if "/viewport" in url:
            if self.attribution_delays:
                await asyncio.sleep(self.attribution_delays.pop(0))
            if self.attribution_script:
                return _play(self.attribution_script.pop(0))
            return json_response({"copyright": f"Map data zoom {query(url)['zoom']}"})

        return HttpResponse(404, b"not found")

    async def aclose(self) -> None:
        self.closed = True

    def urls(self, fragment: str) -> list[str]:
        return [r.url for r in self.requests if fragment in r.url]


def _play(item: Scripted) -> HttpResponse:
    if isinstance(item, Exception):
        raise item
    return item


class FakeHost:
    """MapHost recording attribution changes in call order."""

    def __init__(
        self,
        zoom: int = 5,
        bounds: Optional[Bounds] = None,
        attribution_control: bool = True,
    ) -> None:
        self.zoom = zoom
        self.bounds = bounds or Bounds(south=10, west=40, north=30, east=20)
        self.attribution_control = attribution_control
        self.listeners: list[ViewportListener] = []
        self.attribution: list[str] = []
        self.events: list[tuple[str, str]] = []

    def on_viewport_change(self, callback: ViewportListener) -> None:
        self.listeners.append(callback)

    def off_viewport_change(self, callback: ViewportListener) -> None:
        if callback in self.listeners:
            self.listeners.remove(callback)

    def move(self, zoom: int) -> None:
        self.zoom = zoom
        for listener in list(self.listeners):
            listener()

    def current_zoom(self) -> int:
        return self.zoom

    def current_bounds(self) -> Bounds:
        return self.bounds

    def has_attribution_control(self) -> bool:
        return self.attribution_control

    def add_attribution_text(self, text: str) -> None:
        self.events.append(("add", text))
        self.attribution.append(text)

    def remove_attribution_text(self, text: str) -> None:
        self.events.append(("remove", text))
        if text in self.attribution:
            self.attribution.remove(text)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start_s: float = 1_700_000_000.0) -> None:
        self._now = Timestamp.from_seconds(start_s)

    def __call__(self) -> Timestamp:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now = self._now.plus_seconds(seconds)
