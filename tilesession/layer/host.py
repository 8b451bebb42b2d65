"""
Map Host Protocol

The map widget the layer is added to. It supplies the viewport, owns
the attribution display and notifies viewport changes; the layer only
talks to it through this protocol.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from tilesession.core.types import Bounds

ViewportListener = Callable[[], None]


@runtime_checkable
class MapHost(Protocol):
    """Host collaborator interface consumed by GoogleTileLayer."""

    def on_viewport_change(self, callback: ViewportListener) -> None:
        """Subscribe to move/zoom end notifications."""
        ...

    def off_viewport_change(self, callback: ViewportListener) -> None:
        """Unsubscribe a callback registered with on_viewport_change."""
        ...

    def current_zoom(self) -> int:
        ...

    def current_bounds(self) -> Bounds:
        ...

    def has_attribution_control(self) -> bool:
        """Whether the host displays attribution text at all."""
        ...

    def add_attribution_text(self, text: str) -> None:
        ...

    def remove_attribution_text(self, text: str) -> None:
        ...
