#!/usr/bin/env python3
"""
Tile Session CLI Entrypoint

Commands:
    tilesession session                      Acquire a session token and print it
    tilesession tile Z X Y -o tile.png       Download one tile
    tilesession attribution --zoom ...       Print attribution for a viewport

Configuration comes from flags, falling back to TILESESSION_* variables:
    TILESESSION_API_KEY=... python -m tilesession session --map-type satellite
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from tilesession import __version__
from tilesession.core.config import TileServiceConfig
from tilesession.core.errors import TileSessionError
from tilesession.core.types import Bounds, TileCoord
from tilesession.layer.google import GoogleTileLayer
from tilesession.layer.host import ViewportListener
from tilesession.observability.logging import LogLevel, setup_logging
from tilesession.reliability.retry import RetryPolicy, retry_with_backoff
from tilesession.transport.protocols import HttpTransport


class StaticViewport:
    """MapHost with a fixed viewport that prints attribution changes."""

    def __init__(self, zoom: int, bounds: Bounds) -> None:
        self._zoom = zoom
        self._bounds = bounds
        self.attribution: list[str] = []

    def on_viewport_change(self, callback: ViewportListener) -> None:
        pass

    def off_viewport_change(self, callback: ViewportListener) -> None:
        pass

    def current_zoom(self) -> int:
        return self._zoom

    def current_bounds(self) -> Bounds:
        return self._bounds

    def has_attribution_control(self) -> bool:
        return True

    def add_attribution_text(self, text: str) -> None:
        self.attribution.append(text)

    def remove_attribution_text(self, text: str) -> None:
        if text in self.attribution:
            self.attribution.remove(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tilesession",
        description="Session-authenticated map tile client",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--api-key", help="Service API key (default: $TILESESSION_API_KEY)")
    parser.add_argument(
        "--map-type",
        help="Imagery type: roadmap or satellite (default: $TILESESSION_MAP_TYPE or roadmap)",
    )
    parser.add_argument("--language", help="Language tag, e.g. en-GB")
    parser.add_argument("--region", help="Region tag, e.g. gb")
    parser.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Retry failed requests this many times with backoff (default: 0)",
    )
    parser.add_argument(
        "--retry-delay-ms",
        type=int,
        default=1000,
        help="Base backoff delay between retries in milliseconds (default: 1000)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("session", help="Acquire a session token")

    tile_parser = subparsers.add_parser("tile", help="Download one tile")
    tile_parser.add_argument("z", type=int)
    tile_parser.add_argument("x", type=int)
    tile_parser.add_argument("y", type=int)
    tile_parser.add_argument(
        "--output", "-o",
        type=Path,
        required=True,
        help="File to write the tile image to",
    )

    attr_parser = subparsers.add_parser("attribution", help="Print viewport attribution")
    attr_parser.add_argument("--zoom", type=int, required=True)
    attr_parser.add_argument("--south", type=float, required=True)
    attr_parser.add_argument("--west", type=float, required=True)
    attr_parser.add_argument("--north", type=float, required=True)
    attr_parser.add_argument("--east", type=float, required=True)

    return parser


def load_config(args: argparse.Namespace) -> TileServiceConfig:
    result = TileServiceConfig.from_env(
        api_key=args.api_key,
        map_type=args.map_type,
        language=args.language,
        region=args.region,
    )
    if result.is_err():
        print(f"Configuration error: {result.error}", file=sys.stderr)
        sys.exit(2)
    return result.unwrap()


async def run_command(
    args: argparse.Namespace,
    config: TileServiceConfig,
    transport: Optional[HttpTransport] = None,
) -> int:
    policy = RetryPolicy(
        max_retries=args.retries,
        base_delay_ms=args.retry_delay_ms,
        retryable_exceptions=(TileSessionError,),
    )

    async with GoogleTileLayer(config=config, transport=transport) as layer:
        if args.command == "session":
            result = await retry_with_backoff(layer.get_token, policy)
            if result.is_err():
                print(f"Error: {result.error}", file=sys.stderr)
                return 1
            token = result.unwrap()
            print(json.dumps({
                "session": token.value,
                "expires_at": token.expires_at.seconds,
                "tile_width": token.tile_width,
                "tile_height": token.tile_height,
                "image_format": token.image_format,
            }, indent=2))
            return 0

        if args.command == "tile":
            coord = TileCoord(args.z, args.x, args.y)
            result = await retry_with_backoff(lambda: layer.fetch_tile(coord), policy)
            if result.is_err():
                print(f"Error: {result.error}", file=sys.stderr)
                return 1
            tile = result.unwrap()
            args.output.write_bytes(tile.data or b"")
            print(f"Wrote {len(tile.data or b'')} bytes to {args.output}")
            return 0

        if args.command == "attribution":
            host = StaticViewport(
                args.zoom,
                Bounds(south=args.south, west=args.west, north=args.north, east=args.east),
            )
            # Attaching primes the token and fetches the first attribution
            layer.on_attach(host)
            await layer.drain()
            text = layer.get_attribution()
            if text is None:
                print("Error: attribution unavailable", file=sys.stderr)
                return 1
            print(text)
            return 0

    return 2


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    setup_logging(LogLevel.parse(args.log_level), json_output=args.json_logs)
    config = load_config(args)

    try:
        return asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
