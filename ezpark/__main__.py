from __future__ import annotations

import argparse
import asyncio
import sys

from ezpark.config import settings
from ezpark.logging_setup import configure_logging
from ezpark.models import Coordinate
from ezpark.presentation import SpotListItem
from ezpark.routing import MapQuestRouteLookup, StraightLineRouteLookup
from ezpark.services import enrich_spots, find_nearby
from ezpark.storage import build_storage


def _cmd_serve(args: argparse.Namespace) -> int:
    from ezpark.main import run

    run(host=args.host, port=args.port)
    return 0


def _cmd_nearby(args: argparse.Namespace) -> int:
    storage = build_storage(args.seed or settings.seed_path, settings.default_currency)
    origin = Coordinate(latitude=args.lat, longitude=args.lng)
    spots = find_nearby(storage.spots, origin, args.radius)

    if args.no_routing or not settings.mapquest_api_key:
        lookup = StraightLineRouteLookup()
    else:
        lookup = MapQuestRouteLookup()
    enriched = asyncio.run(enrich_spots(spots, origin, lookup))

    if not enriched:
        print("No parking spots found nearby")
        return 0

    for spot in enriched:
        item = SpotListItem.from_spot(spot)
        eta = f", {item.duration}" if item.duration else ""
        print(f"[{item.id}] {item.name} ({item.status})")
        print(f"    {item.address}")
        print(f"    {item.distance}{eta} | {item.spots_left} | {item.rate} | {item.hours}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ezpark", description="Find parking spots near you")
    parser.add_argument("--log-level", default=settings.log_level)
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    serve.set_defaults(func=_cmd_serve)

    nearby = sub.add_parser("nearby", help="list seeded spots near a coordinate, nearest first")
    nearby.add_argument("--lat", type=float, default=settings.default_latitude)
    nearby.add_argument("--lng", type=float, default=settings.default_longitude)
    nearby.add_argument("--radius", type=float, default=settings.default_search_radius_km, help="km")
    nearby.add_argument("--seed", help="CSV/JSON file of spots to search")
    nearby.add_argument("--no-routing", action="store_true", help="use straight-line distances")
    nearby.set_defaults(func=_cmd_nearby)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
