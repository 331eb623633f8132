"""
Tadamon CLI entrypoint.

Small tools for local debugging without the app: resolve share links, parse pasted
coordinates, and preview who/what is "nearby" for a location and radius using offline
JSON catalogs.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from tadamon.catalog.loader import load_neighbors, load_postings
from tadamon.config.settings import get_settings
from tadamon.core.geo import distance_km, format_distance
from tadamon.core.logging import configure_logging
from tadamon.domain.errors import TadamonError
from tadamon.domain.models import CanonicalLocation, GeoPoint
from tadamon.location.cities import get_city_registry
from tadamon.location.resolver import LocationIntent, LocationResolver, ManualCity, MapLink, RawCoordinates
from tadamon.matching.proximity import filter_by_radius, neighbor_entries, posting_entries, target_kind_for
from tadamon.services.link_resolver import HttpLinkResolver


def _radius_km(value: str) -> float:
    """argparse type: a radius within the configured `matching` bounds."""
    bounds = get_settings().matching
    try:
        radius = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not bounds.min_radius_km <= radius <= bounds.max_radius_km:
        raise argparse.ArgumentTypeError(
            f"must be between {bounds.min_radius_km:g} and {bounds.max_radius_km:g} km"
        )
    return radius


def _build_resolver() -> LocationResolver:
    settings = get_settings()
    return LocationResolver(settings=settings, cities=get_city_registry(), links=HttpLinkResolver(settings))


def _print_location(location: CanonicalLocation, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(location.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return
    print(f"{location.label}: {location.latitude}, {location.longitude} ({location.source})")
    print(f"  {location.maps_url}")


def _resolve_and_print(intent: LocationIntent, args: argparse.Namespace) -> int:
    location = asyncio.run(_build_resolver().resolve(intent, label=args.label))
    _print_location(location, as_json=args.json)
    return 0


def _cmd_resolve_link(args: argparse.Namespace) -> int:
    return _resolve_and_print(MapLink(url=args.url), args)


def _cmd_parse_coords(args: argparse.Namespace) -> int:
    return _resolve_and_print(RawCoordinates(text=args.text), args)


def _cmd_city(args: argparse.Namespace) -> int:
    return _resolve_and_print(ManualCity(city_id=args.name), args)


def _cmd_distance(args: argparse.Namespace) -> int:
    a = GeoPoint(latitude=args.lat1, longitude=args.lng1)
    b = GeoPoint(latitude=args.lat2, longitude=args.lng2)
    d = distance_km(a, b)
    print(f"{d:.4f} km ({format_distance(d)})")
    return 0


def _cmd_nearby(args: argparse.Namespace) -> int:
    settings = get_settings()
    origin = GeoPoint(latitude=args.lat, longitude=args.lng)
    radius = args.radius if args.radius is not None else settings.matching.default_radius_km

    postings = load_postings(args.postings) if args.postings else []
    neighbors = load_neighbors(args.neighbors) if args.neighbors else []

    kind = target_kind_for(args.role) if args.role else None
    visible_postings = filter_by_radius(
        origin, radius, posting_entries(postings, kind=kind, category=args.category)
    )
    visible_neighbors = filter_by_radius(
        origin, radius, neighbor_entries(neighbors, category=args.category)
    )

    if args.json:
        payload = {
            "origin": origin.model_dump(),
            "radius_km": radius,
            "postings": [
                {"id": n.item.id, "title": n.item.title, "distance_km": n.distance_km, "display": n.display_distance}
                for n in visible_postings
            ],
            "neighbors": [
                {"id": n.item.id, "name": n.item.display_name, "distance_km": n.distance_km, "display": n.display_distance}
                for n in visible_neighbors
            ],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    print(f"Within {radius:g} km of {origin.latitude}, {origin.longitude}:")
    print(f"Postings ({len(visible_postings)}):")
    for n in visible_postings:
        print(f"  {n.display_distance:>7}  [{n.item.kind}/{n.item.category}] {n.item.title}")
    print(f"Neighbors ({len(visible_neighbors)}):")
    for n in visible_neighbors:
        print(f"  {n.display_distance:>7}  {n.item.display_name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the Tadamon CLI."""
    parser = argparse.ArgumentParser(prog="tadamon")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    link = sub.add_parser("resolve-link", help="Expand a maps share link and extract its coordinates.")
    link.add_argument("url")
    link.set_defaults(func=_cmd_resolve_link)

    coords = sub.add_parser("parse-coords", help="Find a 'lat, lng' pair in free text.")
    coords.add_argument("text")
    coords.set_defaults(func=_cmd_parse_coords)

    city = sub.add_parser("city", help="Look up a city in the static registry.")
    city.add_argument("name")
    city.set_defaults(func=_cmd_city)

    for p in (link, coords, city):
        p.add_argument("--label", default=None, help="Override the default location label")
        p.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    dist = sub.add_parser("distance", help="Great-circle distance between two points.")
    dist.add_argument("lat1", type=float)
    dist.add_argument("lng1", type=float)
    dist.add_argument("lat2", type=float)
    dist.add_argument("lng2", type=float)
    dist.set_defaults(func=_cmd_distance)

    near = sub.add_parser("nearby", help="Preview postings and neighbors within a radius (offline catalogs).")
    near.add_argument("--lat", required=True, type=float)
    near.add_argument("--lng", required=True, type=float)
    near.add_argument("--radius", type=_radius_km, default=None, help="km; defaults to matching.default_radius_km")
    near.add_argument("--postings", default=None, help="Path to a postings JSON catalog")
    near.add_argument("--neighbors", default=None, help="Path to a neighbors JSON catalog")
    near.add_argument("--role", choices=["GIVER", "RECEIVER"], default=None)
    near.add_argument("--category", choices=["FOOD", "CLOTHES", "OTHERS"], default=None)
    near.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    near.set_defaults(func=_cmd_nearby)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m tadamon.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except TadamonError as exc:
        print(f"error: {exc.code}: {exc.message}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
