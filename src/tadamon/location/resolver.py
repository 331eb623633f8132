"""
Location resolution.

Turns a "location intent" into a `CanonicalLocation`:
- `LiveGPS`: ask the positioning service for the current fix
- `ManualCity`: look the city up in the static registry
- `MapLink`: follow the share link's redirects, then extract coordinates
- `RawCoordinates`: find a "lat, lng" pair in pasted text

Each branch raises its own error kind (see `tadamon.domain.errors`); nothing here is
fatal and nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from tadamon.config.settings import Settings, get_settings
from tadamon.domain.errors import (
    LinkFetchFailed,
    LocationUnavailable,
    NoCoordinatesFound,
    TadamonError,
    UnresolvableLink,
)
from tadamon.domain.models import CanonicalLocation, GeoPoint, LocationSource
from tadamon.location.cities import CityRegistry, build_city_registry
from tadamon.location.map_links import extract_coordinates, looks_like_map_link, parse_raw_coordinates
from tadamon.services.contracts import LinkResolutionService, PositioningService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveGPS:
    pass


@dataclass(frozen=True)
class ManualCity:
    city_id: str


@dataclass(frozen=True)
class MapLink:
    url: str


@dataclass(frozen=True)
class RawCoordinates:
    text: str


LocationIntent = LiveGPS | ManualCity | MapLink | RawCoordinates


def _canonical(point: GeoPoint, *, label: str, source: LocationSource) -> CanonicalLocation:
    return CanonicalLocation(
        latitude=point.latitude, longitude=point.longitude, label=label, source=source
    )


class LocationResolver:
    """Resolves location intents against the configured collaborators."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        cities: CityRegistry | None = None,
        positioning: PositioningService | None = None,
        links: LinkResolutionService | None = None,
    ):
        self._settings = settings or get_settings()
        self._cities = cities or build_city_registry(self._settings)
        self._positioning = positioning
        self._links = links

    def intent_from_text(self, text: str) -> MapLink | RawCoordinates:
        """Classify pasted text: a maps share link, or free text with coordinates in it."""
        stripped = text.strip()
        if looks_like_map_link(stripped, self._settings.location.map_link_markers):
            return MapLink(url=stripped)
        return RawCoordinates(text=stripped)

    async def resolve(self, intent: LocationIntent, *, label: str | None = None) -> CanonicalLocation:
        """Resolve `intent`; `label` overrides the source-specific default label."""
        labels = self._settings.location.labels

        if isinstance(intent, LiveGPS):
            point = await self._current_position()
            return _canonical(point, label=label or labels.gps, source="GPS")

        if isinstance(intent, ManualCity):
            city = self._cities.lookup(intent.city_id)
            return _canonical(city.point, label=label or city.name, source="MANUAL_CITY")

        if isinstance(intent, MapLink):
            point = await self._resolve_link(intent.url)
            return _canonical(point, label=label or labels.map_link, source="MAP_LINK")

        if isinstance(intent, RawCoordinates):
            point = parse_raw_coordinates(intent.text)
            if point is None:
                raise NoCoordinatesFound(
                    "No coordinates found in the pasted text", details={"text": intent.text}
                )
            return _canonical(point, label=label or labels.raw_coordinates, source="RAW_COORDINATES")

        raise TypeError(f"Unsupported location intent: {intent!r}")

    async def _current_position(self) -> GeoPoint:
        if self._positioning is None:
            raise LocationUnavailable("Positioning is not supported on this device")
        try:
            return await self._positioning.get_current_position()
        except LocationUnavailable:
            raise
        except Exception as exc:
            logger.warning("Positioning request failed: %s", exc)
            raise LocationUnavailable(
                "Unable to retrieve location. Please check permissions.",
                details={"reason": str(exc)},
            ) from exc

    async def _resolve_link(self, url: str) -> GeoPoint:
        if self._links is None:
            raise LinkFetchFailed("No link resolution service configured", details={"url": url})
        try:
            final_url = await self._links.resolve_map_link(url)
        except LinkFetchFailed:
            raise
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Failed to resolve map link %s: %s", url, exc)
            raise LinkFetchFailed("Failed to resolve link", details={"url": url, "reason": str(exc)}) from exc

        point = extract_coordinates(final_url)
        if point is None:
            raise UnresolvableLink(
                "Could not extract coordinates from this link",
                details={"url": url, "final_url": final_url},
            )
        return point
