"""
API routes.

Endpoints:
- POST `/api/parse-location`: expand a maps share link and extract its coordinates.
- POST `/api/distance`: distance between two points (km + display string).
- GET  `/api/cities`: the manual-city registry.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from tadamon.config.settings import get_settings
from tadamon.core.geo import distance_km, format_distance
from tadamon.domain.errors import LinkFetchFailed, UnresolvableLink
from tadamon.domain.models import GeoPoint
from tadamon.location.cities import get_city_registry
from tadamon.location.resolver import LocationResolver, MapLink
from tadamon.services.link_resolver import HttpLinkResolver

logger = logging.getLogger(__name__)

router = APIRouter()


class ParseLocationRequest(BaseModel):
    url: str | None = None


class ParsedLocation(BaseModel):
    lat: float
    lng: float
    label: str


class DistanceRequest(BaseModel):
    a: GeoPoint
    b: GeoPoint


class DistanceResponse(BaseModel):
    distance_km: float
    display: str


@lru_cache
def _resolver() -> LocationResolver:
    settings = get_settings()
    return LocationResolver(
        settings=settings,
        cities=get_city_registry(),
        links=HttpLinkResolver(settings),
    )


@router.post("/api/parse-location", response_model=ParsedLocation)
async def parse_location(req: ParseLocationRequest) -> ParsedLocation:
    """Resolve a maps share link into `{lat, lng, label}`."""
    if not req.url or not req.url.strip():
        raise HTTPException(status_code=400, detail="URL is required")
    try:
        location = await _resolver().resolve(MapLink(url=req.url.strip()))
    except UnresolvableLink as exc:
        raise HTTPException(status_code=422, detail=exc.to_dict()) from exc
    except LinkFetchFailed as exc:
        logger.warning("parse-location failed for %s: %s", req.url, exc.message)
        raise HTTPException(status_code=502, detail=exc.to_dict()) from exc
    return ParsedLocation(lat=location.latitude, lng=location.longitude, label=location.label)


@router.post("/api/distance", response_model=DistanceResponse)
def get_distance(req: DistanceRequest) -> DistanceResponse:
    d = distance_km(req.a, req.b)
    return DistanceResponse(distance_km=d, display=format_distance(d))


@router.get("/api/cities")
def get_cities() -> dict:
    """Return the manual-city registry (used by onboarding forms)."""
    return {
        "cities": [
            {"id": c.id, "name": c.name, "lat": c.point.latitude, "lng": c.point.longitude}
            for c in get_city_registry().all()
        ]
    }
