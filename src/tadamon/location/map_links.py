"""
Coordinate extraction from map-sharing links and pasted text.

A fully expanded maps URL carries coordinates in one of several places. We try an
ordered list of extractors and stop at the first one that yields a valid pair:

1. `@lat,lng`          e.g. `/maps/place/Foo/@33.5731,-7.5898,15z/...`
2. `q=lat,lng`         e.g. `/maps?q=33.5731,-7.5898`
3. `!3d{lat}!4d{lng}`  data parameters in long place URLs

A pattern only counts as a match if both numbers parse as floats within coordinate
range; otherwise the next extractor gets its turn. `0.0` is a valid coordinate.
"""

from __future__ import annotations

import re
from typing import Callable

from tadamon.domain.models import GeoPoint

# Decimal point required: bare integers in URLs are zoom levels, sizes and ids far more often.
_NUM = r"(-?\d+\.\d+)"

_AT_RE = re.compile(rf"@{_NUM},{_NUM}")
_QUERY_RE = re.compile(rf"[?&]q={_NUM},{_NUM}")
_DATA_RE = re.compile(rf"!3d{_NUM}!4d{_NUM}")
# Permissive "lat, lng" pair inside arbitrary pasted text.
_RAW_PAIR_RE = re.compile(rf"{_NUM}\s*,\s*{_NUM}")

Extractor = Callable[[str], GeoPoint | None]


def _to_point(lat_text: str, lng_text: str) -> GeoPoint | None:
    try:
        lat = float(lat_text)
        lng = float(lng_text)
    except ValueError:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return GeoPoint(latitude=lat, longitude=lng)


def _search(pattern: re.Pattern[str], text: str) -> GeoPoint | None:
    for match in pattern.finditer(text):
        point = _to_point(match.group(1), match.group(2))
        if point is not None:
            return point
    return None


def extract_at_segment(url: str) -> GeoPoint | None:
    return _search(_AT_RE, url)


def extract_query_param(url: str) -> GeoPoint | None:
    return _search(_QUERY_RE, url)


def extract_data_params(url: str) -> GeoPoint | None:
    return _search(_DATA_RE, url)


EXTRACTORS: tuple[tuple[str, Extractor], ...] = (
    ("at_segment", extract_at_segment),
    ("query_param", extract_query_param),
    ("data_params", extract_data_params),
)


def extract_coordinates(url: str) -> GeoPoint | None:
    """Return the first coordinate pair found by the ordered extractors, or None."""
    for _name, extractor in EXTRACTORS:
        point = extractor(url)
        if point is not None:
            return point
    return None


def parse_raw_coordinates(text: str) -> GeoPoint | None:
    """Find a `"<float>, <float>"` pair anywhere in `text` (first valid pair wins)."""
    return _search(_RAW_PAIR_RE, text)


def looks_like_map_link(text: str, markers: list[str]) -> bool:
    """True when pasted text should go through link resolution instead of raw parsing."""
    lowered = text.strip().lower()
    return any(marker.lower() in lowered for marker in markers)
