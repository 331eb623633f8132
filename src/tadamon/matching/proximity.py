"""
Radius filtering and distance ranking.

`filter_by_radius` is deliberately stateless: the radius is a live slider and the
location can change at any time, so every call recomputes distances from scratch.

Entries without a location are dropped outright. They are never treated as being at
distance 0, which would float them to the top of every list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, TypeVar

from tadamon.core.geo import distance_km, format_distance
from tadamon.domain.models import Category, GeoPoint, NeighborProfile, Posting, PostingKind, Role

T = TypeVar("T")


@dataclass(frozen=True)
class RadiusEntry(Generic[T]):
    item: T
    location: GeoPoint | None


@dataclass(frozen=True)
class Nearby(Generic[T]):
    """One visible entry, annotated with its distance from the viewer."""

    item: T
    distance_km: float

    @property
    def display_distance(self) -> str:
        return format_distance(self.distance_km)


def filter_by_radius(
    origin: GeoPoint, radius_km: float, entries: Iterable[RadiusEntry[T]]
) -> list[Nearby[T]]:
    """Return entries within `radius_km` of `origin`, nearest first.

    Ties keep their input order (`sorted` is stable).
    """
    if not radius_km > 0:
        raise ValueError("radius_km must be > 0")

    visible: list[Nearby[T]] = []
    for entry in entries:
        if entry.location is None:
            continue
        d = distance_km(origin, entry.location)
        if d <= radius_km:
            visible.append(Nearby(item=entry.item, distance_km=d))
    return sorted(visible, key=lambda n: n.distance_km)


def target_kind_for(role: Role) -> PostingKind:
    """Givers browse requests; receivers browse offers."""
    return "REQUEST" if role == "GIVER" else "OFFER"


def posting_entries(
    postings: Iterable[Posting],
    *,
    kind: PostingKind | None = None,
    category: Category | None = None,
    available_only: bool = True,
) -> list[RadiusEntry[Posting]]:
    """Pre-filter postings by kind/category/status and pair them with their origins."""
    out: list[RadiusEntry[Posting]] = []
    for p in postings:
        if kind is not None and p.kind != kind:
            continue
        if category is not None and p.category != category:
            continue
        if available_only and p.status != "AVAILABLE":
            continue
        out.append(RadiusEntry(item=p, location=p.origin))
    return out


def neighbor_entries(
    neighbors: Iterable[NeighborProfile],
    *,
    category: Category | None = None,
    exclude_id: str | None = None,
) -> list[RadiusEntry[NeighborProfile]]:
    """Pre-filter neighbors by tag, skipping the viewer's own profile."""
    out: list[RadiusEntry[NeighborProfile]] = []
    for n in neighbors:
        if exclude_id is not None and n.id == exclude_id:
            continue
        if category is not None and category not in n.tags:
            continue
        out.append(RadiusEntry(item=n, location=n.origin))
    return out
