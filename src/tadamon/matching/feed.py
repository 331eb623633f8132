from __future__ import annotations

# Home-screen feed assembly.
#
# Postings and neighbors come from two independent backend reads. Either can fail
# without taking the other down: the failed section is empty and its error is kept
# in `Feed.errors` so the caller can offer a retry for just that section.

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal

from tadamon.domain.errors import FetchFailed
from tadamon.domain.models import Category, GeoPoint, NeighborProfile, Posting, Role
from tadamon.matching.proximity import (
    Nearby,
    filter_by_radius,
    neighbor_entries,
    posting_entries,
    target_kind_for,
)
from tadamon.services.contracts import SessionBackend

logger = logging.getLogger(__name__)

FeedSection = Literal["postings", "neighbors"]


@dataclass
class Feed:
    postings: list[Nearby[Posting]] = field(default_factory=list)
    neighbors: list[Nearby[NeighborProfile]] = field(default_factory=list)
    errors: dict[FeedSection, FetchFailed] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


async def _fetch_postings(backend: SessionBackend) -> list[Posting]:
    try:
        return await backend.fetch_postings()
    except Exception as exc:
        logger.warning("Failed to fetch postings: %s", exc)
        raise FetchFailed("Failed to fetch postings", details={"reason": str(exc)}) from exc


async def _fetch_neighbors(backend: SessionBackend, origin: GeoPoint) -> list[NeighborProfile]:
    try:
        return await backend.fetch_neighbors(origin)
    except Exception as exc:
        logger.warning("Failed to fetch neighbors: %s", exc)
        raise FetchFailed("Failed to fetch neighbors", details={"reason": str(exc)}) from exc


async def build_feed(
    backend: SessionBackend,
    *,
    origin: GeoPoint,
    radius_km: float,
    role: Role,
    category: Category | None = None,
    viewer_id: str | None = None,
) -> Feed:
    """Fetch both sections concurrently and radius-filter each one around `origin`."""
    if not radius_km > 0:
        raise ValueError("radius_km must be > 0")

    postings_result, neighbors_result = await asyncio.gather(
        _fetch_postings(backend),
        _fetch_neighbors(backend, origin),
        return_exceptions=True,
    )

    feed = Feed()

    if isinstance(postings_result, FetchFailed):
        feed.errors["postings"] = postings_result
    elif isinstance(postings_result, BaseException):
        raise postings_result
    else:
        entries = posting_entries(postings_result, kind=target_kind_for(role), category=category)
        feed.postings = filter_by_radius(origin, radius_km, entries)

    if isinstance(neighbors_result, FetchFailed):
        feed.errors["neighbors"] = neighbors_result
    elif isinstance(neighbors_result, BaseException):
        raise neighbors_result
    else:
        entries = neighbor_entries(neighbors_result, category=category, exclude_id=viewer_id)
        feed.neighbors = filter_by_radius(origin, radius_km, entries)

    logger.debug(
        "Feed built: %d postings, %d neighbors within %.1f km (errors=%s)",
        len(feed.postings),
        len(feed.neighbors),
        radius_km,
        sorted(feed.errors),
    )
    return feed
