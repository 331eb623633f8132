import pytest

from tadamon.domain.models import GeoPoint, NeighborProfile, Posting
from tadamon.matching.feed import build_feed

ORIGIN = GeoPoint(latitude=33.5731, longitude=-7.5898)
NEARBY = GeoPoint(latitude=33.5750, longitude=-7.5910)
FAR = GeoPoint(latitude=34.0209, longitude=-6.8416)


class StubBackend:
    def __init__(self, postings=None, neighbors=None, postings_error=None, neighbors_error=None):
        self._postings = postings or []
        self._neighbors = neighbors or []
        self._postings_error = postings_error
        self._neighbors_error = neighbors_error
        self.neighbor_origins = []

    async def fetch_postings(self):
        if self._postings_error is not None:
            raise self._postings_error
        return self._postings

    async def fetch_neighbors(self, origin):
        self.neighbor_origins.append(origin)
        if self._neighbors_error is not None:
            raise self._neighbors_error
        return self._neighbors


POSTINGS = [
    Posting(id="p-near", kind="OFFER", title="Bread", owner_id="u1", origin=NEARBY),
    Posting(id="p-far", kind="OFFER", title="Rice", owner_id="u2", origin=FAR),
    Posting(id="p-req", kind="REQUEST", title="Blankets", owner_id="u3", origin=NEARBY),
]
NEIGHBORS = [
    NeighborProfile(id="viewer", display_name="Me", origin=ORIGIN),
    NeighborProfile(id="n1", display_name="Amina", origin=NEARBY),
]


@pytest.mark.asyncio
async def test_feed_filters_both_sections():
    backend = StubBackend(postings=POSTINGS, neighbors=NEIGHBORS)
    feed = await build_feed(backend, origin=ORIGIN, radius_km=5, role="RECEIVER", viewer_id="viewer")

    assert feed.ok
    assert [n.item.id for n in feed.postings] == ["p-near"]
    assert [n.item.id for n in feed.neighbors] == ["n1"]
    assert backend.neighbor_origins == [ORIGIN]


@pytest.mark.asyncio
async def test_giver_sees_requests():
    feed = await build_feed(StubBackend(postings=POSTINGS), origin=ORIGIN, radius_km=5, role="GIVER")
    assert [n.item.id for n in feed.postings] == ["p-req"]


@pytest.mark.asyncio
async def test_postings_failure_does_not_hide_neighbors():
    backend = StubBackend(neighbors=NEIGHBORS, postings_error=RuntimeError("500"))
    feed = await build_feed(backend, origin=ORIGIN, radius_km=5, role="RECEIVER", viewer_id="viewer")

    assert not feed.ok
    assert feed.postings == []
    assert set(feed.errors) == {"postings"}
    assert feed.errors["postings"].code == "FETCH_FAILED"
    assert [n.item.id for n in feed.neighbors] == ["n1"]


@pytest.mark.asyncio
async def test_neighbors_failure_does_not_hide_postings():
    backend = StubBackend(postings=POSTINGS, neighbors_error=ConnectionError("offline"))
    feed = await build_feed(backend, origin=ORIGIN, radius_km=5, role="RECEIVER")

    assert set(feed.errors) == {"neighbors"}
    assert feed.neighbors == []
    assert [n.item.id for n in feed.postings] == ["p-near"]


@pytest.mark.asyncio
async def test_feed_rejects_non_positive_radius():
    with pytest.raises(ValueError):
        await build_feed(StubBackend(), origin=ORIGIN, radius_km=0, role="GIVER")
