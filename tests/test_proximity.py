import pytest

from tadamon.domain.models import GeoPoint, NeighborProfile, Posting
from tadamon.matching.proximity import (
    RadiusEntry,
    filter_by_radius,
    neighbor_entries,
    posting_entries,
    target_kind_for,
)

ORIGIN = GeoPoint(latitude=33.5731, longitude=-7.5898)


def _posting(pid, kind="OFFER", category="FOOD", origin=None, status="AVAILABLE"):
    return Posting(
        id=pid, kind=kind, category=category, title=f"Posting {pid}", owner_id="u-owner", origin=origin, status=status
    )


def test_nearby_entry_included_and_far_entry_excluded():
    near = RadiusEntry(item="bread", location=GeoPoint(latitude=33.5750, longitude=-7.5910))
    far = RadiusEntry(item="rice", location=GeoPoint(latitude=34.0, longitude=-6.8))

    visible = filter_by_radius(ORIGIN, 5, [near, far])

    assert [n.item for n in visible] == ["bread"]
    assert 0.2 < visible[0].distance_km < 0.3
    assert visible[0].display_distance.endswith("m")
    assert not visible[0].display_distance.endswith("km")


def test_entries_without_location_are_excluded():
    entries = [
        RadiusEntry(item="nowhere", location=None),
        RadiusEntry(item="here", location=ORIGIN),
    ]
    visible = filter_by_radius(ORIGIN, 1, entries)
    assert [n.item for n in visible] == ["here"]
    assert visible[0].distance_km == 0.0


def test_results_sorted_nearest_first_with_stable_ties():
    spot = GeoPoint(latitude=33.58, longitude=-7.59)
    entries = [
        RadiusEntry(item="far", location=GeoPoint(latitude=33.60, longitude=-7.59)),
        RadiusEntry(item="tie-1", location=spot),
        RadiusEntry(item="origin", location=ORIGIN),
        RadiusEntry(item="tie-2", location=spot),
    ]
    visible = filter_by_radius(ORIGIN, 10, entries)
    assert [n.item for n in visible] == ["origin", "tie-1", "tie-2", "far"]


def test_radius_boundary_is_inclusive():
    point = GeoPoint(latitude=33.5831, longitude=-7.5898)
    entry = RadiusEntry(item="edge", location=point)
    d = filter_by_radius(ORIGIN, 100, [entry])[0].distance_km
    assert [n.item for n in filter_by_radius(ORIGIN, d, [entry])] == ["edge"]


@pytest.mark.parametrize("radius", [0, -1, 0.0])
def test_non_positive_radius_is_rejected(radius):
    with pytest.raises(ValueError):
        filter_by_radius(ORIGIN, radius, [])


def test_target_kind_for_role():
    assert target_kind_for("GIVER") == "REQUEST"
    assert target_kind_for("RECEIVER") == "OFFER"


def test_posting_entries_filters_kind_category_and_status():
    postings = [
        _posting("1", kind="OFFER", category="FOOD", origin=ORIGIN),
        _posting("2", kind="REQUEST", category="FOOD", origin=ORIGIN),
        _posting("3", kind="OFFER", category="CLOTHES", origin=ORIGIN),
        _posting("4", kind="OFFER", category="FOOD", origin=ORIGIN, status="TAKEN"),
        _posting("5", kind="OFFER", category="FOOD", origin=None),
    ]
    entries = posting_entries(postings, kind="OFFER", category="FOOD")
    assert [e.item.id for e in entries] == ["1", "5"]
    assert [n.item.id for n in filter_by_radius(ORIGIN, 5, entries)] == ["1"]

    everything = posting_entries(postings, available_only=False)
    assert len(everything) == 5


def test_neighbor_entries_skip_viewer_and_filter_tags():
    neighbors = [
        NeighborProfile(id="me", display_name="Me", origin=ORIGIN, tags={"FOOD"}),
        NeighborProfile(id="a", display_name="Amina", origin=ORIGIN, tags={"FOOD", "CLOTHES"}),
        NeighborProfile(id="b", display_name="Brahim", origin=ORIGIN, tags={"OTHERS"}),
    ]
    entries = neighbor_entries(neighbors, category="FOOD", exclude_id="me")
    assert [e.item.id for e in entries] == ["a"]
