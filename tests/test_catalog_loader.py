import json

import pytest
from pydantic import ValidationError

from tadamon.catalog.loader import load_neighbors, load_postings


def test_load_postings_from_list(tmp_path):
    path = tmp_path / "postings.json"
    path.write_text(
        json.dumps(
            [
                {"id": "p1", "kind": "OFFER", "category": "FOOD", "title": "Bread", "owner_id": "u1",
                 "origin": {"latitude": 33.5750, "longitude": -7.5910}},
                {"id": "p2", "kind": "REQUEST", "title": "Coat", "owner_id": "u2"},
            ]
        ),
        encoding="utf-8",
    )
    postings = load_postings(path)
    assert [p.id for p in postings] == ["p1", "p2"]
    assert postings[1].origin is None
    assert postings[1].category == "OTHERS"


def test_load_neighbors_from_wrapped_object(tmp_path):
    path = tmp_path / "neighbors.json"
    path.write_text(
        json.dumps({"neighbors": [{"id": "n1", "display_name": "Amina", "tags": ["FOOD"]}]}),
        encoding="utf-8",
    )
    neighbors = load_neighbors(path)
    assert neighbors[0].tags == frozenset({"FOOD"})


def test_invalid_catalog_rows_are_rejected(tmp_path):
    path = tmp_path / "postings.json"
    path.write_text(json.dumps({"postings": [{"id": "p1", "kind": "GIFT", "title": "x", "owner_id": "u"}]}))
    with pytest.raises(ValidationError):
        load_postings(path)
