"""
Offline posting/neighbor catalogs.

For demos and the CLI (no backend at hand) postings and neighbor profiles can be read
from local JSON files. We validate them into the same Pydantic models the backend
client produces, so the matching code cannot tell the difference.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter

from tadamon.core.env import resolve_project_path
from tadamon.domain.models import NeighborProfile, Posting


_POSTINGS_ADAPTER = TypeAdapter(list[Posting])
_NEIGHBORS_ADAPTER = TypeAdapter(list[NeighborProfile])


def _read_json(path: str | Path):
    resolved = resolve_project_path(path)
    return json.loads(resolved.read_text(encoding="utf-8"))


def load_postings(path: str | Path) -> list[Posting]:
    """Load and validate a postings catalog (a JSON list, or `{"postings": [...]}`)."""
    payload = _read_json(path)
    if isinstance(payload, dict):
        payload = payload.get("postings") or []
    return _POSTINGS_ADAPTER.validate_python(payload)


def load_neighbors(path: str | Path) -> list[NeighborProfile]:
    """Load and validate a neighbors catalog (a JSON list, or `{"neighbors": [...]}`)."""
    payload = _read_json(path)
    if isinstance(payload, dict):
        payload = payload.get("neighbors") or []
    return _NEIGHBORS_ADAPTER.validate_python(payload)
