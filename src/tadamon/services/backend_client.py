"""
Hosted backend client (PostgREST-style REST API).

This module is responsible only for:
- talking HTTP to the hosted backend's REST endpoint (one table per resource),
- mapping rows into domain models (`Posting`, `NeighborProfile`, `ConversationSession`, `Message`).

It does not deduplicate, order or cache anything; that is `ConversationManager`'s job.
Transport and status errors surface as `httpx.HTTPError` so the callers can map them
onto `SendFailed` / `CreateSessionFailed` / `FetchFailed`. A 409 on session creation
is reported as `DuplicateSession`.

Row shapes:
- items:          id, type (OFFER|REQUEST), category, title, quantity, description,
                  latitude, longitude, is_anonymous, user_id, created_at, status, user{name}
- users:          id, name, is_anonymous, latitude, longitude, tags, bio
- chat_sessions:  id, item_id, updated_at, item{title}, chat_participants[user{id,name}], messages[...]
- messages:       id, chat_id, sender_id, text, type (text|location), latitude, longitude, label, created_at
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, TypeVar

import httpx
from pydantic import ValidationError

from tadamon.config.settings import Settings
from tadamon.core.http import build_async_client
from tadamon.core.time import parse_datetime, utcnow
from tadamon.domain.errors import DuplicateSession
from tadamon.domain.models import (
    Anchor,
    CanonicalLocation,
    ConversationSession,
    GeoPoint,
    Message,
    MessageKind,
    NeighborProfile,
    Posting,
    location_message_text,
)
from tadamon.services.contracts import MessagePayload

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CATEGORIES = {"FOOD", "CLOTHES", "OTHERS"}
_STATUSES = {"AVAILABLE", "TAKEN", "CLAIMED", "COMPLETED"}

_SESSION_SELECT = (
    "id,updated_at,item_id,item:items(title),"
    "chat_participants(user:users(id,name)),"
    "messages(id,text,type,latitude,longitude,label,created_at,sender_id)"
)


def _point_or_none(row: dict[str, Any]) -> GeoPoint | None:
    lat = row.get("latitude")
    lng = row.get("longitude")
    # Explicit None checks: 0.0 is a real coordinate.
    if lat is None or lng is None:
        return None
    return GeoPoint(latitude=float(lat), longitude=float(lng))


def _timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value.strip():
        return parse_datetime(value)
    return utcnow()


def _single(value: Any) -> dict[str, Any]:
    # Embedded to-one relations come back as an object or a one-element list.
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


class HostedBackendClient:
    """`SessionBackend` implementation over the hosted backend's REST API."""

    def __init__(
        self,
        settings: Settings,
        *,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        cfg = settings.backend
        self._cfg = cfg
        headers: dict[str, str] = {}
        if cfg.api_key:
            headers["apikey"] = cfg.api_key
        token = access_token or cfg.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = build_async_client(
            base_url=cfg.base_url.rstrip("/"),
            headers=headers,
            timeout_seconds=float(settings.app.http_timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HostedBackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- low-level -------------------------------------------------------------

    async def _get_rows(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        resp = await self._client.get(f"/{table}", params=params)
        resp.raise_for_status()
        data = resp.json()
        return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []

    async def _insert(self, table: str, payload: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        resp = await self._client.post(
            f"/{table}", json=payload, headers={"Prefer": "return=representation"}
        )
        resp.raise_for_status()
        data = resp.json()
        if isinstance(data, dict):
            return [data]
        return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []

    @staticmethod
    def _parse_all(rows: list[dict[str, Any]], parse: Callable[[dict[str, Any]], T], what: str) -> list[T]:
        out: list[T] = []
        for row in rows:
            try:
                out.append(parse(row))
            except (ValidationError, ValueError, TypeError, KeyError) as exc:
                logger.warning("Skipping malformed %s row %r: %s", what, row.get("id"), exc)
        return out

    # -- row mapping -----------------------------------------------------------

    def _posting_from_row(self, row: dict[str, Any]) -> Posting:
        is_anonymous = bool(row.get("is_anonymous"))
        owner = _single(row.get("user"))
        category = str(row.get("category") or "OTHERS").upper()
        status = str(row.get("status") or "AVAILABLE").upper()
        return Posting(
            id=str(row["id"]),
            kind=str(row["type"]).upper(),
            category=category if category in _CATEGORIES else "OTHERS",
            title=str(row.get("title") or ""),
            quantity_label=str(row.get("quantity") or ""),
            description=str(row.get("description") or ""),
            origin=_point_or_none(row),
            is_anonymous=is_anonymous,
            owner_id=str(row.get("user_id") or owner.get("id") or ""),
            owner_name=self._cfg.anonymous_name if is_anonymous else (owner.get("name") or "Unknown"),
            created_at=_timestamp(row.get("created_at")),
            status=status if status in _STATUSES else "AVAILABLE",
        )

    def _neighbor_from_row(self, row: dict[str, Any]) -> NeighborProfile:
        is_anonymous = bool(row.get("is_anonymous"))
        tags = {str(t).upper() for t in (row.get("tags") or [])}
        return NeighborProfile(
            id=str(row["id"]),
            display_name=self._cfg.anonymous_name if is_anonymous else str(row.get("name") or "Neighbor"),
            is_anonymous=is_anonymous,
            origin=_point_or_none(row),
            tags=frozenset(t for t in tags if t in _CATEGORIES),
            bio=str(row.get("bio") or ""),
        )

    def _message_from_row(self, row: dict[str, Any]) -> Message:
        kind: MessageKind = "LOCATION" if str(row.get("type") or "text").lower() == "location" else "TEXT"
        location = None
        if kind == "LOCATION":
            point = _point_or_none(row)
            if point is not None:
                location = CanonicalLocation(
                    latitude=point.latitude,
                    longitude=point.longitude,
                    label=str(row.get("label") or "Shared Location"),
                    source="MAP_LINK",
                )
        return Message(
            id=str(row["id"]),
            sender_id=str(row["sender_id"]),
            kind=kind,
            text=str(row.get("text") or ""),
            location=location,
            sent_at=_timestamp(row.get("created_at")),
        )

    def _session_from_row(self, row: dict[str, Any], user_id: str) -> ConversationSession:
        users = [_single(p.get("user")) for p in row.get("chat_participants") or [] if isinstance(p, dict)]
        participant_ids = frozenset(str(u["id"]) for u in users if u.get("id"))
        other = next((u for u in users if str(u.get("id")) != user_id), {})
        item_id = row.get("item_id")
        anchor = Anchor.for_posting(str(item_id)) if item_id else Anchor.direct()
        item = _single(row.get("item"))
        messages = self._parse_all(
            [m for m in row.get("messages") or [] if isinstance(m, dict)], self._message_from_row, "message"
        )
        # Embedded rows carry no guaranteed order; stored order is creation order.
        messages.sort(key=lambda m: m.sent_at)
        return ConversationSession(
            id=str(row["id"]),
            anchor=anchor,
            participant_ids=participant_ids,
            title=str(item.get("title") or self._cfg.direct_chat_title),
            counterpart_label=str(other.get("name") or self._cfg.default_counterpart_label),
            messages=messages,
            updated_at=_timestamp(row.get("updated_at")),
        )

    # -- SessionBackend --------------------------------------------------------

    async def fetch_postings(self) -> list[Posting]:
        rows = await self._get_rows(
            self._cfg.tables.items,
            {"select": "*,user:users(id,name)", "order": "created_at.desc"},
        )
        return self._parse_all(rows, self._posting_from_row, "posting")

    async def fetch_neighbors(self, origin: GeoPoint | None) -> list[NeighborProfile]:
        # The REST layer has no distance operator; radius filtering happens client-side.
        rows = await self._get_rows(
            self._cfg.tables.users,
            {"select": "*", "latitude": "not.is.null", "longitude": "not.is.null"},
        )
        return self._parse_all(rows, self._neighbor_from_row, "neighbor")

    async def create_session(self, participant_ids: frozenset[str], anchor: Anchor) -> str:
        try:
            rows = await self._insert(self._cfg.tables.sessions, {"item_id": anchor.posting_id})
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 409:
                raise DuplicateSession("Session already exists", details={"anchor": anchor.key}) from exc
            raise
        if not rows or "id" not in rows[0]:
            raise ValueError("backend returned no session id")
        session_id = str(rows[0]["id"])
        await self._insert(
            self._cfg.tables.participants,
            [{"chat_id": session_id, "user_id": uid} for uid in sorted(participant_ids)],
        )
        return session_id

    async def list_sessions(self, user_id: str) -> list[ConversationSession]:
        memberships = await self._get_rows(
            self._cfg.tables.participants, {"select": "chat_id", "user_id": f"eq.{user_id}"}
        )
        chat_ids = [str(m["chat_id"]) for m in memberships if m.get("chat_id") is not None]
        if not chat_ids:
            return []
        rows = await self._get_rows(
            self._cfg.tables.sessions,
            {
                "select": _SESSION_SELECT,
                "id": f"in.({','.join(chat_ids)})",
                "order": "updated_at.desc",
            },
        )
        return self._parse_all(rows, lambda r: self._session_from_row(r, user_id), "session")

    async def append_message(
        self, session_id: str, sender_id: str, kind: MessageKind, payload: MessagePayload
    ) -> Message:
        body: dict[str, Any] = {"chat_id": session_id, "sender_id": sender_id}
        if kind == "LOCATION" and isinstance(payload, CanonicalLocation):
            body.update(
                {
                    "type": "location",
                    "text": location_message_text(payload.label),
                    "latitude": payload.latitude,
                    "longitude": payload.longitude,
                    "label": payload.label,
                }
            )
        else:
            body.update({"type": "text", "text": str(payload)})
        rows = await self._insert(self._cfg.tables.messages, body)
        if not rows:
            raise ValueError("backend returned no message row")
        message = self._message_from_row(rows[0])
        if message.location is not None and isinstance(payload, CanonicalLocation):
            # Keep the sender's provenance; the row does not store it.
            message = message.model_copy(update={"location": payload})
        return message
