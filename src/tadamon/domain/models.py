"""
Domain models (Pydantic).

These types are the contract between the core and its collaborators:
- locations (`GeoPoint`, `CanonicalLocation`)
- what people post and who they are (`Posting`, `NeighborProfile`)
- conversations (`Anchor`, `ConversationSession`, `Message`)

Value types are frozen. `ConversationSession` is the one mutable model, and only
`tadamon.chat.sessions.ConversationManager` mutates it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tadamon.core.time import ensure_utc, utcnow

PostingKind = Literal["OFFER", "REQUEST"]
Category = Literal["FOOD", "CLOTHES", "OTHERS"]
PostingStatus = Literal["AVAILABLE", "TAKEN", "CLAIMED", "COMPLETED"]
LocationSource = Literal["GPS", "MANUAL_CITY", "MAP_LINK", "RAW_COORDINATES"]
MessageKind = Literal["TEXT", "LOCATION"]
Role = Literal["GIVER", "RECEIVER"]

DIRECT_ANCHOR_KEY = "direct"


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class CanonicalLocation(GeoPoint):
    """A resolved location: coordinates plus a display label and where it came from."""

    label: str
    source: LocationSource

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)

    @property
    def maps_url(self) -> str:
        """Link that opens this point in a maps app (used for shared meeting points)."""
        return f"https://www.google.com/maps?q={self.latitude},{self.longitude}"


class Posting(BaseModel):
    """A donation offer or a help request."""

    id: str
    kind: PostingKind
    category: Category = "OTHERS"
    title: str
    quantity_label: str = ""
    description: str = ""
    origin: GeoPoint | None = None
    is_anonymous: bool = False
    owner_id: str
    owner_name: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    status: PostingStatus = "AVAILABLE"


class NeighborProfile(BaseModel):
    """A person visible for direct contact."""

    id: str
    display_name: str
    is_anonymous: bool = False
    origin: GeoPoint | None = None
    tags: frozenset[Category] = Field(default_factory=frozenset)
    bio: str = ""


class Anchor(BaseModel):
    """What a conversation is about: one posting, or a direct contact (`posting_id=None`)."""

    model_config = ConfigDict(frozen=True)

    posting_id: str | None = None

    @classmethod
    def direct(cls) -> "Anchor":
        return cls(posting_id=None)

    @classmethod
    def for_posting(cls, posting_id: str) -> "Anchor":
        return cls(posting_id=posting_id)

    @property
    def is_direct(self) -> bool:
        return self.posting_id is None

    @property
    def key(self) -> str:
        if self.posting_id is None:
            return DIRECT_ANCHOR_KEY
        return f"posting:{self.posting_id}"


class Message(BaseModel):
    """One chat message. Server-assigned `id` and `sent_at`."""

    model_config = ConfigDict(frozen=True)

    id: str
    sender_id: str
    kind: MessageKind = "TEXT"
    text: str = ""
    location: CanonicalLocation | None = None
    sent_at: datetime

    @field_validator("sent_at")
    @classmethod
    def _normalize_sent_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="before")
    @classmethod
    def _describe_location(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("kind") == "LOCATION" and not data.get("text"):
            loc = data.get("location")
            label = loc.label if isinstance(loc, CanonicalLocation) else (loc or {}).get("label")
            if label:
                data = {**data, "text": location_message_text(label)}
        return data

    @model_validator(mode="after")
    def _validate_payload(self) -> "Message":
        if self.kind == "TEXT" and not self.text.strip():
            raise ValueError("TEXT messages require non-empty text")
        if self.kind == "LOCATION" and self.location is None:
            raise ValueError("LOCATION messages require a location")
        return self

    def is_mine(self, viewer_id: str) -> bool:
        return self.sender_id == viewer_id


class ConversationSession(BaseModel):
    """A two-party conversation anchored to a posting or a direct contact."""

    id: str
    anchor: Anchor = Field(default_factory=Anchor.direct)
    participant_ids: frozenset[str]
    title: str
    counterpart_label: str = "Neighbor"
    messages: list[Message] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("participant_ids")
    @classmethod
    def _exactly_two(cls, ids: frozenset[str]) -> frozenset[str]:
        if len(ids) != 2:
            raise ValueError("a conversation needs exactly two distinct participants")
        return ids

    @field_validator("updated_at")
    @classmethod
    def _normalize_updated_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def other_participant(self, user_id: str) -> str:
        others = [p for p in self.participant_ids if p != user_id]
        if len(others) != 1:
            raise ValueError(f"user {user_id!r} is not a participant of session {self.id!r}")
        return others[0]


def location_message_text(label: str) -> str:
    """Generated text body of a LOCATION message."""
    return f"Shared location: {label}"
