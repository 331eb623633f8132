"""
Collaborator contracts.

The core never talks to a device, a network or a database directly; it calls these
protocols. Production wiring uses `tadamon.services.link_resolver.HttpLinkResolver`
and `tadamon.services.backend_client.HostedBackendClient`; tests pass small fakes.
"""

from __future__ import annotations

from typing import Callable, Protocol

from tadamon.domain.models import (
    Anchor,
    CanonicalLocation,
    ConversationSession,
    GeoPoint,
    Message,
    MessageKind,
    NeighborProfile,
    Posting,
)

MessagePayload = str | CanonicalLocation
Unsubscribe = Callable[[], None]


class PositioningService(Protocol):
    async def get_current_position(self) -> GeoPoint:
        """Return the device's current fix; raise on missing capability or denied permission."""
        ...


class LinkResolutionService(Protocol):
    async def resolve_map_link(self, url: str) -> str:
        """Follow redirects and return the final URL; raise on network failure."""
        ...


class SessionBackend(Protocol):
    async def create_session(self, participant_ids: frozenset[str], anchor: Anchor) -> str: ...

    async def list_sessions(self, user_id: str) -> list[ConversationSession]: ...

    async def append_message(
        self, session_id: str, sender_id: str, kind: MessageKind, payload: MessagePayload
    ) -> Message: ...

    async def fetch_postings(self) -> list[Posting]: ...

    async def fetch_neighbors(self, origin: GeoPoint | None) -> list[NeighborProfile]: ...


class RealtimeService(Protocol):
    def subscribe(self, session_id: str, on_message: Callable[[Message], None]) -> Unsubscribe: ...
