"""
Conversation sessions.

`ConversationManager` owns every session this client knows about and is the only code
that mutates them. It guarantees:

- at most one session per (participant pair, anchor): an index keyed by the unordered
  pair of user ids plus the anchor key is checked synchronously before any create call
  goes out, and concurrent callers for the same key share one in-flight create;
- messages are appended in arrival order and only after the backend stored them, so a
  failed send leaves the session exactly as it was;
- realtime echoes of messages we already hold are not appended twice.

Lifecycle per key: NONE (no index entry) -> PENDING_CREATE (create in flight) -> ACTIVE.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from tadamon.config.settings import Settings, get_settings
from tadamon.core.time import utcnow
from tadamon.domain.errors import (
    CreateSessionFailed,
    DuplicateSession,
    FetchFailed,
    SendFailed,
    SessionNotFound,
)
from tadamon.domain.models import Anchor, CanonicalLocation, ConversationSession, Message, MessageKind
from tadamon.services.contracts import MessagePayload, RealtimeService, SessionBackend, Unsubscribe

logger = logging.getLogger(__name__)

SessionKey = tuple[frozenset[str], str]


def session_key(user_a: str, user_b: str, anchor: Anchor) -> SessionKey:
    """Canonical dedup key: unordered participant pair + anchor key."""
    return frozenset((user_a, user_b)), anchor.key


def _key_of(session: ConversationSession) -> SessionKey:
    return session.participant_ids, session.anchor.key


def _validate_payload(kind: MessageKind, payload: MessagePayload) -> None:
    if kind == "TEXT":
        if not isinstance(payload, str) or not payload.strip():
            raise ValueError("TEXT messages require non-empty text")
    elif kind == "LOCATION":
        if not isinstance(payload, CanonicalLocation):
            raise ValueError("LOCATION messages require a resolved CanonicalLocation")
    else:
        raise ValueError(f"Unknown message kind: {kind!r}")


class ConversationManager:
    def __init__(
        self,
        backend: SessionBackend,
        *,
        realtime: RealtimeService | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._backend = backend
        self._realtime = realtime
        self._settings = settings or get_settings()
        self._clock = clock
        self._sessions: dict[str, ConversationSession] = {}
        self._index: dict[SessionKey, str] = {}
        self._pending: dict[SessionKey, asyncio.Task[ConversationSession]] = {}
        self._subscriptions: dict[str, Unsubscribe] = {}

    # -- lookups ---------------------------------------------------------------

    def get(self, session_id: str) -> ConversationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Unknown session {session_id!r}", details={"session_id": session_id})
        return session

    def find(self, user_a: str, user_b: str, anchor: Anchor) -> ConversationSession | None:
        session_id = self._index.get(session_key(user_a, user_b, anchor))
        return self._sessions.get(session_id) if session_id is not None else None

    def is_pending(self, user_a: str, user_b: str, anchor: Anchor) -> bool:
        return session_key(user_a, user_b, anchor) in self._pending

    def sessions_for(self, local_user_id: str) -> list[ConversationSession]:
        """Local view (no network): the user's sessions, most recently active first."""
        mine = [s for s in self._sessions.values() if local_user_id in s.participant_ids]
        return sorted(mine, key=lambda s: s.updated_at, reverse=True)

    # -- creation --------------------------------------------------------------

    async def get_or_create(
        self,
        local_user_id: str,
        other_user_id: str,
        anchor: Anchor,
        *,
        title: str | None = None,
        counterpart_label: str | None = None,
    ) -> ConversationSession:
        """Return the session for this pair and anchor, creating it at most once."""
        if local_user_id == other_user_id:
            raise ValueError("cannot open a conversation with yourself")

        key = session_key(local_user_id, other_user_id, anchor)
        existing_id = self._index.get(key)
        if existing_id is not None:
            return self._sessions[existing_id]

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._create(key, local_user_id, anchor, title=title, counterpart_label=counterpart_label)
            )
            self._pending[key] = task
        else:
            logger.debug("Joining in-flight session create for anchor %s", anchor.key)

        # Shielded: a caller giving up must not cancel the create other callers are waiting on.
        return await asyncio.shield(task)

    async def _create(
        self,
        key: SessionKey,
        local_user_id: str,
        anchor: Anchor,
        *,
        title: str | None,
        counterpart_label: str | None,
    ) -> ConversationSession:
        try:
            return await self._create_unguarded(
                key, local_user_id, anchor, title=title, counterpart_label=counterpart_label
            )
        finally:
            # Released on success and failure alike; a failed create can be retried.
            self._pending.pop(key, None)

    async def _create_unguarded(
        self,
        key: SessionKey,
        local_user_id: str,
        anchor: Anchor,
        *,
        title: str | None,
        counterpart_label: str | None,
    ) -> ConversationSession:
        participants = key[0]
        try:
            session_id = await self._backend.create_session(participants, anchor)
        except DuplicateSession:
            logger.info("Backend reported an existing session for anchor %s; re-fetching", anchor.key)
            return await self._adopt_existing(key, local_user_id)
        except Exception as exc:
            logger.warning("Session create failed for anchor %s: %s", anchor.key, exc)
            raise CreateSessionFailed(
                "Unable to start chat", details={"anchor": anchor.key, "reason": str(exc)}
            ) from exc

        known = self._sessions.get(session_id)
        if known is not None:
            # The backend merged us into a session we already hold under its own key.
            self._index[key] = known.id
            return known

        backend_cfg = self._settings.backend
        session = ConversationSession(
            id=session_id,
            anchor=anchor,
            participant_ids=participants,
            title=title or (backend_cfg.direct_chat_title if anchor.is_direct else f"Posting {anchor.posting_id}"),
            counterpart_label=counterpart_label or backend_cfg.default_counterpart_label,
            messages=[],
            updated_at=self._clock(),
        )
        self._store(session)
        logger.info("Created session %s for anchor %s", session.id, anchor.key)
        return session

    async def _adopt_existing(self, key: SessionKey, local_user_id: str) -> ConversationSession:
        try:
            remote = await self._backend.list_sessions(local_user_id)
        except Exception as exc:
            raise CreateSessionFailed(
                "Unable to load the existing chat", details={"anchor": key[1], "reason": str(exc)}
            ) from exc
        for session in remote:
            if _key_of(session) == key:
                self._store(session)
                return session
        raise CreateSessionFailed(
            "Backend reported a duplicate chat that could not be found", details={"anchor": key[1]}
        )

    def _store(self, session: ConversationSession) -> None:
        """Insert or replace `session`, keeping the index at one session per key."""
        key = _key_of(session)
        previous_id = self._index.get(key)
        if previous_id is not None and previous_id != session.id:
            logger.info("Replacing local session %s with backend session %s", previous_id, session.id)
            self._sessions.pop(previous_id, None)
            self.unwatch(previous_id)
        local = self._sessions.get(session.id)
        if local is not None and local is not session:
            # The server snapshot predates messages that landed while it was in flight.
            server_ids = {m.id for m in session.messages}
            session.messages.extend(m for m in local.messages if m.id not in server_ids)
            session.updated_at = max(session.updated_at, local.updated_at)
        self._sessions[session.id] = session
        self._index[key] = session.id

    # -- messages --------------------------------------------------------------

    async def append_message(
        self, session_id: str, kind: MessageKind, payload: MessagePayload, *, sender_id: str
    ) -> Message:
        """Persist a message, then append it locally and bump `updated_at`.

        Raises:
            ValueError: `payload` does not match `kind`.
            SessionNotFound: the session is not loaded.
            SendFailed: the backend did not store the message (session unchanged).
        """
        _validate_payload(kind, payload)
        self.get(session_id)

        try:
            message = await self._backend.append_message(session_id, sender_id, kind, payload)
        except Exception as exc:
            logger.warning("Send failed for session %s: %s", session_id, exc)
            raise SendFailed(
                "Message could not be sent", details={"session_id": session_id, "reason": str(exc)}
            ) from exc

        # Re-read: a refresh may have replaced the session object while we were waiting.
        session = self._sessions.get(session_id)
        if session is not None:
            self._append(session, message)
        return message

    async def send_text(self, session_id: str, text: str, *, sender_id: str) -> Message:
        return await self.append_message(session_id, "TEXT", text, sender_id=sender_id)

    async def send_location(self, session_id: str, location: CanonicalLocation, *, sender_id: str) -> Message:
        return await self.append_message(session_id, "LOCATION", location, sender_id=sender_id)

    def on_incoming_message(self, session_id: str, message: Message) -> None:
        """Realtime callback: append to a known session, ignore unknown ones."""
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug("Ignoring message %s for unloaded session %s", message.id, session_id)
            return
        self._append(session, message)

    def _append(self, session: ConversationSession, message: Message) -> None:
        # Arrival order, not timestamp order; an early `sent_at` still lands at the tail.
        if any(m.id == message.id for m in session.messages):
            return
        session.messages.append(message)
        session.updated_at = max(session.updated_at, self._clock())

    # -- listing ---------------------------------------------------------------

    async def list_sessions(self, local_user_id: str) -> list[ConversationSession]:
        """Refresh from the backend and return the user's sessions, newest activity first."""
        try:
            remote = await self._backend.list_sessions(local_user_id)
        except Exception as exc:
            logger.warning("Failed to list sessions for %s: %s", local_user_id, exc)
            raise FetchFailed("Failed to load chats", details={"reason": str(exc)}) from exc
        for session in remote:
            self._store(session)
        return self.sessions_for(local_user_id)

    # -- realtime --------------------------------------------------------------

    def watch(self, session_id: str) -> None:
        """Subscribe to new messages for a loaded session (idempotent)."""
        self.get(session_id)
        if self._realtime is None:
            raise RuntimeError("No realtime service configured")
        if session_id in self._subscriptions:
            return
        self._subscriptions[session_id] = self._realtime.subscribe(
            session_id, lambda message: self.on_incoming_message(session_id, message)
        )

    def unwatch(self, session_id: str) -> None:
        unsubscribe = self._subscriptions.pop(session_id, None)
        if unsubscribe is not None:
            unsubscribe()

    def close(self) -> None:
        for session_id in list(self._subscriptions):
            self.unwatch(session_id)


def last_message_preview(session: ConversationSession) -> str:
    """One-line summary for the session list."""
    if not session.messages:
        return "Started a chat"
    return session.messages[-1].text
