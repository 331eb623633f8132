"""
Error taxonomy.

Every public operation either returns a value or raises one of these. None of them is
fatal: the core leaves prior state intact and never retries on its own, so the caller
can show `message` and offer a retry.
"""

from __future__ import annotations

from typing import Any


class TadamonError(Exception):
    """Base class; `code` is stable and safe to switch on in the UI layer."""

    code = "TADAMON_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class LocationUnavailable(TadamonError):
    """No positioning capability, or the user denied permission."""

    code = "LOCATION_UNAVAILABLE"


class UnknownCity(TadamonError):
    code = "UNKNOWN_CITY"


class UnresolvableLink(TadamonError):
    """The followed link carries none of the known coordinate patterns."""

    code = "UNRESOLVABLE_LINK"


class LinkFetchFailed(TadamonError):
    """Following the link's redirects failed (network error or non-OK response)."""

    code = "LINK_FETCH_FAILED"


class NoCoordinatesFound(TadamonError):
    code = "NO_COORDINATES_FOUND"


class SendFailed(TadamonError):
    code = "SEND_FAILED"


class CreateSessionFailed(TadamonError):
    code = "CREATE_SESSION_FAILED"


class FetchFailed(TadamonError):
    """Generic read failure for postings, neighbors or sessions."""

    code = "FETCH_FAILED"


class SessionNotFound(TadamonError):
    code = "SESSION_NOT_FOUND"


class DuplicateSession(TadamonError):
    """Raised by a backend that already holds a session for the same pair and anchor."""

    code = "DUPLICATE_SESSION"
