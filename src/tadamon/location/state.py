"""
The caller's current location, with supersession.

A GPS fix can take seconds. If the user switches to a city (or pastes a link) while it
is in flight, the late fix must not overwrite the newer explicit choice. Every change
bumps an epoch; a resolution only lands if the epoch it started under is still current.
"""

from __future__ import annotations

import logging

from tadamon.domain.errors import TadamonError
from tadamon.domain.models import CanonicalLocation
from tadamon.location.resolver import LocationIntent, LocationResolver

logger = logging.getLogger(__name__)


class LocationState:
    def __init__(self, resolver: LocationResolver, *, initial: CanonicalLocation | None = None):
        self._resolver = resolver
        self._current = initial
        self._epoch = 0

    @property
    def current(self) -> CanonicalLocation | None:
        return self._current

    @property
    def epoch(self) -> int:
        return self._epoch

    async def select(self, intent: LocationIntent, *, label: str | None = None) -> CanonicalLocation | None:
        """Resolve `intent` and make it current.

        Returns None (and leaves state untouched) when another selection superseded this
        one before it finished. Errors from a still-current selection propagate; the
        previous location stays in place.
        """
        self._epoch += 1
        token = self._epoch
        try:
            location = await self._resolver.resolve(intent, label=label)
        except TadamonError:
            if token != self._epoch:
                logger.debug("Ignoring failure of superseded location request (epoch %d)", token)
                return None
            raise

        if token != self._epoch:
            logger.info(
                "Discarding superseded %s location (epoch %d, now %d)", location.source, token, self._epoch
            )
            return None
        self._current = location
        return location

    def set_location(self, location: CanonicalLocation) -> None:
        """Store an already-resolved location (e.g. from the user profile)."""
        self._epoch += 1
        self._current = location

    def clear(self) -> None:
        self._epoch += 1
        self._current = None
