"""
Link-resolution service backed by httpx.

Share links from maps apps are short redirectors (`maps.app.goo.gl/...`). Only the
final, expanded URL carries coordinates, so we follow the redirect chain with a HEAD
request and hand the final URL to the extractors.
"""

from __future__ import annotations

import logging

import httpx

from tadamon.config.settings import Settings
from tadamon.core.http import follow_redirects

logger = logging.getLogger(__name__)


class HttpLinkResolver:
    """`LinkResolutionService` implementation over `httpx.AsyncClient`."""

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None):
        self._timeout_seconds = float(settings.app.http_timeout_seconds)
        self._transport = transport

    async def resolve_map_link(self, url: str) -> str:
        logger.info("Following map link redirects for %s", url)
        final_url = await follow_redirects(
            url, timeout_seconds=self._timeout_seconds, transport=self._transport
        )
        logger.debug("Map link %s resolved to %s", url, final_url)
        return final_url
