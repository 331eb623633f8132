"""
HTTP helpers.

This module centralizes the small amount of HTTP client setup shared by the
link resolver and the hosted-backend client.

Design goals:
- Async (`httpx.AsyncClient`), since every external call happens on the event loop.
- Deterministic defaults (timeout + User-Agent).
- Raise on non-2xx so callers can map failures onto the domain error taxonomy.
"""

from __future__ import annotations

import httpx


DEFAULT_USER_AGENT = "tadamon/0.1.0 (+https://local)"


def build_async_client(
    *,
    base_url: str = "",
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 15,
    follow_redirects: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Return an `httpx.AsyncClient` with the project defaults applied.

    `transport` exists for tests (`httpx.MockTransport`).
    """
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        request_headers.update(headers)
    return httpx.AsyncClient(
        base_url=base_url,
        headers=request_headers,
        timeout=timeout_seconds,
        follow_redirects=follow_redirects,
        transport=transport,
    )


async def follow_redirects(
    url: str,
    *,
    timeout_seconds: float = 15,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """HEAD `url`, following redirects, and return the final URL as a string.

    Raises:
        httpx.HTTPError: On transport errors or a non-2xx final response.
    """
    async with build_async_client(
        timeout_seconds=timeout_seconds, follow_redirects=True, transport=transport
    ) as client:
        resp = await client.head(url)
        resp.raise_for_status()
        return str(resp.url)
