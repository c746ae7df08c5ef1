"""HTTP client shared by the header and body scanners."""

from __future__ import annotations

import httpx

from notrack.core.config import DEFAULT_USER_AGENT


def build_client(
    user_agent: str = DEFAULT_USER_AGENT,
    verify: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Client for requesting the site's own URL, identified by a descriptive user agent."""
    return httpx.AsyncClient(
        verify=verify,
        follow_redirects=True,
        headers={"User-Agent": user_agent},
        transport=transport,
    )
