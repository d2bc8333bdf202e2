"""
HTTP client factory for the registration batch submitter.

Centralizes construction of `httpx.AsyncClient` instances so every client
(probe, session page fetch, form post, registration lookup) carries the same
headers, timeouts and redirect policy. Each client owns its cookie jar, which
is what the session modes build on: one client per attempt isolates cookies,
one shared client shares them.
"""

from __future__ import annotations

from typing import Dict, Optional
from urllib.parse import urljoin

import httpx

from regbatch.config import Settings, get_settings


def build_async_client(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    extra_headers: Optional[Dict[str, str]] = None,
) -> httpx.AsyncClient:
    """
    Create an `httpx.AsyncClient` with the project's default headers and timeout.

    Parameters
    ----------
    settings : Settings | None
        Source of user agent and timeout. Defaults to the cached settings.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (tests inject `httpx.MockTransport`).
    extra_headers : dict[str, str] | None
        Headers merged over the defaults.

    Returns
    -------
    httpx.AsyncClient
        A new client with an empty cookie jar. Callers own its lifecycle.
    """
    settings = settings or get_settings()
    headers: Dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def endpoint_path(settings: Settings, path: str) -> str:
    """Resolve `path` against the configured endpoint URL."""
    base = settings.endpoint_url.rstrip("/") + "/"
    return urljoin(base, path.lstrip("/"))


__all__ = ["build_async_client", "endpoint_path"]
