"""
Session acquisition: fetch the form page and pull a `Session` out of it.
"""

from __future__ import annotations

from typing import Optional

import httpx

from regbatch.domain.errors import RegBatchError
from regbatch.domain.models import Session
from regbatch.extractors.abstract import Extractor
from regbatch.infrastructure.transport import ResilientTransport
from regbatch.utils.logging import get_logger

log = get_logger(__name__)


async def reload_captcha(
    url: str, client: httpx.AsyncClient, transport: ResilientTransport
) -> str:
    """
    Best-effort fetch of a fresh captcha from a JSON endpoint (`{"captcha": ...}`).

    Never raises; any failure is logged and yields an empty payload.
    """
    try:
        response = await transport.request(
            client, "GET", url, headers={"Accept": "application/json"}
        )
        data = response.json()
    except (httpx.HTTPError, RegBatchError, ValueError) as exc:
        log.warning(
            "[SESSION] Captcha reload failed; submitting empty captcha",
            extra={"url": url, "error": repr(exc)},
        )
        return ""
    captcha = data.get("captcha") if isinstance(data, dict) else None
    return str(captcha) if captcha else ""


async def acquire_session(
    url: str,
    client: httpx.AsyncClient,
    *,
    transport: ResilientTransport,
    extractor: Extractor,
    captcha_reload_url: Optional[str] = None,
) -> Session:
    """
    Fetch `url` with `client` and extract the anti-forgery token and captcha.

    Parameters
    ----------
    url : str
        The page carrying the form.
    client : httpx.AsyncClient
        Client (and cookie jar) the following form post will reuse.
    transport : ResilientTransport
        Retry policy for the page fetch.
    extractor : Extractor
        Parsing strategy for the page.
    captcha_reload_url : str | None
        JSON captcha endpoint consulted when the page itself carries no captcha.

    Raises
    ------
    SessionError
        When the page has no anti-forgery token.
    TransportError
        When the page could not be fetched.
    """
    response = await transport.request(client, "GET", url)
    session = extractor.extract(response.text)

    if not session.captcha_payload and captcha_reload_url:
        captcha = await reload_captcha(captcha_reload_url, client, transport)
        if captcha:
            session = session.model_copy(update={"captcha_payload": captcha})

    log.debug(
        "[SESSION] Acquired",
        extra={"url": url, "has_captcha": bool(session.captcha_payload)},
    )
    return session


__all__ = ["acquire_session", "reload_captcha"]
