"""
Shared session mode: one process-wide cookie jar reused by every attempt.

Saves client construction, and with session reuse on (`SESSION_REUSE`, the
default) also saves page fetches: the first acquired session is handed to every
attempt until the endpoint reports it expired. Concurrent attempts then share
one token; when it is invalidated they all come back as expired, the first one
to notice discards it and the bounded session retry fetches a new one.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from regbatch.config import Settings, get_settings
from regbatch.domain.models import Session
from regbatch.infrastructure.http_factory import build_async_client
from regbatch.sessions.abstract import AbstractClientStrategy, AcquireFn
from regbatch.utils.logging import get_logger

log = get_logger(__name__)


class SharedClientStrategy(AbstractClientStrategy):
    """
    Lazily build one `httpx.AsyncClient` and hand it to every attempt.

    The client outlives attempts and is closed by `aclose()`.

    Parameters
    ----------
    settings : Settings | None
        Client defaults and the `session_reuse` switch.
    transport : httpx.AsyncBaseTransport | None
        Transport override for the client (tests pass a mock transport).
    reuse_session : bool | None
        Keep the acquired session between attempts. Defaults to
        `settings.session_reuse`.
    """

    name: str = "shared"
    description: str = "Single cookie store shared across attempts."

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        reuse_session: Optional[bool] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport
        self.reuse_session = (
            self.settings.session_reuse if reuse_session is None else reuse_session
        )
        self._client: Optional[httpx.AsyncClient] = None
        self._session: Optional[Session] = None
        self._lock = asyncio.Lock()
        self._session_lock = asyncio.Lock()
        self.clients_created = 0
        self.sessions_acquired = 0

    async def _get_client(self) -> httpx.AsyncClient:
        async with self._lock:
            if self._client is None or self._client.is_closed:
                self._client = build_async_client(self.settings, transport=self._transport)
                self.clients_created += 1
            return self._client

    @asynccontextmanager
    async def client(self) -> AsyncIterator[httpx.AsyncClient]:
        yield await self._get_client()

    async def session(self, client: httpx.AsyncClient, acquire: AcquireFn) -> Session:
        if not self.reuse_session:
            self.sessions_acquired += 1
            return await acquire(client)
        # Attempts arriving while a fetch is in flight wait for its result.
        async with self._session_lock:
            if self._session is None:
                self._session = await acquire(client)
                self.sessions_acquired += 1
            return self._session

    def discard(self, session: Session) -> None:
        if self._session is session:
            log.debug("[SESSION] Shared session discarded after expiry")
            self._session = None

    async def aclose(self) -> None:
        async with self._lock:
            self._session = None
            if self._client is not None:
                await self._client.aclose()
                self._client = None


__all__ = ["SharedClientStrategy"]
