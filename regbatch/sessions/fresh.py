"""
Fresh session mode: one isolated cookie jar per submission attempt.

Concurrent attempts never see each other's cookies, so a token issued to one
attempt cannot be invalidated by another attempt's page fetch. Costs one client
construction per attempt.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from regbatch.config import Settings, get_settings
from regbatch.infrastructure.http_factory import build_async_client
from regbatch.sessions.abstract import AbstractClientStrategy


class FreshClientStrategy(AbstractClientStrategy):
    """
    Build a new `httpx.AsyncClient` for every attempt and close it afterwards.
    """

    name: str = "fresh"
    description: str = "Isolated cookie store per attempt."

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport
        self.clients_created = 0

    @asynccontextmanager
    async def client(self) -> AsyncIterator[httpx.AsyncClient]:
        self.clients_created += 1
        async with build_async_client(self.settings, transport=self._transport) as client:
            yield client


__all__ = ["FreshClientStrategy"]
