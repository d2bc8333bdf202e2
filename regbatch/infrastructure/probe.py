"""
Connectivity probe: network reachability and endpoint liveness.

Submission attempts call `wait_until_ready` before touching the endpoint, so
an outage turns into waiting rather than a wall of failed outcomes. The wait
has no attempt cap; every iteration awaits a timer.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional

import httpx

from regbatch.config import Settings, get_settings
from regbatch.infrastructure.http_factory import build_async_client
from regbatch.utils.logging import get_logger

log = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class ConnectivityProbe:
    """
    DNS + HEAD based readiness checks.

    Parameters
    ----------
    settings : Settings | None
        Probe host, timeouts, poll interval and jitter.
    client : httpx.AsyncClient | None
        Client used for HEAD requests. When omitted a short-lived client is
        built per check.
    sleep : callable
        Awaitable sleep used between polls (injectable for tests).
    rng : random.Random | None
        Source of jitter.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def is_network_up(self) -> bool:
        """True when the well-known probe host resolves."""
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.getaddrinfo(self.settings.probe_host, 443),
                timeout=self.settings.probe_timeout_seconds,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        return True

    async def is_endpoint_up(self, url: str, timeout: Optional[float] = None) -> bool:
        """True when a HEAD request to `url` answers 2xx or 3xx within `timeout`."""
        deadline = timeout if timeout is not None else self.settings.probe_timeout_seconds
        try:
            if self._client is not None:
                response = await asyncio.wait_for(self._client.head(url), timeout=deadline)
            else:
                async with build_async_client(self.settings) as client:
                    response = await asyncio.wait_for(client.head(url), timeout=deadline)
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            log.debug("[PROBE] endpoint check failed", extra={"url": url, "error": repr(exc)})
            return False
        return response.is_success or response.is_redirect

    async def wait_until_ready(self, url: str, poll_interval: Optional[float] = None) -> int:
        """
        Block the calling task until both the network and `url` are up.

        Returns the number of failed polls, mostly useful for logging and tests.
        """
        interval = (
            poll_interval if poll_interval is not None else self.settings.probe_interval_seconds
        )
        failed_polls = 0
        while True:
            if not await self.is_network_up():
                failed_polls += 1
                log.warning(
                    "[PROBE] Network unreachable, waiting",
                    extra={"host": self.settings.probe_host, "polls": failed_polls},
                )
                await self._sleep(interval)
                continue
            if await self.is_endpoint_up(url):
                if failed_polls:
                    log.info("[PROBE] Endpoint ready", extra={"url": url, "polls": failed_polls})
                return failed_polls
            failed_polls += 1
            delay = interval + self._rng.uniform(0, self.settings.probe_jitter_seconds)
            log.warning(
                f"[PROBE] Endpoint down, retrying in {delay:.1f}s",
                extra={"url": url, "polls": failed_polls},
            )
            await self._sleep(delay)


__all__ = ["ConnectivityProbe", "SleepFn"]
