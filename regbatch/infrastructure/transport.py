"""
Resilient HTTP transport built on tenacity.

Wraps a single request with a per-attempt deadline, exponential backoff
(`base * 1.5^(n-1)` capped at `max_delay`) and offline awareness: while the
probe reports the network as down the attempt waits in place and the wait
does not count against `max_attempts`.

Any non-2xx status is retryable unless it is listed in `passthrough_statuses`;
those are returned untouched so the caller can classify them (the endpoint
answers an expired session with 419 and a rejected form with 422).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from regbatch.config import Settings, get_settings
from regbatch.domain.errors import TransportError
from regbatch.infrastructure.probe import ConnectivityProbe, SleepFn
from regbatch.utils.logging import get_logger

log = get_logger(__name__)

BACKOFF_MULTIPLIER = 1.5

RETRYABLE_ERRORS: Tuple[type[BaseException], ...] = (httpx.HTTPError, asyncio.TimeoutError)

BackoffHook = Callable[[int, float, Optional[BaseException]], None]


async def _wait_online(
    probe: Optional[ConnectivityProbe], interval: float, sleep: SleepFn, url: str
) -> None:
    if probe is None:
        return
    while not await probe.is_network_up():
        log.warning(f"[OFFLINE] Network down, waiting {interval:.1f}s", extra={"url": url})
        await sleep(interval)


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout: float,
    passthrough_statuses: Collection[int],
    **request_kwargs: Any,
) -> httpx.Response:
    response = await asyncio.wait_for(
        client.request(method, url, **request_kwargs), timeout=timeout
    )
    if response.status_code not in passthrough_statuses:
        response.raise_for_status()
    return response


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    timeout: float = 10.0,
    probe: Optional[ConnectivityProbe] = None,
    offline_interval: float = 5.0,
    passthrough_statuses: Collection[int] = (),
    sleep: SleepFn = asyncio.sleep,
    on_backoff: Optional[BackoffHook] = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Issue one HTTP request, retrying transient failures.

    Parameters
    ----------
    client : httpx.AsyncClient
        Client whose cookie jar and headers the request uses.
    method, url : str
        Request line.
    max_attempts : int
        Attempts made while online before giving up.
    base_delay, max_delay : float
        Backoff seed and cap, in seconds.
    timeout : float
        Deadline for each attempt; the in-flight request is cancelled on expiry.
    probe : ConnectivityProbe | None
        When given, each attempt first waits out network outages.
    offline_interval : float
        Seconds between network checks while offline.
    passthrough_statuses : collection[int]
        Non-2xx statuses returned to the caller instead of retried.
    sleep : callable
        Awaitable sleep used for backoff and offline waits.
    on_backoff : callable | None
        Called as `on_backoff(attempt, delay, error)` before each backoff sleep.

    Returns
    -------
    httpx.Response

    Raises
    ------
    TransportError
        When every attempt failed; carries the last underlying error.
    """

    def _before_sleep(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        error = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            f"[BACKOFF] {method} {url} attempt {retry_state.attempt_number}/{max_attempts} "
            f"failed, sleeping {delay:.2f}s",
            extra={"url": url, "attempt": retry_state.attempt_number, "delay": delay,
                   "error": repr(error)},
        )
        if on_backoff is not None:
            on_backoff(retry_state.attempt_number, delay, error)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=BACKOFF_MULTIPLIER, max=max_delay),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=False,
    )

    response: Optional[httpx.Response] = None
    try:
        async for attempt in retrying:
            with attempt:
                await _wait_online(probe, offline_interval, sleep, url)
                log.debug(
                    f"[ATTEMPT {attempt.retry_state.attempt_number}/{max_attempts}] {method} {url}",
                    extra={"url": url, "attempt": attempt.retry_state.attempt_number},
                )
                response = await _send(
                    client, method, url, timeout, passthrough_statuses, **request_kwargs
                )
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        raise TransportError(url, max_attempts, last_error) from last_error

    assert response is not None
    return response


@dataclass
class ResilientTransport:
    """
    `request_with_retry` bound to a retry policy, a probe and a sleep function.

    Session acquisition, form submission and the registration lookup all go
    through one instance so they share the same policy.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    timeout: float = 10.0
    offline_interval: float = 5.0
    passthrough_statuses: Tuple[int, ...] = ()
    probe: Optional[ConnectivityProbe] = None
    sleep: SleepFn = field(default=asyncio.sleep)
    on_backoff: Optional[BackoffHook] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        probe: Optional[ConnectivityProbe] = None,
        sleep: SleepFn = asyncio.sleep,
        on_backoff: Optional[BackoffHook] = None,
    ) -> "ResilientTransport":
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
            timeout=settings.request_timeout_seconds,
            offline_interval=settings.offline_interval_seconds,
            passthrough_statuses=tuple(settings.passthrough_statuses),
            probe=probe,
            sleep=sleep,
            on_backoff=on_backoff,
        )

    async def request(
        self, client: httpx.AsyncClient, method: str, url: str, **request_kwargs: Any
    ) -> httpx.Response:
        return await request_with_retry(
            client,
            method,
            url,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            timeout=self.timeout,
            probe=self.probe,
            offline_interval=self.offline_interval,
            passthrough_statuses=self.passthrough_statuses,
            sleep=self.sleep,
            on_backoff=self.on_backoff,
            **request_kwargs,
        )


__all__ = ["BACKOFF_MULTIPLIER", "ResilientTransport", "request_with_retry"]
