from __future__ import annotations

import random
from typing import List

import httpx
import pytest

from regbatch.infrastructure.probe import ConnectivityProbe

URL = "https://example.org/"
POLL_INTERVAL = 5.0
JITTER = 1.0


class _ScriptedProbe(ConnectivityProbe):
    def __init__(self, network: List[bool], endpoint: List[bool], **kwargs) -> None:
        super().__init__(**kwargs)
        self._network_states = network
        self._endpoint_states = endpoint

    async def is_network_up(self) -> bool:
        return self._network_states.pop(0) if self._network_states else True

    async def is_endpoint_up(self, url: str, timeout=None) -> bool:
        return self._endpoint_states.pop(0) if self._endpoint_states else True


@pytest.mark.asyncio
async def test_wait_until_ready_polls_with_jitter(settings, sleeps) -> None:
    settings = settings.model_copy(
        update={"probe_interval_seconds": POLL_INTERVAL, "probe_jitter_seconds": JITTER}
    )
    probe = _ScriptedProbe(
        network=[True, True, True],
        endpoint=[False, False, True],
        settings=settings,
        sleep=sleeps,
        rng=random.Random(7),
    )

    failed = await probe.wait_until_ready(URL)

    assert failed == 2
    assert len(sleeps.delays) == 2
    assert all(POLL_INTERVAL <= delay <= POLL_INTERVAL + JITTER for delay in sleeps.delays)


@pytest.mark.asyncio
async def test_wait_until_ready_waits_out_network_outage(settings, sleeps) -> None:
    probe = _ScriptedProbe(
        network=[False, False], endpoint=[], settings=settings, sleep=sleeps
    )

    failed = await probe.wait_until_ready(URL, poll_interval=2.0)

    assert failed == 2
    assert sleeps.delays == [2.0, 2.0]


@pytest.mark.asyncio
async def test_ready_endpoint_returns_immediately(settings, sleeps) -> None:
    probe = _ScriptedProbe(network=[], endpoint=[], settings=settings, sleep=sleeps)

    assert await probe.wait_until_ready(URL) == 0
    assert sleeps.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "expected"),
    [(200, True), (204, True), (503, False), (404, False)],
)
async def test_is_endpoint_up_checks_head_status(settings, status: int, expected: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "HEAD"
        return httpx.Response(status)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        probe = ConnectivityProbe(settings, client)
        assert await probe.is_endpoint_up(URL) is expected


@pytest.mark.asyncio
async def test_is_endpoint_up_is_false_on_connection_error(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await ConnectivityProbe(settings, client).is_endpoint_up(URL) is False
