"""
Pytest configuration for the registration batch submitter.

Provides fixtures for:
- Settings pointed at a fake endpoint and per-test output directories
- An in-process fake of the registration site (`httpx.MockTransport`)
- A scripted connectivity probe and a recording sleep
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Dict, Iterable, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from regbatch.config import Settings

ENDPOINT_URL = "https://example.org"
CAPTCHA_TEXT = "X7KQ"
RELOADED_CAPTCHA = "R3L0"
QUEUE_NUMBER = "A-017"
REF_NUMBER = "908172"


class SleepRecorder:
    """Awaitable stand-in for `asyncio.sleep` that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeProbe:
    """
    Scripted connectivity probe.

    `network` is consumed one value per `is_network_up` call; once exhausted
    the network reports up.
    """

    def __init__(self, network: Iterable[bool] = ()) -> None:
        self._network = list(network)
        self.network_checks = 0
        self.ready_calls = 0

    async def is_network_up(self) -> bool:
        self.network_checks += 1
        return self._network.pop(0) if self._network else True

    async def is_endpoint_up(self, url: str, timeout: Optional[float] = None) -> bool:
        return True

    async def wait_until_ready(self, url: str, poll_interval: Optional[float] = None) -> int:
        self.ready_calls += 1
        return 0


class FakeRegistrationSite:
    """
    Minimal model of the registration site.

    - `GET /` issues a session cookie and the token bound to it
    - `POST /` accepts the form only when the token matches the cookie's session
    - `GET /search?ktp=` renders the registration summary
    - `GET /reload-captcha` returns a JSON captcha
    """

    url = ENDPOINT_URL
    captcha_text = CAPTCHA_TEXT
    reloaded_captcha = RELOADED_CAPTCHA
    queue_number = QUEUE_NUMBER
    ref_number = REF_NUMBER

    def __init__(self) -> None:
        self._session_ids = itertools.count(1)
        self.tokens: Dict[str, str] = {}
        self.page_fetches = 0
        self.posts: List[Dict[str, str]] = []
        self.lookups: List[str] = []
        self.captcha_reloads = 0
        # Behaviour switches
        self.with_token = True
        self.with_captcha = True
        self.failing_pages = 0
        self.expire_posts = 0
        self.always_expire = False
        self.rejected_ids: set[str] = set()
        self.unrecognized = False

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path or "/"
        if request.method == "HEAD":
            return httpx.Response(200)
        if path == "/reload-captcha":
            self.captcha_reloads += 1
            return httpx.Response(200, json={"captcha": RELOADED_CAPTCHA})
        if path == "/search":
            ktp = request.url.params.get("ktp", "")
            self.lookups.append(ktp)
            return httpx.Response(200, html=self._lookup_page(ktp))
        if request.method == "GET":
            return self._form_page(request)
        return self._submit(request)

    def _session_of(self, request: httpx.Request) -> Optional[str]:
        for part in request.headers.get("cookie", "").split(";"):
            key, _, value = part.strip().partition("=")
            if key == "laravel_session" and value in self.tokens:
                return value
        return None

    def _form_page(self, request: httpx.Request) -> httpx.Response:
        self.page_fetches += 1
        if self.failing_pages > 0:
            self.failing_pages -= 1
            return httpx.Response(503, text="Service Unavailable")

        session_id = self._session_of(request)
        headers = {}
        if session_id is None:
            session_id = f"s{next(self._session_ids)}"
            self.tokens[session_id] = f"token-{session_id}"
            headers["set-cookie"] = f"laravel_session={session_id}; Path=/"

        token_input = (
            f'<input type="hidden" name="_token" value="{self.tokens[session_id]}">'
            if self.with_token
            else ""
        )
        captcha = f'<span class="captcha-text">{CAPTCHA_TEXT}</span>' if self.with_captcha else ""
        page = f"<html><body><form method='POST'>{token_input}{captcha}</form></body></html>"
        return httpx.Response(200, html=page, headers=headers)

    def _submit(self, request: httpx.Request) -> httpx.Response:
        parsed = parse_qs(request.content.decode(), keep_blank_values=True)
        form = {key: values[0] for key, values in parsed.items()}
        self.posts.append(form)

        session_id = self._session_of(request)
        if self.always_expire or self.expire_posts > 0:
            self.expire_posts = max(0, self.expire_posts - 1)
            return httpx.Response(419, html="<h1>Page Expired</h1>")
        if session_id is None or self.tokens[session_id] != form.get("_token"):
            return httpx.Response(419, html="<h1>Page Expired</h1>")
        if form.get("ktp") in self.rejected_ids:
            return httpx.Response(
                200,
                html='<div class="alert alert-danger">NIK sudah terdaftar</div>',
            )
        if self.unrecognized:
            return httpx.Response(200, html="<html><body>Maintenance</body></html>")
        return httpx.Response(
            200,
            html=(
                "<h2>Pendaftaran Berhasil</h2>"
                f"<p>Nomor Antrian : {QUEUE_NUMBER}</p><p>Ref : {REF_NUMBER}</p>"
            ),
        )

    def _lookup_page(self, ktp: str) -> str:
        return (
            "<div>Nama KTP : ANDI SAPUTRA</div>"
            f"<div>Nomor KTP : ************{ktp[-4:]}</div>"
            "<div>Nomor HP : ********1234</div>"
            "<div>Tanggal Datang : 2026-10-20</div>"
            "<div>Wajib Hadir : 07.00 - 09.00</div>"
        )


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """
    Settings aimed at the fake site, with outputs under `tmp_path`.
    """
    return Settings(
        endpoint_url=ENDPOINT_URL,
        input_path=str(tmp_path / "batch_data.csv"),
        results_dir=str(tmp_path / "results"),
        diagnostics_dir=str(tmp_path / "diagnostics"),
        max_attempts=3,
        base_delay_ms=1000,
        max_delay_ms=10_000,
        request_timeout_seconds=5.0,
        offline_interval_seconds=5.0,
        concurrency_limit=2,
        inter_group_delay_ms=500,
        inter_group_jitter_ms=0,
        max_session_attempts=3,
        log_level="DEBUG",
    )


@pytest.fixture()
def site() -> FakeRegistrationSite:
    return FakeRegistrationSite()


@pytest.fixture()
def mock_transport(site: FakeRegistrationSite) -> httpx.MockTransport:
    return httpx.MockTransport(site.handle)


@pytest.fixture()
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture()
def probe_factory():
    """Build a `FakeProbe` with a scripted network state sequence."""
    return FakeProbe
