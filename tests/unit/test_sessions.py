from __future__ import annotations

import httpx
import pytest

from regbatch.domain.errors import SessionError
from regbatch.extractors import RegexExtractor
from regbatch.infrastructure.transport import ResilientTransport
from regbatch.sessions import FreshClientStrategy, SharedClientStrategy, acquire_session

PAGE = (
    '<form><input type="hidden" name="_token" value="abc123">'
    '<span class="captcha-box"> Q9Z </span></form>'
)


def test_regex_extractor_reads_token_and_captcha(settings) -> None:
    session = RegexExtractor(settings=settings).extract(PAGE)

    assert session.anti_forgery_token == "abc123"
    assert session.captcha_payload == "Q9Z"


def test_regex_extractor_without_token_fails(settings) -> None:
    with pytest.raises(SessionError) as excinfo:
        RegexExtractor(settings=settings).extract("<form></form>")

    assert excinfo.value.reason == "token_not_found"


def test_regex_extractor_without_captcha_yields_empty_payload(settings) -> None:
    page = '<input type="hidden" name="_token" value="abc123">'

    assert RegexExtractor(settings=settings).extract(page).captcha_payload == ""


@pytest.mark.asyncio
async def test_acquire_session_reads_page(settings, site, mock_transport, sleeps) -> None:
    transport = ResilientTransport.from_settings(settings, sleep=sleeps)
    async with httpx.AsyncClient(transport=mock_transport) as client:
        session = await acquire_session(
            site.url, client, transport=transport, extractor=RegexExtractor(settings=settings)
        )

    assert session.anti_forgery_token == "token-s1"
    assert session.captcha_payload == site.captcha_text
    assert site.captcha_reloads == 0


@pytest.mark.asyncio
async def test_acquire_session_reloads_missing_captcha(
    settings, site, mock_transport, sleeps
) -> None:
    site.with_captcha = False
    transport = ResilientTransport.from_settings(settings, sleep=sleeps)
    async with httpx.AsyncClient(transport=mock_transport) as client:
        session = await acquire_session(
            site.url,
            client,
            transport=transport,
            extractor=RegexExtractor(settings=settings),
            captcha_reload_url=f"{site.url}/reload-captcha",
        )

    assert session.captcha_payload == site.reloaded_captcha
    assert site.captcha_reloads == 1


@pytest.mark.asyncio
async def test_failed_captcha_reload_keeps_empty_payload(settings, site, sleeps) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/reload-captcha":
            return httpx.Response(500)
        return httpx.Response(200, html='<input type="hidden" name="_token" value="t">')

    transport = ResilientTransport.from_settings(
        settings.model_copy(update={"max_attempts": 1}), sleep=sleeps
    )
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        session = await acquire_session(
            site.url,
            client,
            transport=transport,
            extractor=RegexExtractor(settings=settings),
            captcha_reload_url=f"{site.url}/reload-captcha",
        )

    assert session.anti_forgery_token == "t"
    assert session.captcha_payload == ""


@pytest.mark.asyncio
async def test_fresh_mode_isolates_cookie_stores(settings, site, mock_transport) -> None:
    strategy = FreshClientStrategy(settings, transport=mock_transport)

    async with strategy.client() as first:
        await first.get(site.url)
        first_cookies = dict(first.cookies)
    async with strategy.client() as second:
        assert dict(second.cookies) == {}
        await second.get(site.url)
        second_cookies = dict(second.cookies)

    assert first.is_closed
    assert strategy.clients_created == 2
    assert first_cookies != second_cookies


@pytest.mark.asyncio
async def test_shared_mode_reuses_one_client(settings, site, mock_transport) -> None:
    strategy = SharedClientStrategy(settings, transport=mock_transport)

    async with strategy.client() as first:
        await first.get(site.url)
    async with strategy.client() as second:
        assert second is first
        assert "laravel_session" in second.cookies

    await strategy.aclose()
    assert first.is_closed
    assert strategy.clients_created == 1
