from __future__ import annotations

import json

import httpx
import pytest

from regbatch.domain.models import OutcomeStatus, Record
from regbatch.infrastructure.transport import ResilientTransport
from regbatch.orchestrator import BatchScheduler
from regbatch.sessions import FreshClientStrategy, SharedClientStrategy
from regbatch.sinks import DiagnosticSink
from regbatch.submission import Submitter, lookup_registration

FORM_FIELDS = {"name", "ktp", "phone_number", "captcha_input", "check", "check_2", "_token"}
RECORD = Record(
    full_name="ANDI SAPUTRA", national_id="3201010101010001", phone_number="081234567890"
)


@pytest.fixture()
def diagnostics(settings):
    sink = DiagnosticSink(settings.diagnostics_dir)
    yield sink
    sink.close()


@pytest.fixture()
def submitter(settings, mock_transport, probe, sleeps, diagnostics) -> Submitter:
    transport = ResilientTransport.from_settings(settings, probe=probe, sleep=sleeps)
    return Submitter(
        FreshClientStrategy(settings, transport=mock_transport),
        transport,
        probe,
        settings,
        diagnostics=diagnostics,
    )


def _error_lines(diagnostics: DiagnosticSink) -> list[dict]:
    if not diagnostics.error_log_path.exists():
        return []
    return [
        json.loads(line)
        for line in diagnostics.error_log_path.read_text(encoding="utf-8").splitlines()
    ]


def _saved_responses(diagnostics: DiagnosticSink) -> list:
    if not diagnostics.responses_dir.exists():
        return []
    return sorted(diagnostics.responses_dir.iterdir())


@pytest.mark.asyncio
async def test_successful_submission(submitter: Submitter, site, probe) -> None:
    outcome = await submitter.submit(RECORD, 4)

    assert outcome.status is OutcomeStatus.OK
    assert outcome.index == 4
    assert f"Nomor Antrian  : {site.queue_number}" in outcome.info
    assert f"Ref            : {site.ref_number}" in outcome.info
    assert "Nama KTP       : ANDI SAPUTRA" in outcome.info
    assert probe.ready_calls == 1

    (form,) = site.posts
    assert set(form) == FORM_FIELDS
    assert form["_token"] == "token-s1"
    assert form["captcha_input"] == site.captcha_text
    assert form["ktp"] == RECORD.national_id
    assert outcome.payload.token == "token-s1"
    assert site.lookups == [RECORD.national_id]


@pytest.mark.asyncio
async def test_expired_session_is_reacquired(submitter: Submitter, site) -> None:
    site.expire_posts = 1

    outcome = await submitter.submit(RECORD)

    assert outcome.ok
    assert site.page_fetches == 2
    assert len(site.posts) == 2
    assert site.posts[0]["_token"] != site.posts[1]["_token"]


@pytest.mark.asyncio
async def test_session_retries_are_bounded(submitter: Submitter, site, diagnostics) -> None:
    site.always_expire = True

    outcome = await submitter.submit(RECORD)

    assert outcome.status is OutcomeStatus.ERROR
    assert outcome.error_message == "session expired after 3 attempt(s)"
    assert site.page_fetches == 3
    assert len(site.posts) == 3
    (line,) = _error_lines(diagnostics)
    assert line["record_id"] == RECORD.national_id


@pytest.mark.asyncio
async def test_validation_failure_keeps_response(submitter: Submitter, site, diagnostics) -> None:
    site.rejected_ids.add(RECORD.national_id)

    outcome = await submitter.submit(RECORD)

    assert outcome.status is OutcomeStatus.ERROR
    assert outcome.error_message == "NIK sudah terdaftar"
    assert len(site.posts) == 1

    (saved,) = _saved_responses(diagnostics)
    assert saved.name.startswith(RECORD.national_id)
    assert "alert-danger" in saved.read_text(encoding="utf-8")

    (line,) = _error_lines(diagnostics)
    assert line["message"] == "NIK sudah terdaftar"
    assert line["record_name"] == "ANDI SAPUTRA"


@pytest.mark.asyncio
async def test_unrecognized_response_is_an_error(submitter: Submitter, site, diagnostics) -> None:
    site.unrecognized = True

    outcome = await submitter.submit(RECORD)

    assert outcome.error_message == "unrecognized response"
    assert len(_saved_responses(diagnostics)) == 1


@pytest.mark.asyncio
async def test_missing_token_never_posts(submitter: Submitter, site, diagnostics) -> None:
    site.with_token = False

    outcome = await submitter.submit(RECORD)

    assert outcome.status is OutcomeStatus.ERROR
    assert outcome.error_message == "token_not_found"
    assert site.posts == []
    assert _saved_responses(diagnostics) == []


@pytest.mark.asyncio
async def test_unreachable_page_exhausts_transport(submitter: Submitter, site, sleeps) -> None:
    site.failing_pages = 10

    outcome = await submitter.submit(RECORD)

    assert outcome.status is OutcomeStatus.ERROR
    assert "failed after 3 attempt(s)" in outcome.error_message
    assert "HTTPStatusError" in outcome.error_message
    assert site.page_fetches == 3
    assert sleeps.delays == pytest.approx([1.0, 1.5])
    assert site.posts == []


@pytest.mark.asyncio
async def test_lookup_can_be_disabled(settings, mock_transport, probe, sleeps, site) -> None:
    settings = settings.model_copy(update={"lookup_enabled": False})
    transport = ResilientTransport.from_settings(settings, probe=probe, sleep=sleeps)
    submitter = Submitter(
        FreshClientStrategy(settings, transport=mock_transport), transport, probe, settings
    )

    outcome = await submitter.submit(RECORD)

    assert outcome.ok
    assert site.lookups == []
    assert "Nama KTP       : N/A" in outcome.info


@pytest.mark.asyncio
async def test_lookup_registration(settings, mock_transport, sleeps, site) -> None:
    transport = ResilientTransport.from_settings(settings, sleep=sleeps)

    async with httpx.AsyncClient(transport=mock_transport) as client:
        rendered = await lookup_registration(
            RECORD.national_id, client, transport=transport, settings=settings
        )

    assert site.lookups == [RECORD.national_id]
    assert "Nomor KTP      : ************0001" in rendered
    assert "Tanggal Datang : 2026-10-20" in rendered


@pytest.mark.asyncio
async def test_repeated_submission_yields_independent_outcomes(submitter: Submitter, site) -> None:
    first = await submitter.submit(RECORD, 0)
    second = await submitter.submit(RECORD, 0)

    assert first.ok and second.ok
    assert first is not second
    assert len(site.posts) == 2
    assert site.posts[0]["_token"] != site.posts[1]["_token"]


class _BrokenExtractor:
    name = "broken"

    def extract(self, html: str):
        raise KeyError("token")


def _shared_submitter(settings, mock_transport, probe, sleeps, **strategy_kwargs):
    transport = ResilientTransport.from_settings(settings, probe=probe, sleep=sleeps)
    strategy = SharedClientStrategy(settings, transport=mock_transport, **strategy_kwargs)
    return Submitter(strategy, transport, probe, settings), strategy


@pytest.mark.asyncio
async def test_unexpected_exception_reaches_failure_log(
    settings, mock_transport, probe, sleeps, diagnostics
) -> None:
    transport = ResilientTransport.from_settings(settings, probe=probe, sleep=sleeps)
    submitter = Submitter(
        FreshClientStrategy(settings, transport=mock_transport),
        transport,
        probe,
        settings,
        extractor=_BrokenExtractor(),
        diagnostics=diagnostics,
    )
    scheduler = BatchScheduler(submitter.submit, concurrency_limit=2, sleep=sleeps)

    (outcome,) = await scheduler.run_batch([RECORD])

    assert outcome.status is OutcomeStatus.ERROR
    assert outcome.error_message == "KeyError: 'token'"
    (line,) = _error_lines(diagnostics)
    assert line["record_id"] == RECORD.national_id
    assert line["message"] == "KeyError: 'token'"


@pytest.mark.asyncio
async def test_shared_mode_reuses_acquired_session(
    settings, mock_transport, probe, sleeps, site
) -> None:
    submitter, strategy = _shared_submitter(settings, mock_transport, probe, sleeps)

    outcomes = [await submitter.submit(RECORD, index) for index in range(4)]

    assert all(outcome.ok for outcome in outcomes)
    assert site.page_fetches == 1
    assert strategy.sessions_acquired == 1
    assert {form["_token"] for form in site.posts} == {"token-s1"}
    await strategy.aclose()


@pytest.mark.asyncio
async def test_shared_mode_refetches_after_expiry(
    settings, mock_transport, probe, sleeps, site
) -> None:
    submitter, strategy = _shared_submitter(settings, mock_transport, probe, sleeps)
    assert (await submitter.submit(RECORD, 0)).ok

    site.expire_posts = 1
    outcome = await submitter.submit(RECORD, 1)
    follow_up = await submitter.submit(RECORD, 2)

    assert outcome.ok and follow_up.ok
    assert site.page_fetches == 2
    assert strategy.sessions_acquired == 2
    assert len(site.posts) == 4
    await strategy.aclose()


@pytest.mark.asyncio
async def test_shared_mode_without_reuse_fetches_every_attempt(
    settings, mock_transport, probe, sleeps, site
) -> None:
    submitter, strategy = _shared_submitter(
        settings, mock_transport, probe, sleeps, reuse_session=False
    )

    for index in range(3):
        assert (await submitter.submit(RECORD, index)).ok

    assert site.page_fetches == 3
    assert strategy.clients_created == 1
    await strategy.aclose()
