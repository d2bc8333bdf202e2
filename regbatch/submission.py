"""
Submission attempt: one record in, exactly one outcome out.

Walks probe -> acquire session -> build payload -> post -> classify. An expired
session loops back to acquisition, bounded by `max_session_attempts`; every
other failure ends the attempt with an ERROR outcome. Retries of individual
requests happen inside the transport, not here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import httpx

from regbatch.classifier import ResponseClassifier, Verdict
from regbatch.config import Settings, get_settings
from regbatch.domain.errors import (
    RegBatchError,
    SessionExpiredError,
    UnrecognizedResponseError,
    ValidationError,
)
from regbatch.domain.models import Outcome, Record, Session, SubmissionPayload
from regbatch.extractors.abstract import Extractor
from regbatch.extractors.regex import RegexExtractor
from regbatch.infrastructure.http_factory import endpoint_path
from regbatch.infrastructure.probe import ConnectivityProbe
from regbatch.infrastructure.transport import ResilientTransport
from regbatch.sessions.abstract import ClientStrategy
from regbatch.sessions.acquirer import acquire_session
from regbatch.sinks import DiagnosticSink
from regbatch.utils.logging import get_logger

log = get_logger(__name__)

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def record_id(record: Record, index: int) -> str:
    return record.national_id or f"row-{index + 1}"


class Submitter:
    """
    Runs submission attempts against one endpoint.

    Parameters
    ----------
    client_strategy : ClientStrategy
        Session mode deciding which client (cookie jar) an attempt uses.
    transport : ResilientTransport
        Retry policy for every request the attempt makes.
    probe : ConnectivityProbe
        Readiness gate run before each attempt.
    settings : Settings | None
        Endpoint, paths and retry bound. Defaults to the cached settings.
    extractor : Extractor | None
        Session page parser. Defaults to `RegexExtractor`.
    classifier : ResponseClassifier | None
        Response classifier. Defaults to one built from settings.
    diagnostics : DiagnosticSink | None
        Failure log and raw response store. Failures are only logged when omitted.
    """

    def __init__(
        self,
        client_strategy: ClientStrategy,
        transport: ResilientTransport,
        probe: ConnectivityProbe,
        settings: Optional[Settings] = None,
        *,
        extractor: Optional[Extractor] = None,
        classifier: Optional[ResponseClassifier] = None,
        diagnostics: Optional[DiagnosticSink] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client_strategy = client_strategy
        self.transport = transport
        self.probe = probe
        self.extractor = extractor or RegexExtractor(settings=self.settings)
        self.classifier = classifier or ResponseClassifier(self.settings)
        self.diagnostics = diagnostics
        self.url = self.settings.endpoint_url
        self.captcha_reload_url = (
            endpoint_path(self.settings, self.settings.captcha_reload_path)
            if self.settings.captcha_reload_path
            else None
        )
        self.lookup_url = endpoint_path(self.settings, self.settings.lookup_path)

    async def submit(self, record: Record, index: int = 0) -> Outcome:
        """
        Submit one record and return its terminal outcome. Never raises for
        endpoint, network or session failures; any other exception is logged
        and recorded as an ERROR outcome too.
        """
        payload = SubmissionPayload.build(record)
        max_attempts = self.settings.max_session_attempts
        try:
            for attempt in range(1, max_attempts + 1):
                await self.probe.wait_until_ready(self.url)
                async with self.client_strategy.client() as client:
                    session = await self.client_strategy.session(client, self._acquire)
                    payload = SubmissionPayload.build(record, session)
                    submitted_at = datetime.now(timezone.utc)
                    response = await self.transport.request(
                        client, "POST", self.url, data=payload.to_form(), headers=FORM_HEADERS
                    )
                    body = response.text
                    result = self.classifier.classify(response.status_code, body)

                    if result.verdict is Verdict.SUCCESS:
                        info = await self._registration_info(client, record, body)
                        log.info(
                            f"[SUBMIT OK] {record.full_name}",
                            extra={"record_id": record_id(record, index), "attempt": attempt},
                        )
                        return Outcome.success(index, payload, info)

                    if result.verdict is Verdict.EXPIRED:
                        log.warning(
                            f"[SESSION EXPIRED] {record.full_name} "
                            f"attempt {attempt}/{max_attempts}",
                            extra={"record_id": record_id(record, index), "attempt": attempt},
                        )
                        self.client_strategy.discard(session)
                        continue

                    self._save_response(record, index, body, submitted_at)
                    if result.verdict is Verdict.VALIDATION:
                        raise ValidationError(result.message)
                    raise UnrecognizedResponseError(result.message)

            raise SessionExpiredError(f"session expired after {max_attempts} attempt(s)")
        except (RegBatchError, httpx.HTTPError) as exc:
            message = str(exc) or type(exc).__name__
            return self._fail(record, index, payload, message)
        except Exception as exc:  # noqa: BLE001 - a record's failure never escapes its attempt
            log.exception(
                f"[ATTEMPT CRASHED] {record.full_name}",
                extra={"record_id": record_id(record, index)},
            )
            return self._fail(record, index, payload, f"{type(exc).__name__}: {exc}")

    async def _acquire(self, client: httpx.AsyncClient) -> Session:
        return await acquire_session(
            self.url,
            client,
            transport=self.transport,
            extractor=self.extractor,
            captcha_reload_url=self.captcha_reload_url,
        )

    async def _registration_info(
        self, client: httpx.AsyncClient, record: Record, body: str
    ) -> str:
        sources = []
        if self.settings.lookup_enabled and record.national_id:
            try:
                response = await self.transport.request(
                    client, "GET", self.lookup_url, params={"ktp": record.national_id}
                )
                sources.append(response.text)
            except (RegBatchError, httpx.HTTPError) as exc:
                log.warning(
                    "[LOOKUP] Registration lookup failed; using submit response only",
                    extra={"url": self.lookup_url, "error": str(exc)},
                )
        return self.classifier.parse_registration(body, sources).render()

    def _save_response(
        self, record: Record, index: int, body: str, submitted_at: datetime
    ) -> None:
        if self.diagnostics is None:
            return
        path = self.diagnostics.save_response(
            record_id=record_id(record, index), body=body, submitted_at=submitted_at
        )
        log.debug("[DIAGNOSTIC] Response saved", extra={"path": str(path)})

    def _fail(
        self, record: Record, index: int, payload: SubmissionPayload, message: str
    ) -> Outcome:
        log.warning(
            f"[SUBMIT FAILED] item {index + 1} ({record.full_name}): {message}",
            extra={"record_id": record_id(record, index)},
        )
        if self.diagnostics is not None:
            self.diagnostics.record_failure(
                record_id=record_id(record, index),
                record_name=record.full_name,
                message=message,
            )
        return Outcome.failure(index, payload, message)


async def lookup_registration(
    national_id: str,
    client: httpx.AsyncClient,
    *,
    transport: ResilientTransport,
    settings: Optional[Settings] = None,
    classifier: Optional[ResponseClassifier] = None,
) -> str:
    """Query the registration lookup page for `national_id` and render the details."""
    settings = settings or get_settings()
    classifier = classifier or ResponseClassifier(settings)
    response = await transport.request(
        client, "GET", endpoint_path(settings, settings.lookup_path), params={"ktp": national_id}
    )
    return classifier.parse_registration(response.text).render()


__all__ = ["FORM_HEADERS", "Submitter", "lookup_registration", "record_id"]
