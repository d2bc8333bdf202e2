from __future__ import annotations

import asyncio

import pydantic
import pytest

from regbatch.domain.models import (
    BatchRun,
    Outcome,
    OutcomeStatus,
    Record,
    RegistrationInfo,
    Session,
    SubmissionPayload,
    digits_only,
)

FORM_FIELDS = {"name", "ktp", "phone_number", "captcha_input", "check", "check_2", "_token"}


def test_record_normalizes_identifiers_to_capped_digits() -> None:
    record = Record(name="  ANDI  ", ktp="12-34 56" + "7" * 20, phone="+62 812-3456-7890-99")

    assert record.full_name == "ANDI"
    assert record.national_id == "123456" + "7" * 10
    assert len(record.national_id) == 16
    assert record.phone_number == "628123456789"


def test_digits_only_handles_empty_values() -> None:
    assert digits_only("", 16) == ""
    assert digits_only("no digits", 16) == ""


def test_payload_without_session_keeps_every_field() -> None:
    record = Record(full_name="ANDI", national_id="", phone_number="0812")

    form = SubmissionPayload.build(record).to_form()

    assert set(form) == FORM_FIELDS
    assert form["ktp"] == ""
    assert form["captcha_input"] == ""
    assert form["_token"] == ""
    assert form["check"] == "on"
    assert form["check_2"] == "on"


def test_payload_carries_session_values() -> None:
    record = Record(full_name="ANDI", national_id="3201", phone_number="0812")
    session = Session(anti_forgery_token="tok", captcha_payload="AB12")

    form = SubmissionPayload.build(record, session).to_form()

    assert form["_token"] == "tok"
    assert form["captcha_input"] == "AB12"
    assert form["name"] == "ANDI"


def test_session_requires_token() -> None:
    with pytest.raises(pydantic.ValidationError):
        Session(anti_forgery_token="")


def test_error_outcome_requires_message() -> None:
    payload = SubmissionPayload()

    with pytest.raises(pydantic.ValidationError):
        Outcome(index=0, payload=payload, status=OutcomeStatus.ERROR, error_message="  ")

    assert Outcome.failure(0, payload, "").error_message == "unknown error"


def test_outcome_row_is_flat() -> None:
    payload = SubmissionPayload(name="ANDI", ktp="3201")

    row = Outcome.success(3, payload, info="line1\nline2").to_row()

    assert row["index"] == "3"
    assert row["status"] == "OK"
    assert row["name"] == "ANDI"
    assert row["info"] == "line1\nline2"
    assert FORM_FIELDS <= set(row)


def test_registration_info_renders_placeholders() -> None:
    rendered = RegistrationInfo(queue_number="A-1").render()

    assert rendered.startswith("===== PENDAFTARAN BERHASIL =====")
    assert "Nomor Antrian  : A-1" in rendered
    assert "Ref            : N/A" in rendered


@pytest.mark.asyncio
async def test_batch_run_groups_and_orders_outcomes() -> None:
    records = [Record(full_name=f"R{i}", national_id=str(i), phone_number="0") for i in range(5)]
    run = BatchRun(records)

    groups = run.groups(2)
    assert [[index for index, _ in group] for group in groups] == [[0, 1], [2, 3], [4]]

    await asyncio.gather(
        *(run.append(Outcome.success(i, SubmissionPayload())) for i in (4, 0, 3, 1, 2))
    )
    assert [outcome.index for outcome in run.ordered_outcomes()] == [0, 1, 2, 3, 4]

    run.clear()
    assert run.outcomes == []
    assert run.records == []
