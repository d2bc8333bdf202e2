"""
Domain models for the registration batch submitter.

Defines the input record, the ephemeral session pairing, the exact form payload
sent to the endpoint, and the terminal outcome of one submission. These models
are used for validation, serialization, and type hints across the submission
attempt, the batch scheduler and the sinks.
"""
from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator

NATIONAL_ID_MAX_DIGITS = 16
PHONE_NUMBER_MAX_DIGITS = 12
PLACEHOLDER = "N/A"

_NON_DIGITS = re.compile(r"\D")


def digits_only(value: str, max_digits: int) -> str:
    """Strip every non-digit character and keep at most `max_digits` digits."""
    return _NON_DIGITS.sub("", value or "")[:max_digits]


class Record(BaseModel):
    """
    One registration row read from the input source.

    Identifiers are normalized on construction, so any code holding a Record
    already sees digits-only, length-capped values.
    """

    full_name: str = Field(..., alias="name", description="Name as printed on the ID card.")
    national_id: str = Field(..., alias="ktp", description="National ID number (digits).")
    phone_number: str = Field(..., alias="phone", description="Mobile phone number (digits).")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    @field_validator("national_id", mode="before")
    @classmethod
    def _normalize_national_id(cls, value: object) -> str:
        return digits_only(str(value or ""), NATIONAL_ID_MAX_DIGITS)

    @field_validator("phone_number", mode="before")
    @classmethod
    def _normalize_phone_number(cls, value: object) -> str:
        return digits_only(str(value or ""), PHONE_NUMBER_MAX_DIGITS)


class Session(BaseModel):
    """
    Anti-forgery token plus captcha payload for a single submission.
    """

    anti_forgery_token: str = Field(..., min_length=1)
    captcha_payload: str = Field("", description="Captcha value echoed back verbatim.")

    model_config = {"frozen": True}


class SubmissionPayload(BaseModel):
    """
    Exact field set posted to the endpoint.

    Field aliases are the endpoint's form names. Every field is always
    serialized, empty string when there is nothing to send.
    """

    name: str = ""
    ktp: str = ""
    phone_number: str = ""
    captcha_input: str = ""
    check: str = "on"
    check_2: str = "on"
    token: str = Field("", alias="_token")

    model_config = {"frozen": True, "populate_by_name": True}

    @classmethod
    def build(cls, record: Record, session: Session | None = None) -> "SubmissionPayload":
        return cls(
            name=record.full_name,
            ktp=record.national_id,
            phone_number=record.phone_number,
            captcha_input=session.captcha_payload if session else "",
            token=session.anti_forgery_token if session else "",
        )

    def to_form(self) -> Dict[str, str]:
        """Form body for `application/x-www-form-urlencoded` submission."""
        return {key: value or "" for key, value in self.model_dump(by_alias=True).items()}


class OutcomeStatus(str, Enum):
    OK = "OK"
    ERROR = "ERROR"


class Outcome(BaseModel):
    """
    Terminal result for one record in one batch run. Never mutated.
    """

    index: int = Field(..., ge=0, description="Position of the record in the input.")
    payload: SubmissionPayload
    status: OutcomeStatus
    info: str = ""
    error_message: str = ""
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @field_validator("error_message")
    @classmethod
    def _error_requires_message(cls, value: str, validation_info) -> str:
        if validation_info.data.get("status") == OutcomeStatus.ERROR and not value.strip():
            raise ValueError("ERROR outcomes must carry a diagnostic message")
        return value

    @classmethod
    def success(
        cls, index: int, payload: SubmissionPayload, info: str = ""
    ) -> "Outcome":
        return cls(index=index, payload=payload, status=OutcomeStatus.OK, info=info)

    @classmethod
    def failure(
        cls, index: int, payload: SubmissionPayload, message: str
    ) -> "Outcome":
        return cls(
            index=index,
            payload=payload,
            status=OutcomeStatus.ERROR,
            error_message=message or "unknown error",
        )

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    def to_row(self) -> Dict[str, str]:
        """Flat, record-oriented view used by the output sinks."""
        row: Dict[str, str] = {"index": str(self.index)}
        row.update(self.payload.to_form())
        row.update(
            {
                "status": self.status.value,
                "info": self.info,
                "error_message": self.error_message,
                "submitted_at": self.submitted_at.isoformat(),
            }
        )
        return row


class RegistrationInfo(BaseModel):
    """
    Human-readable registration details shown after a successful submission.
    """

    website: str = PLACEHOLDER
    queue_number: str = PLACEHOLDER
    ref: str = PLACEHOLDER
    name: str = PLACEHOLDER
    national_id: str = PLACEHOLDER
    phone_number: str = PLACEHOLDER
    visit_date: str = PLACEHOLDER
    attendance_window: str = PLACEHOLDER

    def render(self) -> str:
        lines = [
            "===== PENDAFTARAN BERHASIL =====",
            f"Website        : {self.website}",
            f"Nomor Antrian  : {self.queue_number}",
            f"Ref            : {self.ref}",
            f"Nama KTP       : {self.name}",
            f"Nomor KTP      : {self.national_id}",
            f"Nomor HP       : {self.phone_number}",
            f"Tanggal Datang : {self.visit_date}",
            f"Wajib Hadir    : {self.attendance_window}",
            "================================",
        ]
        return "\n".join(lines)


class BatchRun:
    """
    Aggregate for one scheduler invocation.

    Outcomes are appended by concurrent attempts, so every append goes through
    the run's lock. The run is discarded once its outcomes reach the sink.
    """

    def __init__(self, records: List[Record]) -> None:
        self.started_at: datetime = datetime.now(timezone.utc)
        self.records: List[Record] = list(records)
        self.outcomes: List[Outcome] = []
        self._lock = asyncio.Lock()

    async def append(self, outcome: Outcome) -> None:
        async with self._lock:
            self.outcomes.append(outcome)

    def groups(self, size: int) -> List[List[Tuple[int, Record]]]:
        """Consecutive (index, record) groups of at most `size` items."""
        indexed = list(enumerate(self.records))
        return [indexed[i : i + size] for i in range(0, len(indexed), size)]

    def ordered_outcomes(self) -> List[Outcome]:
        return sorted(self.outcomes, key=lambda outcome: outcome.index)

    def clear(self) -> None:
        self.records.clear()
        self.outcomes.clear()


__all__ = [
    "BatchRun",
    "NATIONAL_ID_MAX_DIGITS",
    "Outcome",
    "OutcomeStatus",
    "PHONE_NUMBER_MAX_DIGITS",
    "PLACEHOLDER",
    "Record",
    "RegistrationInfo",
    "Session",
    "SubmissionPayload",
    "digits_only",
]
