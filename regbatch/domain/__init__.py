"""
Domain package for the registration batch submitter.

Exports the core domain models and the error taxonomy used across the
submission attempt, batch scheduler and sinks. Keep this package focused on
data definitions and validation concerns.
"""

from regbatch.domain.errors import (
    ConnectivityError,
    InputError,
    RegBatchError,
    SessionError,
    SessionExpiredError,
    TransportError,
    UnrecognizedResponseError,
    ValidationError,
)
from regbatch.domain.models import (
    BatchRun,
    Outcome,
    OutcomeStatus,
    Record,
    RegistrationInfo,
    Session,
    SubmissionPayload,
)

__all__ = [
    "BatchRun",
    "ConnectivityError",
    "InputError",
    "Outcome",
    "OutcomeStatus",
    "Record",
    "RegBatchError",
    "RegistrationInfo",
    "Session",
    "SessionError",
    "SessionExpiredError",
    "SubmissionPayload",
    "TransportError",
    "UnrecognizedResponseError",
    "ValidationError",
]
