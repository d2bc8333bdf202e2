"""
Error taxonomy for the registration batch submitter.

Connectivity and transient transport failures are retried where they happen.
Everything else surfaces as a terminal ERROR outcome for one record, except
`InputError`, which is batch-level and stops the run before any network call.
"""
from __future__ import annotations

from typing import List, Optional, Sequence


class RegBatchError(Exception):
    """Base class for every error raised by this package."""


class ConnectivityError(RegBatchError):
    """Network is down or the endpoint does not answer."""


class TransportError(RegBatchError):
    """HTTP retries were exhausted for a single request."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException] = None) -> None:
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        detail = _describe(last_error) if last_error else "no response"
        super().__init__(f"request to {url} failed after {attempts} attempt(s): {detail}")


class SessionError(RegBatchError):
    """The session page did not yield a usable anti-forgery token."""

    def __init__(self, reason: str = "token_not_found") -> None:
        self.reason = reason
        super().__init__(reason)


class SessionExpiredError(RegBatchError):
    """The endpoint rejected the submission because its session expired."""


class ValidationError(RegBatchError):
    """The endpoint rejected the submitted content."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnrecognizedResponseError(RegBatchError):
    """The response matched none of the known markers."""

    def __init__(self, message: str = "unrecognized response") -> None:
        super().__init__(message)


class InputError(RegBatchError):
    """The input source is unreadable or lacks required columns."""

    def __init__(self, message: str, missing: Sequence[str] = ()) -> None:
        self.missing: List[str] = list(missing)
        super().__init__(message)


def _describe(exc: BaseException) -> str:
    text = str(exc).strip()
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


__all__ = [
    "ConnectivityError",
    "InputError",
    "RegBatchError",
    "SessionError",
    "SessionExpiredError",
    "TransportError",
    "UnrecognizedResponseError",
    "ValidationError",
]
