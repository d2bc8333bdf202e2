"""
regbatch - resilient batch submission of registration records to an HTML form.

For every input record the engine acquires a fresh anti-forgery token and
captcha payload from the form page, submits the form, classifies the response
and records exactly one outcome. The package provides:

- A connectivity probe and a retrying, offline-aware HTTP transport
- Isolated or shared cookie-store session modes
- A bounded-concurrency batch scheduler with inter-group pacing
- A daily recurrence clock that never overlaps runs
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from regbatch.config import Settings, get_settings
from regbatch.domain.models import Outcome, OutcomeStatus, Record, Session, SubmissionPayload
from regbatch.orchestrator import (
    BatchScheduler,
    available_session_modes,
    build_scheduler,
    run_batch,
)
from regbatch.scheduler import RecurrenceClock, delay_until
from regbatch.sources import read_records
from regbatch.submission import Submitter
from regbatch.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Outcome",
    "OutcomeStatus",
    "Record",
    "Session",
    "SubmissionPayload",
    # Engine
    "BatchScheduler",
    "RecurrenceClock",
    "Submitter",
    "available_session_modes",
    "build_scheduler",
    "delay_until",
    "read_records",
    "run_batch",
    # Logging
    "configure_logging",
    "get_logger",
]
