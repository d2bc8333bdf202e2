"""
Timing utilities for the registration batch submitter.

Provides a context manager that measures wall-clock duration of a block
(perf_counter) alongside the UTC wall time it started, so batch summaries
can report both when a run began and how long it took.

Usage example:
    from regbatch.utils.profiler import profile_block

    with profile_block("batch") as stats:
        await scheduler.run_batch(records)

    print(stats.started_at, stats.duration_seconds)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generator, Optional


@dataclass
class ProfileStats:
    """
    Container for timing measurements.
    """

    label: str
    started_at: Optional[datetime] = field(default=None)
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)


@contextlib.contextmanager
def profile_block(label: str) -> Generator[ProfileStats, None, None]:
    """
    Context manager to time a block of code.

    The stats object is populated on exit even when the block raises, so
    callers can still log how long a failed run took.
    """
    stats = ProfileStats(label=label)
    stats.started_at = datetime.now(timezone.utc)
    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts


__all__ = ["ProfileStats", "profile_block"]
