"""
Daily recurrence clock for batch runs.

`RecurrenceClock.arm_daily(15, 0, 0)` starts one task that sleeps until the next
15:00:00 local time, fires the job, and re-arms for the same wall-clock time the
following day. Re-arming after each run (instead of a fixed 24h interval) keeps
the schedule anchored to the clock regardless of how long a run takes.

A second, independent ticker task reports the time left for display only; it
never fires the job.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from regbatch.infrastructure.probe import SleepFn
from regbatch.utils.logging import get_logger

log = get_logger(__name__)

NowFn = Callable[[], datetime]
TickFn = Callable[[timedelta], None]


def next_occurrence(
    hour: int, minute: int = 0, second: int = 0, now: Optional[datetime] = None
) -> datetime:
    """
    Next wall-clock `hour:minute:second` strictly after `now`.

    A target equal to `now` counts as already passed and rolls to tomorrow.
    """
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=minute, second=second, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return target


def delay_until(
    hour: int, minute: int = 0, second: int = 0, now: Optional[datetime] = None
) -> timedelta:
    """Time left from `now` until `next_occurrence(hour, minute, second)`."""
    now = now or datetime.now()
    return next_occurrence(hour, minute, second, now) - now


class ScheduleHandle:
    """
    Cancellable handle returned by `RecurrenceClock.arm_daily`.
    """

    def __init__(self, fire_task: asyncio.Task, tick_task: Optional[asyncio.Task] = None) -> None:
        self._fire_task = fire_task
        self._tick_task = tick_task

    def cancel(self) -> None:
        self._fire_task.cancel()
        if self._tick_task is not None:
            self._tick_task.cancel()

    @property
    def done(self) -> bool:
        return self._fire_task.done()

    async def wait(self) -> None:
        """Wait for the fire loop to end (cancelled or out of fires); stops the ticker."""
        try:
            with contextlib.suppress(asyncio.CancelledError):
                await self._fire_task
        finally:
            if self._tick_task is not None:
                self._tick_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._tick_task


class RecurrenceClock:
    """
    Fire `job` once a day at a fixed local wall-clock time.

    Parameters
    ----------
    job : callable
        Coroutine function run at each fire instant.
    is_running : callable
        Reports whether a batch is in flight; a fire is skipped while it is.
    now : callable
        Wall clock (naive local time).
    sleep : callable
        Awaitable sleep used for the fire wait.
    tick_interval : float
        Seconds between countdown reports.
    on_tick : callable | None
        Receives the remaining time on each tick. No ticker runs when omitted.
    max_fires : int | None
        Stop after this many fire instants (None = forever).
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        *,
        is_running: Callable[[], bool] = lambda: False,
        now: NowFn = datetime.now,
        sleep: SleepFn = asyncio.sleep,
        tick_interval: float = 1.0,
        on_tick: Optional[TickFn] = None,
        max_fires: Optional[int] = None,
    ) -> None:
        self._job = job
        self._is_running = is_running
        self._now = now
        self._sleep = sleep
        self.tick_interval = tick_interval
        self._on_tick = on_tick
        self.max_fires = max_fires
        self.next_fire_at: Optional[datetime] = None
        self.fires = 0
        self.runs = 0
        self.skipped = 0

    def arm_daily(self, hour: int, minute: int = 0, second: int = 0) -> ScheduleHandle:
        """Start the fire loop (and ticker, if any) in the running event loop."""
        fire_task = asyncio.create_task(self._fire_loop(hour, minute, second))
        tick_task = asyncio.create_task(self._tick_loop()) if self._on_tick else None
        return ScheduleHandle(fire_task, tick_task)

    def _arm(self, hour: int, minute: int, second: int) -> datetime:
        target = next_occurrence(hour, minute, second, self._now())
        # An early timer wake-up must not fire the same target twice.
        if self.next_fire_at is not None and target <= self.next_fire_at:
            target = self.next_fire_at + timedelta(days=1)
        self.next_fire_at = target
        return target

    async def _fire_loop(self, hour: int, minute: int, second: int) -> None:
        while self.max_fires is None or self.fires < self.max_fires:
            target = self._arm(hour, minute, second)
            delay = max(0.0, (target - self._now()).total_seconds())
            log.info(
                f"[SCHEDULE] Next batch at {target:%Y-%m-%d %H:%M:%S} (in {delay:.0f}s)",
                extra={"target": target.isoformat(), "delay": round(delay, 3)},
            )
            await self._sleep(delay)
            # Timers may wake early; the job never starts before its instant.
            remaining = (target - self._now()).total_seconds()
            while remaining > 0:
                await self._sleep(remaining)
                remaining = (target - self._now()).total_seconds()
            self.fires += 1

            if self._is_running():
                self.skipped += 1
                log.warning(
                    "[SCHEDULE] Previous batch still running; skipping this fire",
                    extra={"target": target.isoformat()},
                )
                continue

            log.info("[SCHEDULE] Fire time reached, starting batch")
            try:
                await self._job()
            except Exception:  # noqa: BLE001 - a failed run must not stop the schedule
                log.exception("[SCHEDULE] Batch failed")
            self.runs += 1

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            if self.next_fire_at is None or self._is_running() or self._on_tick is None:
                continue
            self._on_tick(self.next_fire_at - self._now())


__all__ = ["RecurrenceClock", "ScheduleHandle", "delay_until", "next_occurrence"]
