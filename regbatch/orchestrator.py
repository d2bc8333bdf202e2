"""
Batch scheduler: run submission attempts in bounded groups and persist outcomes.

Usage (example from CLI):
    from regbatch.orchestrator import run_batch

    outcomes = asyncio.run(run_batch(records))

Records are split into consecutive groups of `concurrency_limit`. A group's
attempts run concurrently and the group ends only when all of them have
finished; groups are separated by a (optionally jittered) pacing delay, except
after the last one. Outputs are saved to `results/` by default (see
`regbatch.sinks.persist_outcomes`).
"""

from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from regbatch.config import Settings, get_settings
from regbatch.domain.models import BatchRun, Outcome, Record, SubmissionPayload
from regbatch.infrastructure.probe import ConnectivityProbe, SleepFn
from regbatch.infrastructure.transport import ResilientTransport
from regbatch.reporter import print_outcomes
from regbatch.sessions.abstract import ClientStrategy
from regbatch.sessions.fresh import FreshClientStrategy
from regbatch.sessions.shared import SharedClientStrategy
from regbatch.sinks import DiagnosticSink, persist_outcomes
from regbatch.submission import Submitter
from regbatch.utils.logging import get_logger
from regbatch.utils.profiler import profile_block

log = get_logger(__name__)

SubmitFn = Callable[[Record, int], Awaitable[Outcome]]
OutcomeSink = Callable[[List[Outcome], BatchRun], None]


def _session_factories(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport]
) -> Dict[str, Callable[[], ClientStrategy]]:
    """Registry of available session modes."""
    return {
        "fresh": lambda: FreshClientStrategy(settings, transport=transport),
        "shared": lambda: SharedClientStrategy(settings, transport=transport),
    }


def available_session_modes() -> List[str]:
    """List available session mode names."""
    return sorted(_session_factories(get_settings(), None).keys())


def resolve_session_mode(
    name: str,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ClientStrategy:
    factories = _session_factories(settings or get_settings(), transport)
    if name not in factories:
        raise ValueError(f"Unknown session mode '{name}'. Available: {', '.join(factories)}")
    return factories[name]()


def default_sink(results_dir: Path | str, show_table: bool = True) -> OutcomeSink:
    """Sink writing JSON/CSV results and, optionally, the console summary table."""

    def _sink(outcomes: List[Outcome], run: BatchRun) -> None:
        persist_outcomes(outcomes, results_dir, started_at=run.started_at)
        if show_table:
            print_outcomes(outcomes)

    return _sink


class BatchScheduler:
    """
    Bounded-concurrency executor for one batch at a time.

    Parameters
    ----------
    submit : callable
        `submit(record, index) -> Outcome`, normally `Submitter.submit`.
    concurrency_limit : int
        Group size; never more attempts than this are in flight.
    inter_group_delay : float
        Seconds slept between groups.
    inter_group_jitter : float
        Upper bound of uniform jitter added to each pacing delay.
    sink : callable | None
        Receives the final outcome list and the run before it is cleared.
    preserve_input_order : bool
        Re-sort outcomes by record index before returning them.
    sleep : callable
        Awaitable sleep used for pacing (injectable for tests).
    """

    def __init__(
        self,
        submit: SubmitFn,
        *,
        concurrency_limit: int = 5,
        inter_group_delay: float = 0.5,
        inter_group_jitter: float = 0.0,
        sink: Optional[OutcomeSink] = None,
        preserve_input_order: bool = True,
        sleep: SleepFn = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        self._submit = submit
        self.concurrency_limit = concurrency_limit
        self.inter_group_delay = inter_group_delay
        self.inter_group_jitter = inter_group_jitter
        self.sink = sink
        self.preserve_input_order = preserve_input_order
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._active = asyncio.Lock()
        self.current_run: Optional[BatchRun] = None

    @property
    def is_running(self) -> bool:
        return self._active.locked()

    async def _attempt(self, run: BatchRun, index: int, record: Record) -> None:
        try:
            outcome = await self._submit(record, index)
        except Exception as exc:  # noqa: BLE001 - one record never aborts the batch
            log.exception(
                f"[ATTEMPT CRASHED] item {index + 1} ({record.full_name})",
                extra={"index": index},
            )
            outcome = Outcome.failure(
                index, SubmissionPayload.build(record), f"{type(exc).__name__}: {exc}"
            )
        await run.append(outcome)

    def _pacing_delay(self) -> float:
        jitter = self._rng.uniform(0, self.inter_group_jitter) if self.inter_group_jitter else 0.0
        return self.inter_group_delay + jitter

    async def run_batch(
        self,
        records: Sequence[Record],
        concurrency_limit: Optional[int] = None,
        inter_group_delay: Optional[float] = None,
    ) -> List[Outcome]:
        """
        Submit every record and return one outcome per record.

        Parameters
        ----------
        records : sequence[Record]
            Validated input records.
        concurrency_limit : int | None
            Overrides the scheduler's group size for this run.
        inter_group_delay : float | None
            Overrides the scheduler's pacing delay for this run.

        Raises
        ------
        ValueError
            If `concurrency_limit` is given and below 1.
        RuntimeError
            If a batch is already running on this scheduler.
        """
        if concurrency_limit is not None and concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        if self._active.locked():
            raise RuntimeError("a batch is already running")

        async with self._active:
            limit = self.concurrency_limit if concurrency_limit is None else concurrency_limit

            run = BatchRun(list(records))
            self.current_run = run
            groups: List[List[Tuple[int, Record]]] = run.groups(limit)
            log.info(
                f"[BATCH START] {len(run.records)} record(s) in {len(groups)} group(s)",
                extra={"records": len(run.records), "groups": len(groups), "limit": limit},
            )

            try:
                with profile_block("batch") as stats:
                    for number, group in enumerate(groups, start=1):
                        log.info(
                            f"[GROUP {number}/{len(groups)}] {len(group)} attempt(s)",
                            extra={"group": number, "size": len(group)},
                        )
                        await asyncio.gather(
                            *(self._attempt(run, index, record) for index, record in group)
                        )
                        if number < len(groups):
                            await self._sleep(
                                inter_group_delay
                                if inter_group_delay is not None
                                else self._pacing_delay()
                            )

                if self.preserve_input_order:
                    outcomes = run.ordered_outcomes()
                else:
                    outcomes = list(run.outcomes)
                ok = sum(1 for outcome in outcomes if outcome.ok)
                log.info(
                    f"[BATCH COMPLETE] {ok}/{len(outcomes)} OK in {stats.duration_seconds:.2f}s",
                    extra={
                        "ok": ok,
                        "error": len(outcomes) - ok,
                        "duration": round(stats.duration_seconds, 2),
                        "started_at": stats.started_at,
                    },
                )
                if self.sink is not None:
                    self.sink(outcomes, run)
                return outcomes
            finally:
                run.clear()
                self.current_run = None


def build_scheduler(
    settings: Optional[Settings] = None,
    *,
    client_strategy: Optional[ClientStrategy] = None,
    probe: Optional[ConnectivityProbe] = None,
    diagnostics: Optional[DiagnosticSink] = None,
    sink: Optional[OutcomeSink] = None,
    sleep: SleepFn = asyncio.sleep,
) -> Tuple[BatchScheduler, ClientStrategy]:
    """
    Wire probe, transport, session mode and submitter into a `BatchScheduler`.

    Returns the scheduler and the session mode so the caller can close it.
    """
    settings = settings or get_settings()
    probe = probe or ConnectivityProbe(settings, sleep=sleep)
    client_strategy = client_strategy or resolve_session_mode(settings.session_mode, settings)
    transport = ResilientTransport.from_settings(settings, probe=probe, sleep=sleep)
    submitter = Submitter(
        client_strategy,
        transport,
        probe,
        settings,
        diagnostics=diagnostics or DiagnosticSink(settings.diagnostics_dir),
    )
    scheduler = BatchScheduler(
        submitter.submit,
        concurrency_limit=settings.concurrency_limit,
        inter_group_delay=settings.inter_group_delay_ms / 1000.0,
        inter_group_jitter=settings.inter_group_jitter_ms / 1000.0,
        sink=sink if sink is not None else default_sink(settings.results_dir),
        preserve_input_order=settings.preserve_input_order,
        sleep=sleep,
    )
    return scheduler, client_strategy


async def run_batch(
    records: Sequence[Record],
    settings: Optional[Settings] = None,
    **kwargs,
) -> List[Outcome]:
    """
    One-shot convenience wrapper: build a scheduler, run one batch, close clients.

    A diagnostic sink passed in `kwargs` stays open; one created here is closed.
    """
    settings = settings or get_settings()
    owned = None
    if kwargs.get("diagnostics") is None:
        owned = kwargs["diagnostics"] = DiagnosticSink(settings.diagnostics_dir)
    scheduler, client_strategy = build_scheduler(settings, **kwargs)
    try:
        return await scheduler.run_batch(records)
    finally:
        await client_strategy.aclose()
        if owned is not None:
            owned.close()


__all__ = [
    "BatchScheduler",
    "available_session_modes",
    "build_scheduler",
    "default_sink",
    "resolve_session_mode",
    "run_batch",
]
