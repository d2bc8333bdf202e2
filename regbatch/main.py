from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console

from regbatch.config import Settings, get_settings
from regbatch.domain.errors import InputError, RegBatchError
from regbatch.domain.models import NATIONAL_ID_MAX_DIGITS, Record, digits_only
from regbatch.infrastructure.http_factory import build_async_client
from regbatch.infrastructure.probe import ConnectivityProbe
from regbatch.infrastructure.transport import ResilientTransport
from regbatch.orchestrator import available_session_modes, build_scheduler
from regbatch.reporter import render_countdown
from regbatch.scheduler import RecurrenceClock
from regbatch.sinks import DiagnosticSink
from regbatch.sources import read_records
from regbatch.submission import lookup_registration
from regbatch.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Registration batch submitter CLI.")
log = get_logger(__name__)

INPUT_ERROR_EXIT_CODE = 2


def _effective_settings(**overrides: Any) -> Settings:
    updates: Dict[str, Any] = {key: value for key, value in overrides.items() if value is not None}
    settings = get_settings()
    return settings.model_copy(update=updates) if updates else settings


def _load_records(settings: Settings) -> List[Record]:
    try:
        return read_records(settings.input_path)
    except InputError as exc:
        typer.echo(f"Input error: {exc}", err=True)
        raise typer.Exit(code=INPUT_ERROR_EXIT_CODE) from exc


async def _run_once(settings: Settings, records: List[Record]) -> None:
    diagnostics = DiagnosticSink(settings.diagnostics_dir)
    scheduler, client_strategy = build_scheduler(settings, diagnostics=diagnostics)
    try:
        await scheduler.run_batch(records)
    finally:
        await client_strategy.aclose()
        diagnostics.close()


async def _run_scheduled(settings: Settings) -> None:
    diagnostics = DiagnosticSink(settings.diagnostics_dir)
    scheduler, client_strategy = build_scheduler(settings, diagnostics=diagnostics)
    console = Console()
    target_label = (
        f"{settings.schedule_hour:02d}:{settings.schedule_minute:02d}:"
        f"{settings.schedule_second:02d}"
    )

    async def job() -> None:
        console.print()
        records = read_records(settings.input_path)
        if not records:
            log.warning("[SCHEDULE] Input is empty, nothing to submit")
            return
        await scheduler.run_batch(records)

    clock = RecurrenceClock(
        job,
        is_running=lambda: scheduler.is_running,
        tick_interval=settings.tick_interval_seconds,
        on_tick=lambda remaining: render_countdown(remaining, target_label, console),
    )
    handle = clock.arm_daily(
        settings.schedule_hour, settings.schedule_minute, settings.schedule_second
    )
    try:
        await handle.wait()
    finally:
        handle.cancel()
        await client_strategy.aclose()
        diagnostics.close()


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"URL={settings.endpoint_url} | input={settings.input_path} | "
        f"schedule={settings.schedule_hour:02d}:{settings.schedule_minute:02d}:"
        f"{settings.schedule_second:02d} once={settings.run_once} | "
        f"concurrency={settings.concurrency_limit} delay={settings.inter_group_delay_ms}ms "
        f"session={settings.session_mode}"
    )


@app.command()
def run(
    once: Optional[bool] = typer.Option(
        None,
        "--once/--scheduled",
        help="Run a single batch now, or wait for the daily schedule (default from settings).",
    ),
    input_path: Optional[Path] = typer.Option(
        None,
        "--input",
        "-i",
        help="CSV file with name, ktp and phone columns.",
    ),
    url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="Endpoint URL override.",
    ),
    hour: Optional[int] = typer.Option(None, "--hour", min=0, max=23, help="Schedule hour."),
    minute: Optional[int] = typer.Option(None, "--minute", min=0, max=59, help="Schedule minute."),
    second: Optional[int] = typer.Option(None, "--second", min=0, max=59, help="Schedule second."),
    session_mode: Optional[str] = typer.Option(
        None,
        "--session-mode",
        "-m",
        help="Cookie store per attempt ('fresh') or shared across attempts ('shared').",
    ),
) -> None:
    """
    Submit every record in the input, now or at the scheduled time each day.
    """
    settings = _effective_settings(
        run_once=once,
        input_path=str(input_path) if input_path else None,
        endpoint_url=url,
        schedule_hour=hour,
        schedule_minute=minute,
        schedule_second=second,
        session_mode=session_mode,
    )
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)

    if settings.session_mode not in available_session_modes():
        raise typer.BadParameter(
            f"Unknown session mode '{settings.session_mode}'. "
            f"Available: {', '.join(available_session_modes())}",
            param_hint="--session-mode",
        )

    records = _load_records(settings)
    if not records:
        typer.echo(f"No records in {settings.input_path}; nothing to do.")
        raise typer.Exit(code=0)

    typer.echo(
        f"Loaded {len(records)} record(s) from {settings.input_path} "
        f"(concurrency={settings.concurrency_limit}, session={settings.session_mode})."
    )
    if settings.run_once:
        asyncio.run(_run_once(settings, records))
    else:
        asyncio.run(_run_scheduled(settings))


@app.command()
def check(
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Endpoint URL override."),
) -> None:
    """
    Probe network reachability and endpoint liveness once.
    """
    settings = _effective_settings(endpoint_url=url)
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)

    async def _check() -> tuple[bool, bool]:
        probe = ConnectivityProbe(settings)
        return await probe.is_network_up(), await probe.is_endpoint_up(settings.endpoint_url)

    network_up, endpoint_up = asyncio.run(_check())
    typer.echo(
        f"network={'up' if network_up else 'down'} "
        f"endpoint={'up' if endpoint_up else 'down'}"
    )
    if not (network_up and endpoint_up):
        raise typer.Exit(code=1)


@app.command()
def lookup(
    ktp: str = typer.Argument(..., help="National ID number to look up."),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Endpoint URL override."),
) -> None:
    """
    Show the registration details the endpoint holds for one national ID.
    """
    settings = _effective_settings(endpoint_url=url)
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    national_id = digits_only(ktp, NATIONAL_ID_MAX_DIGITS)

    async def _lookup() -> str:
        transport = ResilientTransport.from_settings(settings)
        async with build_async_client(settings) as client:
            return await lookup_registration(
                national_id, client, transport=transport, settings=settings
            )

    try:
        typer.echo(asyncio.run(_lookup()))
    except RegBatchError as exc:
        typer.echo(f"Lookup failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
