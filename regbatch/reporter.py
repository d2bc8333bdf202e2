from __future__ import annotations

from datetime import timedelta
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from regbatch.domain.models import Outcome


def format_remaining(remaining: timedelta) -> str:
    """
    Render a countdown as `Hh Mm Ss`, clamped at zero.
    """
    total = max(0, int(remaining.total_seconds()))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}h {minutes:02d}m {seconds:02d}s"


def render_countdown(
    remaining: timedelta, target_label: str, console: Optional[Console] = None
) -> None:
    """
    Rewrite the current terminal line with the time left before the next run.
    """
    console = console or Console()
    console.print(
        f"\r[cyan]Next batch at {target_label}[/cyan] "
        f"in [bold]{format_remaining(remaining)}[/bold]",
        end="",
        highlight=False,
    )


def print_outcomes(outcomes: List[Outcome], console: Optional[Console] = None) -> None:
    """
    Render batch outcomes as a rich table.

    OK rows show the registration summary; ERROR rows show the error message.
    """
    console = console or Console()

    if not outcomes:
        console.print("[yellow]No outcomes to display.[/yellow]")
        return

    ok = sum(1 for outcome in outcomes if outcome.ok)
    table = Table(
        title="Registration Batch Results",
        box=box.ROUNDED,
        caption=f"{ok} OK / {len(outcomes) - ok} ERROR",
    )

    table.add_column("#", justify="right", style="magenta", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("KTP", style="blue", no_wrap=True)
    table.add_column("Status", justify="center")
    table.add_column("Details")

    for outcome in outcomes:
        if outcome.ok:
            status = "[bold green]OK[/bold green]"
            details = escape(outcome.info)
        else:
            status = "[bold red]ERROR[/bold red]"
            details = f"[red]{escape(outcome.error_message)}[/red]"
        table.add_row(
            str(outcome.index + 1),
            escape(outcome.payload.name),
            outcome.payload.ktp,
            status,
            details,
        )

    console.print(table)


__all__ = ["format_remaining", "print_outcomes", "render_countdown"]
