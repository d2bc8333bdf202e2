"""
Sample input generator for the registration batch submitter.

Writes a deterministic pseudo-random `batch_data.csv` with the `name`, `ktp`
and `phone` columns the submitter reads. Identifiers can be emitted with
separators so the normalization path gets exercised too.
"""

from __future__ import annotations

import csv
import random
import sys
import time
from pathlib import Path

import typer

from regbatch.domain.models import NATIONAL_ID_MAX_DIGITS
from regbatch.sources import REQUIRED_COLUMNS

app = typer.Typer(help="Generate a synthetic registration CSV for dry runs.")

_FIRST_NAMES = ["ANDI", "BUDI", "CITRA", "DEWI", "EKA", "FAJAR", "GITA", "HENDRA", "INDAH", "JOKO"]
_LAST_NAMES = ["SAPUTRA", "WIJAYA", "LESTARI", "SANTOSO", "PRATAMA", "KURNIAWAN", "HIDAYAT"]


def _national_id(rng: random.Random) -> str:
    return "".join(str(rng.randint(0, 9)) for _ in range(NATIONAL_ID_MAX_DIGITS))


def _phone_number(rng: random.Random) -> str:
    return "08" + "".join(str(rng.randint(0, 9)) for _ in range(10))


def _with_separators(value: str, every: int) -> str:
    return "-".join(value[i : i + every] for i in range(0, len(value), every))


def _generate_rows_csv(csv_path: Path, rows: int, seed: int, noisy: bool = False) -> None:
    rng = random.Random(seed)

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(list(REQUIRED_COLUMNS))
        for _ in range(rows):
            name = f"{rng.choice(_FIRST_NAMES)} {rng.choice(_LAST_NAMES)}"
            ktp = _national_id(rng)
            phone = _phone_number(rng)
            if noisy:
                ktp = _with_separators(ktp, 4)
                phone = _with_separators(phone, 4)
            writer.writerow([name, ktp, phone])


@app.command()
def main(
    rows: int = typer.Option(
        10,
        "--rows",
        "-r",
        help="Number of records to generate.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path = typer.Option(
        Path("batch_data.csv"),
        "--output",
        "-o",
        help="CSV output path.",
    ),
    noisy: bool = typer.Option(
        False,
        "--noisy",
        help="Write identifiers with dash separators.",
    ),
) -> None:
    """
    Generate a synthetic registration CSV.
    """
    start = time.perf_counter()
    output.parent.mkdir(parents=True, exist_ok=True)

    typer.echo(f"Generating {rows:,} record(s) -> {output} (seed={seed}, noisy={noisy})")
    _generate_rows_csv(output, rows=rows, seed=seed, noisy=noisy)
    typer.echo(f"CSV generation completed in {time.perf_counter() - start:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
