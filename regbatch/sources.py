"""
CSV input source.

Headers are matched case-insensitively after trimming; `name`, `ktp` and
`phone` are required. Any problem with the source is raised as `InputError`
before a single request goes out.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import List

from regbatch.domain.errors import InputError
from regbatch.domain.models import Record

REQUIRED_COLUMNS = ("name", "ktp", "phone")


def missing_columns(headers: List[str]) -> List[str]:
    """Required columns absent from `headers`, in required order."""
    present = {header.strip().lower() for header in headers if header}
    return [column for column in REQUIRED_COLUMNS if column not in present]


def read_records(path: Path | str) -> List[Record]:
    """
    Read and normalize every record of a CSV file.

    Returns an empty list for an empty file. Blank rows are skipped.

    Raises
    ------
    InputError
        If the file is missing or unreadable, or required columns are absent.
    """
    csv_path = Path(path)
    if not csv_path.is_file():
        raise InputError(f"CSV file not found: {csv_path.resolve()}")

    try:
        with csv_path.open("r", newline="", encoding="utf-8-sig") as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if header is None or not any(cell.strip() for cell in header):
                return []
            columns = [column.strip().lower() for column in header]
            missing = missing_columns(columns)
            if missing:
                raise InputError(f"Missing CSV column(s): {', '.join(missing)}", missing=missing)

            records: List[Record] = []
            for row in reader:
                if not any(cell.strip() for cell in row):
                    continue
                values = {
                    column: cell.strip() for column, cell in zip(columns, row) if column
                }
                records.append(
                    Record(
                        full_name=values.get("name", ""),
                        national_id=values.get("ktp", ""),
                        phone_number=values.get("phone", ""),
                    )
                )
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InputError(f"Cannot read CSV file {csv_path}: {exc}") from exc

    return records


__all__ = ["REQUIRED_COLUMNS", "missing_columns", "read_records"]
