"""
Output and diagnostic sinks.

Output sink: at the end of a batch the full outcome list is written twice, as
JSON (record oriented) and CSV (tabular), under `results/`:
- `results/latest.json` and `results/latest.csv` (last run)
- `results/run-<timestamp>.json` (timestamped archive)

Diagnostic sink: every failed attempt appends one JSON line to
`diagnostics/errors.log`, and failures caused by a page the classifier could
read keep that page under `diagnostics/responses/`.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from regbatch.domain.models import Outcome, OutcomeStatus
from regbatch.utils.logging import get_logger, json_file_handler

log = get_logger(__name__)


def _csv_cell(value: object) -> str:
    return str(value if value is not None else "").replace("\r\n", "\\n").replace("\n", "\\n")


def write_csv(rows: List[Dict[str, str]], path: Path) -> None:
    """Write `rows` with the union of their keys as header; newlines escaped."""
    headers: List[str] = []
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)

    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(headers)
        for row in rows:
            writer.writerow([_csv_cell(row.get(key, "")) for key in headers])


def persist_outcomes(
    outcomes: Iterable[Outcome],
    results_dir: Path | str = "results",
    started_at: Optional[datetime] = None,
) -> Dict[str, Path]:
    """
    Persist one batch's outcomes as JSON and CSV.

    Returns
    -------
    dict[str, Path]
        Paths written, keyed by `latest`, `archive` and `csv`.
    """
    results_path = Path(results_dir)
    results_path.mkdir(parents=True, exist_ok=True)
    rows = [outcome.to_row() for outcome in outcomes]
    now = datetime.now(timezone.utc)
    payload = {
        "timestamp": now.isoformat(),
        "started_at": started_at.isoformat() if started_at else None,
        "total": len(rows),
        "ok": sum(1 for row in rows if row["status"] == OutcomeStatus.OK.value),
        "error": sum(1 for row in rows if row["status"] == OutcomeStatus.ERROR.value),
        "outcomes": rows,
    }

    latest_path = results_path / "latest.json"
    archive_path = results_path / f"run-{now.strftime('%Y%m%dT%H%M%S%fZ')}.json"
    csv_path = results_path / "latest.csv"

    with latest_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    with archive_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    write_csv(rows, csv_path)

    log.info(
        "Results persisted",
        extra={"latest": str(latest_path), "archive": str(archive_path), "csv": str(csv_path)},
    )
    return {"latest": latest_path, "archive": archive_path, "csv": csv_path}


class DiagnosticSink:
    """
    Append-only failure log plus raw response store.

    The failure log is a dedicated non-propagating logger with a JSON file
    handler, so each failure lands as one machine-parseable line.
    """

    def __init__(self, directory: Path | str = "diagnostics") -> None:
        self.directory = Path(directory)
        self.error_log_path = self.directory / "errors.log"
        self.responses_dir = self.directory / "responses"
        self._logger = logging.getLogger(f"regbatch.failures.{id(self):x}")
        self._logger.propagate = False
        self._logger.setLevel(logging.INFO)
        self._handler: Optional[logging.Handler] = None

    @property
    def is_open(self) -> bool:
        return self._handler is not None

    def _ensure_handler(self) -> None:
        if self._handler is not None:
            return
        handler = json_file_handler(self.error_log_path)
        self._logger.addHandler(handler)
        self._handler = handler

    def record_failure(
        self,
        *,
        record_id: str,
        record_name: str,
        message: str,
        timestamp: Optional[datetime] = None,
    ) -> None:
        self._ensure_handler()
        moment = timestamp or datetime.now(timezone.utc)
        self._logger.error(
            message,
            extra={
                "timestamp": moment.isoformat(),
                "record_id": record_id,
                "record_name": record_name,
            },
        )

    def save_response(
        self, *, record_id: str, body: str, submitted_at: Optional[datetime] = None
    ) -> Path:
        self.responses_dir.mkdir(parents=True, exist_ok=True)
        moment = submitted_at or datetime.now(timezone.utc)
        safe_id = "".join(ch for ch in record_id if ch.isalnum()) or "unknown"
        path = self.responses_dir / f"{safe_id}_{moment.strftime('%Y%m%dT%H%M%S%fZ')}.html"
        path.write_text(body, encoding="utf-8")
        return path

    def close(self) -> None:
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None


__all__ = ["DiagnosticSink", "persist_outcomes", "write_csv"]
