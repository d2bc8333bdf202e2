"""
Structured logging utilities for the registration batch submitter.

Console output is human-readable by default (`JSON_LOGS=false`); JSON lines
are available for log shippers. Per-record context travels through `extra=`
and is promoted to top-level keys by `JsonFormatter`, which also backs the
append-only diagnostic error log (see `json_file_handler`).

Usage:
    from regbatch.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=False)
    log = get_logger(__name__)
    log.info("[SUBMIT OK] ANDI", extra={"record_id": "3201...", "attempt": 1})
"""

from __future__ import annotations

import json
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers; one line per request drowns the batch progress.
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")

# Attributes every LogRecord carries; anything else was passed through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as one JSON line, `extra=` fields at top level."""
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(
        (key, value)
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    )
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    return json.dumps(payload, default=str, ensure_ascii=False)


class JsonFormatter(logging.Formatter):
    """JSON-lines formatter used for structured console logs and the error log."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def json_file_handler(path: Path | str, level: int = logging.INFO) -> logging.Handler:
    """
    Append-mode file handler writing one JSON object per line.

    The parent directory is created if needed.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = True,
) -> None:
    """
    Configure root logging for the CLI.

    Parameters
    ----------
    level : str
        Root level name ("DEBUG", "INFO", ...). `LOG_LEVEL` in settings.
    json_logs : bool
        Emit JSON lines instead of the console format. `JSON_LOGS` in settings.
    force : bool
        Replace handlers installed by an earlier call (the CLI reconfigures
        once per command).
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": not force,
            "formatters": {
                "console": {"format": CONSOLE_FORMAT, "datefmt": CONSOLE_DATEFMT},
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "console",
                    "level": level,
                }
            },
            "root": {"handlers": ["default"], "level": level},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module logger; the root logger when `name` is None."""
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger", "json_file_handler"]
