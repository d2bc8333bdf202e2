"""
Utilities package for the registration batch submitter.

Exports shared helpers for logging, timing, and other cross-cutting concerns.
Keep this package lightweight and free of domain-specific logic.
"""

from regbatch.utils.logging import (
    JsonFormatter,
    configure_logging,
    get_logger,
    json_file_handler,
)
from regbatch.utils.profiler import ProfileStats, profile_block

__all__ = [
    "JsonFormatter",
    "configure_logging",
    "get_logger",
    "json_file_handler",
    "ProfileStats",
    "profile_block",
]
