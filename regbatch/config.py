"""
Configuration settings for the registration batch submitter.

Uses Pydantic Settings to load environment variables for the target endpoint,
batch pacing, retry policy, schedule and response markers. Every field has a
default so the CLI starts without any environment in place.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Endpoint
    endpoint_url: str = Field("https://antrisimatupang.com", alias="ENDPOINT_URL")
    user_agent: str = Field("Mozilla/5.0", alias="USER_AGENT")
    captcha_reload_path: str = Field("/reload-captcha", alias="CAPTCHA_RELOAD_PATH")
    lookup_path: str = Field("/search", alias="LOOKUP_PATH")
    lookup_enabled: bool = Field(True, alias="LOOKUP_ENABLED")

    # Input / output
    input_path: str = Field("batch_data.csv", alias="INPUT_PATH")
    results_dir: str = Field("results", alias="RESULTS_DIR")
    diagnostics_dir: str = Field("diagnostics", alias="DIAGNOSTICS_DIR")

    # Schedule
    schedule_hour: int = Field(15, ge=0, le=23, alias="SCHEDULE_HOUR")
    schedule_minute: int = Field(0, ge=0, le=59, alias="SCHEDULE_MINUTE")
    schedule_second: int = Field(0, ge=0, le=59, alias="SCHEDULE_SECOND")
    run_once: bool = Field(False, alias="RUN_ONCE")
    tick_interval_seconds: float = Field(1.0, gt=0, alias="TICK_INTERVAL_SECONDS")

    # Batch
    concurrency_limit: int = Field(5, ge=1, alias="CONCURRENCY_LIMIT")
    inter_group_delay_ms: int = Field(500, ge=0, alias="INTER_GROUP_DELAY_MS")
    inter_group_jitter_ms: int = Field(0, ge=0, alias="INTER_GROUP_JITTER_MS")
    preserve_input_order: bool = Field(True, alias="PRESERVE_INPUT_ORDER")

    # Transport
    max_attempts: int = Field(3, ge=1, alias="MAX_ATTEMPTS")
    base_delay_ms: int = Field(1000, ge=0, alias="BASE_DELAY_MS")
    max_delay_ms: int = Field(10_000, ge=0, alias="MAX_DELAY_MS")
    request_timeout_seconds: float = Field(10.0, gt=0, alias="REQUEST_TIMEOUT_SECONDS")
    offline_interval_seconds: float = Field(5.0, ge=0, alias="OFFLINE_INTERVAL_SECONDS")
    passthrough_statuses: List[int] = Field([419, 422], alias="PASSTHROUGH_STATUSES")

    # Connectivity probe
    probe_host: str = Field("google.com", alias="PROBE_HOST")
    probe_interval_seconds: float = Field(5.0, ge=0, alias="PROBE_INTERVAL_SECONDS")
    probe_jitter_seconds: float = Field(1.0, ge=0, alias="PROBE_JITTER_SECONDS")
    probe_timeout_seconds: float = Field(5.0, gt=0, alias="PROBE_TIMEOUT_SECONDS")

    # Session
    session_mode: str = Field("fresh", alias="SESSION_MODE")
    session_reuse: bool = Field(True, alias="SESSION_REUSE")
    max_session_attempts: int = Field(3, ge=1, alias="MAX_SESSION_ATTEMPTS")
    token_pattern: str = Field(r'name="_token"\s+value="([^"]+)"', alias="TOKEN_PATTERN")
    captcha_pattern: str = Field(
        r'<span[^>]*class="[^"]*captcha[^"]*"[^>]*>(.*?)</span>', alias="CAPTCHA_PATTERN"
    )

    # Response classification
    success_marker: str = Field("Pendaftaran Berhasil", alias="SUCCESS_MARKER")
    expired_markers: List[str] = Field(
        ["Page Expired", "CSRF token mismatch"], alias="EXPIRED_MARKERS"
    )
    expired_statuses: List[int] = Field([419], alias="EXPIRED_STATUSES")
    validation_selectors: List[str] = Field(
        [".alert-danger", ".invalid-feedback"], alias="VALIDATION_SELECTORS"
    )
    queue_pattern: str = Field(r"Nomor Antrian\s*:\s*([A-Z0-9\-]+)", alias="QUEUE_PATTERN")
    ref_pattern: str = Field(r"Ref\s*:\s*([0-9]+)", alias="REF_PATTERN")

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="JSON_LOGS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def base_delay_seconds(self) -> float:
        return self.base_delay_ms / 1000.0

    @property
    def max_delay_seconds(self) -> float:
        return self.max_delay_ms / 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
