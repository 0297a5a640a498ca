"""Configuration objects for the chronodose agent."""

from __future__ import annotations

from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    feed_base_url: str = Field(
        "https://vitemadose.gitlab.io/vitemadose/",
        description="Base URL of the per-department snapshot files.",
    )
    booking_base_url: str = Field("https://www.doctolib.fr", description="Live booking backend host.")
    departments: List[int] = Field(default_factory=lambda: [75, 77, 78, 91, 92, 93, 94, 95])

    reference_latitude: float = 48.864824
    reference_longitude: float = 2.334595
    radius_km: float = Field(20.0, gt=0)
    vaccine: str = "pfizer"

    lookahead_days: int = Field(0, ge=0)
    chronodose_window_hours: int = Field(24, ge=0)
    probe_days: int = Field(2, ge=1)

    # Empirical constants of the claim/release protocol.
    settle_delay_seconds: float = Field(1.0, ge=0)
    decoy_offset_days: int = Field(10, ge=1)
    naive_utc_offset_hours: int = 2

    limit_min: int = Field(4, ge=1)
    limit_max: int = 4

    timeout_seconds: float = Field(15.0, gt=0)
    max_concurrent_scans: int = Field(8, ge=1)
    feed_retry_attempts: int = Field(3, ge=1)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CHRONODOSE_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("reference_latitude")
    @classmethod
    def check_latitude(cls, value: float) -> float:
        if not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude out of range: {value}")
        return value

    @field_validator("reference_longitude")
    @classmethod
    def check_longitude(cls, value: float) -> float:
        if not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude out of range: {value}")
        return value

    @field_validator("feed_base_url")
    @classmethod
    def feed_url_trailing_slash(cls, value: str) -> str:
        """Department files are appended directly to the base URL."""
        return value if value.endswith("/") else f"{value}/"

    @field_validator("booking_base_url")
    @classmethod
    def strip_booking_url(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def check_limit_range(self) -> "Settings":
        if self.limit_max < self.limit_min:
            raise ValueError("limit_max must be >= limit_min")
        return self

    def department_url(self, code: int) -> str:
        """Construct the snapshot URL for a department code."""
        return f"{self.feed_base_url}{code:02d}.json"
