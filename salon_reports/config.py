from datetime import date
from functools import lru_cache
from typing import List, Literal

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from salon_reports.schemas.report_settings import (
    ProcessorSettings,
    ReportSettings,
    RetentionSettings,
)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field(default="Salon Reports Service")
    cors_origins: List[AnyHttpUrl] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )
    data_file: str | None = Field(
        default=None
    )
    seed_reference_date: date | None = Field(
        default=None
    )
    processor_fee_rate_pct: float = Field(
        default=2.9
    )
    processor_fee_fixed: float = Field(
        default=0.30
    )
    processor_fee_base_policy: Literal["subtotal", "subtotal+tax", "subtotal+tax+tip"] = Field(
        default="subtotal+tax+tip"
    )
    lapsed_threshold_days: int = Field(
        default=90
    )
    retention_use_settings_threshold: bool = Field(
        default=False
    )

    model_config = SettingsConfigDict(env_prefix="SALON_", case_sensitive=False)

    @field_validator("cors_origins", mode="before")
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    def default_report_settings(self) -> ReportSettings:
        """Business settings used when a snapshot does not carry its own."""

        return ReportSettings(
            processor=ProcessorSettings(
                fee_rate_pct=self.processor_fee_rate_pct,
                fee_fixed=self.processor_fee_fixed,
                fee_base_policy=self.processor_fee_base_policy,
            ),
            retention=RetentionSettings(
                lapsed_threshold_days=self.lapsed_threshold_days,
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
