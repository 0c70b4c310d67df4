"""
E-Commerce Analytics Marts
Centralized Configuration Management

Configuration is read from environment variables (and an optional `.env`
file) through Pydantic settings, validated, and cached for the process.
"""

from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_SEEDS_PATH = PACKAGE_ROOT / "data" / "seeds"


class PipelineSettings(BaseSettings):
    """Transformation Pipeline Configuration"""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    seeds_path: str = Field(default=str(DEFAULT_SEEDS_PATH), description="Directory holding raw seed CSVs")
    output_path: str = Field(default="./data/marts", description="Directory for published models")
    output_format: str = Field(default="parquet", description="Output format: parquet or csv")

    # Segmentation thresholds (inclusive lower bounds)
    high_value_threshold: float = Field(default=300.0, description="Lifetime revenue for high_value")
    medium_value_threshold: float = Field(default=100.0, description="Lifetime revenue for medium_value")

    # Ingestion date used by the future-order rule
    as_of_date: Optional[date] = Field(default=None, description="Ingestion date (defaults to today)")

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        """Validate output format value"""
        allowed = ["parquet", "csv"]
        if v.lower() not in allowed:
            raise ValueError(f"Output format must be one of: {allowed}")
        return v.lower()

    @model_validator(mode="after")
    def validate_thresholds(self) -> "PipelineSettings":
        """Segment thresholds must not overlap"""
        if self.medium_value_threshold >= self.high_value_threshold:
            raise ValueError("medium_value_threshold must be lower than high_value_threshold")
        return self

    @property
    def ingestion_date(self) -> date:
        """Reference date for order date checks"""
        return self.as_of_date or date.today()


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="text", description="Log format: json or text")


class DataQualitySettings(BaseSettings):
    """Data Quality Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    enable_data_quality_checks: bool = Field(
        default=True,
        alias="ENABLE_DATA_QUALITY_CHECKS",
        description="Run data tests after building models"
    )
    store_failures: bool = Field(
        default=False,
        alias="STORE_FAILURES",
        description="Persist failing rows of each data test"
    )
    failures_path: str = Field(
        default="./data/test_failures",
        alias="FAILURES_PATH",
        description="Directory for stored test failures"
    )
    fail_on_warning: bool = Field(
        default=False,
        alias="FAIL_ON_WARNING",
        description="Treat warning-severity test failures as errors"
    )


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="ecommerce-marts", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    data_quality: DataQualitySettings = Field(default_factory=DataQualitySettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience function for accessing settings
settings = get_settings()
