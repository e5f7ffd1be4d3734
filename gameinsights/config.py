"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Model persistence
    storage_type: str = Field(default="duckdb", description="Model store (duckdb|memory)")
    db_path: str = Field(default="./data/gameinsights.duckdb", description="DuckDB file path")
    retention_model_key: str = Field(
        default="retention_predictor_model",
        description="Persistence key for the retention predictor snapshot",
    )
    revenue_model_key: str = Field(
        default="revenue_forecaster_model",
        description="Persistence key for the revenue forecaster snapshot",
    )

    # Model training
    retention_min_data_points: int = Field(
        default=3, ge=1, description="Minimum cohorts required to train retention"
    )
    revenue_min_data_points: int = Field(
        default=30, ge=2, description="Minimum daily rows required to train revenue"
    )
    validation_split: float = Field(
        default=0.2, gt=0.0, lt=1.0, description="Hold-out fraction used for training metrics"
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("storage_type")
    @classmethod
    def validate_storage_type(cls, v: str) -> str:
        """Only the in-memory and DuckDB stores are supported."""
        v = v.lower().strip()
        if v not in ("duckdb", "memory"):
            raise ValueError(f"storage_type must be 'duckdb' or 'memory', got '{v}'")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
