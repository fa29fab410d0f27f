"""Pipeline configuration using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AutomationSettings(BaseSettings):
    """Automation pipeline configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INBOX_AUTOMATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_json: bool = Field(default=True, description="Use JSON log format")

    # Ollama inference backend
    ollama_local_url: str = Field(
        default="http://localhost:11434", description="Local Ollama endpoint"
    )
    ollama_remote_url: str | None = Field(
        default=None, description="Remote Ollama endpoint used when local is unreachable"
    )
    ollama_model: str = Field(default="llama3.1:8b", description="Model name")
    ollama_use_local: bool = Field(default=True, description="Prefer the local endpoint")
    ai_timeout_seconds: float = Field(
        default=5.0, gt=0, le=120, description="Per-call AI inference timeout"
    )
    ai_retry_after_seconds: float = Field(
        default=30.0, ge=0, description="Seconds after an AI failure before the backend is retried"
    )

    # Analysis thresholds
    spam_threshold: int = Field(default=80, ge=0, le=100, description="Spam cutoff")
    high_priority_threshold: int = Field(default=70, ge=0, le=200)
    medium_priority_threshold: int = Field(default=40, ge=0, le=200)
    reply_generation_confidence: int = Field(
        default=60, ge=0, le=100, description="Minimum response confidence to draft a reply"
    )
    analysis_version: str = Field(default="1.0", description="Stored analysis version")

    # Notification batching
    batch_window_seconds: float = Field(
        default=600.0, gt=0, description="Window during which notifications are grouped"
    )
    min_batch_size: int = Field(default=2, ge=1, description="Minimum messages to batch")
    max_body_length: int = Field(default=200, ge=20, description="Notification body cap")

    # Scheduler
    cron_interval_seconds: int = Field(
        default=900, ge=10, description="Seconds between automation ticks"
    )
    max_concurrent_users: int = Field(
        default=4, ge=1, le=64, description="Users processed in parallel per tick"
    )

    # Offline queue
    stale_processing_seconds: float = Field(
        default=900.0, gt=0, description="Claim age after which operator retry reopens an operation"
    )

    # Event sink
    event_buffer_size: int = Field(default=1000, ge=1, description="Buffered automation events")

    # Celery
    redis_url: str = Field(default="redis://localhost:6379/0", description="Celery broker")
    pipeline_factory: str | None = Field(
        default=None,
        description="Dotted path ('module:callable') returning an AutomationPipeline for workers",
    )

    @field_validator("ollama_local_url", "ollama_remote_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize endpoint URLs."""
        if v is None:
            return v
        return v.rstrip("/")

    @field_validator("medium_priority_threshold")
    @classmethod
    def validate_priority_order(cls, v: int, info: ValidationInfo) -> int:
        """Ensure the medium threshold does not exceed the high threshold."""
        high = info.data.get("high_priority_threshold")
        if high is not None and v > high:
            raise ValueError("medium_priority_threshold must not exceed high_priority_threshold")
        return v

    @property
    def ollama_base_url(self) -> str:
        """Endpoint currently preferred for inference."""
        if self.ollama_use_local or not self.ollama_remote_url:
            return self.ollama_local_url
        return self.ollama_remote_url


@lru_cache
def get_settings() -> AutomationSettings:
    """Get cached settings instance."""
    return AutomationSettings()
