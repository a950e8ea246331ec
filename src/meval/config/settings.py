"""Harness-wide settings resolved from the environment.

These cover operational knobs that do not belong in an experiment document:
request timeouts, retry defaults and the provider base URL. Values come from
``MEVAL_*`` environment variables and fall back to the defaults below.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HarnessSettings(BaseSettings):
    """Pydantic settings schema for the evaluation harness."""

    model_config = SettingsConfigDict(
        env_prefix="MEVAL_",
        env_file=None,
        case_sensitive=False,
        extra="ignore",
    )

    request_timeout: float = Field(
        default=30.0,
        description="Per-request provider timeout in seconds",
        gt=0,
    )

    max_retries: int = Field(
        default=3,
        description="Retry attempts per record when on_error=retry",
        ge=0,
    )

    retry_backoff_seconds: float = Field(
        default=0.5,
        description="Delay before the first retry; doubles per attempt",
        ge=0,
    )

    retry_max_backoff_seconds: float = Field(
        default=8.0,
        description="Upper bound for a single retry delay",
        ge=0,
    )

    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Root URL of the Gemini REST API",
        min_length=1,
    )

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> "HarnessSettings":
        """Ensure the backoff ceiling is not below the base delay."""
        if self.retry_max_backoff_seconds < self.retry_backoff_seconds:
            raise ValueError(
                "retry_max_backoff_seconds must be >= retry_backoff_seconds"
            )
        return self
