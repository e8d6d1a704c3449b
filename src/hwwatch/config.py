"""
Configuration for hwwatch.

Settings are read from HWWATCH_* environment variables and can be
overridden on the command line.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hwwatch.models import Category
from hwwatch.sinks import DEFAULT_LOG_FILE


def parse_categories(value: str) -> tuple[Category, ...]:
    """
    Parse a comma separated category list ('usb,network' or 'all').

    Raises:
        ValueError: For an unknown category name or an empty list.
    """
    names = [name.strip().lower() for name in value.split(",") if name.strip()]
    if not names:
        raise ValueError("at least one category must be enabled")
    if "all" in names:
        return tuple(Category)

    known = {c.value: c for c in Category}
    unknown = [name for name in names if name not in known]
    if unknown:
        choices = ", ".join(known)
        raise ValueError(f"unknown categories: {', '.join(unknown)} (choose from {choices})")
    selected = {known[name] for name in names}
    return tuple(c for c in Category if c in selected)


class MonitorSettings(BaseSettings):
    """Polling, collection and delivery settings."""

    model_config = SettingsConfigDict(env_prefix="HWWATCH_", extra="ignore")

    interval: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between hardware checks",
    )
    collector_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound on a single collection (seconds)",
    )
    categories: str = Field(
        default="all",
        description="Comma separated categories to watch, or 'all'",
    )
    log_file: Optional[Path] = Field(
        default=DEFAULT_LOG_FILE,
        description="Plain-text log file; empty disables it",
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving every entry; unset disables it",
    )
    webhook_timeout: float = Field(default=10.0, gt=0)
    webhook_retries: int = Field(default=1, ge=1, description="POST attempts per entry")
    console: bool = Field(default=True, description="Print entries to stdout")
    log_level: str = Field(default="INFO", description="Diagnostics log level")

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v: str) -> str:
        """Reject unknown category names early."""
        parse_categories(v)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {v}")
        return level

    @field_validator("log_file", mode="before")
    @classmethod
    def empty_log_file(cls, v):
        if v == "":
            return None
        return v

    @field_validator("webhook_url")
    @classmethod
    def empty_webhook(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def enabled_categories(self) -> tuple[Category, ...]:
        """Enabled categories in evaluation order."""
        return parse_categories(self.categories)


def get_settings(**overrides) -> MonitorSettings:
    """Load settings from the environment, applying non-None overrides."""
    return MonitorSettings(**{k: v for k, v in overrides.items() if v is not None})
