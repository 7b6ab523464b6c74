"""Operator settings.

All fields can be set via ``ALERTSYNC_*`` environment variables or a ``.env``
file. The admin key is also read from ``NEWRELIC_ADMIN_KEY``.

Settings are built per process by :func:`load_settings` and handed to the
components that need them; nothing reads them from a module global.

Tags:
    alertsync, configuration, settings, pydantic
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from alertsync.core.errors import MissingConfigError


class OperatorSettings(BaseSettings):
    """Configuration for the reconciler process."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── New Relic ────────────────────────────────────────────────
    newrelic_api_url: str = Field(default="https://api.newrelic.com/v2")
    newrelic_infra_api_url: str = Field(default="https://infra-api.newrelic.com/v2")
    newrelic_admin_key: str = Field(
        default="",
        validation_alias=AliasChoices("ALERTSYNC_NEWRELIC_ADMIN_KEY", "NEWRELIC_ADMIN_KEY"),
    )
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    # ── Workers ──────────────────────────────────────────────────
    workers: int = Field(default=2, ge=1)
    poll_interval_seconds: float = Field(default=2.0, gt=0)
    resync_seconds: float = Field(default=0.0, ge=0, description="0 disables periodic resync")

    # ── Conflict retry ───────────────────────────────────────────
    conflict_max_retries: int = Field(default=5, ge=0)
    conflict_base_delay: float = Field(default=0.05, ge=0)
    conflict_max_delay: float = Field(default=2.0, ge=0)

    # ── Requeue backoff ──────────────────────────────────────────
    requeue_base_delay: float = Field(default=1.0, ge=0)
    requeue_max_delay: float = Field(default=300.0, ge=0)

    # ── Storage ──────────────────────────────────────────────────
    store_path: Path = Field(default_factory=lambda: Path.home() / ".alertsync" / "resources.db")

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")

    def require_admin_key(self) -> str:
        """Return the admin key or raise :class:`MissingConfigError`."""
        if not self.newrelic_admin_key:
            raise MissingConfigError(
                "newrelic_admin_key",
                "Missing New Relic admin key: set NEWRELIC_ADMIN_KEY or ALERTSYNC_NEWRELIC_ADMIN_KEY",
            )
        return self.newrelic_admin_key


def load_settings(**overrides: Any) -> OperatorSettings:
    """Build a fresh :class:`OperatorSettings`, applying keyword overrides."""
    values = {key: value for key, value in overrides.items() if value is not None}
    return OperatorSettings(**values)
