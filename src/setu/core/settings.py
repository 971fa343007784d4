"""
Centralized settings for setu.

One validated, cached settings object replaces ad-hoc ``os.environ``
lookups.  Each external collaborator gets its own block with its own
environment prefix, so existing ``BIGFIX_*`` / ``SMTP_*`` / ``SN_*``
variables keep working unchanged, while setu's own knobs live under
``SETU_*``.

Examples:
    >>> from setu.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.bigfix.base_url
    'https://bigfix.example.com:52311'
    >>> settings.smtp.ready
    True

Tags:
    setu-core, configuration, settings, pydantic, environment

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

#: Watcher ticks are never scheduled more often than this.
MIN_WATCHER_INTERVAL_SECONDS = 10.0


class BigFixSettings(BaseSettings):
    """Inventory, action submission and action status endpoints."""

    model_config = SettingsConfigDict(
        env_prefix="BIGFIX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    base_url: str = ""
    user: str = ""
    password: str = Field(
        default="",
        validation_alias=AliasChoices("BIGFIX_PASS", "BIGFIX_PASSWORD"),
    )
    allow_self_signed: bool = False
    timeout_seconds: float = 60.0

    @property
    def configured(self) -> bool:
        return bool(self.base_url)


class SmtpSettings(BaseSettings):
    """Mail delivery.  The channel is *ready* once host and sender are set."""

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = ""
    port: int = 587
    secure: bool = False  # implicit TLS (SMTPS)
    require_tls: bool = False  # STARTTLS
    allow_self_signed: bool = False
    user: str = ""
    password: str = ""
    from_address: str = Field(
        default="",
        validation_alias=AliasChoices("SMTP_FROM", "SMTP_FROM_ADDRESS"),
    )
    to: str = ""
    cc: str = ""
    bcc: str = ""
    timeout_seconds: float = 30.0

    @property
    def ready(self) -> bool:
        return bool(self.host and self.from_address)


class ServiceNowSettings(BaseSettings):
    """Change-ticket validation."""

    model_config = SettingsConfigDict(
        env_prefix="SN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = ""
    user: str = ""
    password: str = ""
    allow_self_signed: bool = False
    timeout_seconds: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.url and self.user and self.password)


class SetuSettings(BaseSettings):
    """setu configuration.

    All top-level fields can be set via ``SETU_*`` environment variables
    (e.g. ``SETU_RETENTION_DAYS=14``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="SETU_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: str = Field(
        default_factory=lambda: str(Path.home() / ".setu" / "setu.db"),
        description="SQLite file backing the durable action history",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = Field(default="auto", description="json | console | auto")

    # ── Trigger policy ───────────────────────────────────────────
    require_change_ticket: bool = True
    default_stage: str = "Sandbox"

    # ── Watcher ──────────────────────────────────────────────────
    post_notify_enabled: bool = False
    watcher_interval_seconds: float = 60.0
    retention_days: int = 30
    retention_interval_seconds: float = 3600.0
    watcher_claim_leases: bool = False
    lease_ttl_seconds: int = 300
    instance_id: str = ""

    # ── Collaborators ────────────────────────────────────────────
    bigfix: BigFixSettings = Field(default_factory=BigFixSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    servicenow: ServiceNowSettings = Field(default_factory=ServiceNowSettings)

    @property
    def effective_watcher_interval(self) -> float:
        """Configured interval with the minimum floor applied."""
        return max(MIN_WATCHER_INTERVAL_SECONDS, float(self.watcher_interval_seconds or 0))

    @property
    def json_logs(self) -> bool | None:
        fmt = self.log_format.lower()
        if fmt == "json":
            return True
        if fmt == "console":
            return False
        return None


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, SetuSettings] = {}


def get_settings(*, _force_reload: bool = False) -> SetuSettings:
    """Load, validate, and cache a :class:`SetuSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = SetuSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "MIN_WATCHER_INTERVAL_SECONDS",
    "BigFixSettings",
    "SmtpSettings",
    "ServiceNowSettings",
    "SetuSettings",
    "get_settings",
    "clear_settings_cache",
]
