"""Gatekeeper configuration — loaded from environment / .env file."""

from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="GATEKEEPER_", extra="ignore")

    env: str = "development"
    log_level: str = "INFO"
    database_url: str = "sqlite+aiosqlite:///./gatekeeper.db"

    # Approval workflow
    approval_required: bool = True  # force human approval for every update
    auto_approve_safe_updates: bool = True
    max_approval_time: int = 24 * 60 * 60 * 1000  # ms
    rollback_enabled: bool = True
    approvers: list[str] = []
    maintenance_windows: list[dict[str, Any]] = []  # seed schedule on first run

    # Notifications
    notification_channels: list[str] = ["log"]
    notification_webhook_url: str | None = None
    notification_timeout: float = 10.0

    # Update executor: "noop" records the stages, "command" runs shell commands
    executor: str = "noop"
    backup_command: str = ""
    update_command: str = ""
    verify_command: str = ""
    rollback_command: str = ""
    executor_timeout: float = 600.0

    # Background expiry sweep, seconds between runs (0 disables)
    expiry_sweep_interval: float = 0.0

    # PEM-encoded Ed25519 private key used to sign audit entries
    audit_signing_key: Path | None = None


settings = Settings()
