"""Configuration via pydantic-settings with .env support."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gmail_archiver.core.exceptions import ConfigurationError


class GmailArchiverSettings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="ARCHIVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Accounts
    source_email: str | None = None
    archive_email: str | None = None

    # Credentials
    auth_mode: Literal["service_account", "oauth"] = "service_account"
    credentials_path: Path | None = None
    client_secret_path: Path = Path("credentials/client_secret.json")
    token_dir: Path = Path("credentials/tokens")

    # Transfer behaviour
    dry_run: bool = False
    max_results_per_page: int = 100
    exclude_trash_and_spam: bool = True

    # Rate limiting & retry
    requests_per_second: float = Field(default=2.0, gt=0)
    max_retries: int = Field(default=5, ge=0)
    backoff_base_seconds: float = 1.0
    backoff_jitter_seconds: float = 1.0
    num_retries: int = 0

    # Deduplication database
    dedup_enabled: bool = True
    database_path: Path = Path("data/gmail_archiver.db")

    # Logging
    log_level: str = "INFO"

    def require_accounts(self) -> tuple[str, str]:
        """Return (source, archive) account addresses or fail fast.

        Raises:
            ConfigurationError: If either address is missing.
        """
        missing = [
            name
            for name, value in (
                ("ARCHIVER_SOURCE_EMAIL", self.source_email),
                ("ARCHIVER_ARCHIVE_EMAIL", self.archive_email),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}"
            )
        return self.source_email, self.archive_email  # type: ignore[return-value]

    def ensure_directories(self) -> None:
        """Create data and token directories if they don't exist."""
        if self.dedup_enabled:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        if self.auth_mode == "oauth":
            self.token_dir.mkdir(parents=True, exist_ok=True)
