"""Runtime settings — env-driven via pydantic-settings.

Reads from a ``.env`` file and ``HERALD_*`` environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class HeraldSettings(BaseSettings):
    """Runtime settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export HERALD_ENVIRONMENT=staging
        export HERALD_LOG_LEVEL=DEBUG
        export HERALD_LOG_DB_PATH=/data/messages.db

    Or via .env file::

        HERALD_SUPPORT_EMAIL=help@example.com
        HERALD_SWEEP_INTERVAL_SECONDS=120
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HERALD_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage
    log_db_path: Path = Path(".herald/messages.db")
    catalog_path: Path | None = None  # JSON catalog; built-in demo data when unset

    # Escalation sweep cadence
    sweep_interval_seconds: int = 300

    # Template variables available to every message
    support_email: str = "support@company.com"
    support_phone: str = "0800 123 4567"
    deadline_days: int = 7

    # Sender defaults
    default_sender_address: str = "noreply@company.com"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# Module-level singleton; import as `from herald.config import settings`
settings = HeraldSettings()
