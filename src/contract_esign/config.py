"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. Provider credentials are
optional at load time so that development tooling can start without them;
the signer refuses to sign when they are missing and production startup
fails fast (see main.lifespan).

Usage:
    from contract_esign.config import get_settings
    settings = get_settings()
    print(settings.esign_host)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the contract e-signature gateway."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Database (PostgreSQL) ---
    database_url: str = (
        "postgresql+asyncpg://esign:esign_dev"
        "@localhost:5432/contract_esign"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Provider credentials ---
    tencent_secret_id: str = ""
    tencent_secret_key: str = ""

    # --- Webhook authentication ---
    # Empty means "use tencent_secret_key".
    esign_callback_secret: str = ""
    esign_callback_tolerance_seconds: int = 300

    # --- Provider endpoint ---
    esign_host: str = "ess.tencentcloudapi.com"
    esign_service: str = "ess"
    esign_api_version: str = "2020-11-11"
    esign_region: str = ""
    esign_operator_id: str = ""
    esign_timeout_seconds: float = 15.0

    # --- Retry / rate limit ---
    esign_max_attempts: int = 4
    esign_backoff_base_seconds: float = 1.0
    esign_backoff_max_seconds: float = 10.0
    esign_rate_limit_per_second: int = 20

    # --- Signing flow ---
    party_a_org_name: str = "Party A Organization"
    party_a_signer_name: str = "Party A Signer"
    party_a_signer_mobile: str = ""
    sign_complete_jump_url: str = ""
    sign_url_default_ttl_seconds: int = 1800

    # --- Status sync ---
    cron_secret: str = ""
    sync_concurrency: int = 5

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def callback_secret(self) -> str:
        """Secret used to verify webhook HMACs."""
        return self.esign_callback_secret or self.tencent_secret_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
