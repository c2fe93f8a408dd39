"""Application settings loaded from environment / .env file."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ───────────────────────────────────────────
    data_dir: Path = Path("data")
    registry_url: str = ""  # defaults to a SQLite file under data_dir/_registry

    # ── Redis (background jobs) ───────────────────────────
    redis_url: str = "redis://redis:6379/0"

    # ── Tenancy ───────────────────────────────────────────
    base_domain: str = "localhost"
    default_tenant: str | None = "default"  # used for hosts outside base_domain
    deployment_mode: Literal["selfhosted", "cloudhost"] = "selfhosted"
    allow_auto_provision: bool = False
    trial_days: int = 14

    # ── Sessions ──────────────────────────────────────────
    session_secret: str = "change-me-in-production"
    session_cookie_domain: str | None = None  # host-only cookie when unset
    session_max_age: int = 7 * 24 * 60 * 60
    session_https_only: bool = False

    # ── Admin ─────────────────────────────────────────────
    admin_token: str = ""  # admin API disabled when empty

    # ── Billing (Stripe) ──────────────────────────────────
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_price_id: str = ""

    # ── Logging ───────────────────────────────────────────
    log_level: str = "INFO"

    @property
    def enforce_trials(self) -> bool:
        """Self-hosted installs never lock a tenant out."""
        return self.deployment_mode == "cloudhost"

    @property
    def resolved_registry_url(self) -> str:
        if self.registry_url:
            return self.registry_url
        return f"sqlite+aiosqlite:///{self.data_dir / '_registry' / 'registry.db'}"

    @property
    def billing_enabled(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_webhook_secret)


@lru_cache
def get_settings() -> Settings:
    return Settings()
