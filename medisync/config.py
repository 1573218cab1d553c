"""
Application Configuration.

Pydantic Settings model for the MediSync portal core.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase (identity provider + doctor directory) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Redirect targets for provider-driven flows ---
    SITE_URL: str = "http://localhost:3000"
    OAUTH_REDIRECT_PATH: str = "/"
    PASSWORD_RESET_REDIRECT_PATH: str = "/reset-password"

    # --- Local storage ---
    LOCAL_DB_PATH: str = "medisync_local.db"
    APPOINTMENTS_STORAGE_KEY: str = "medisync_appointments"

    # --- Booking ---
    APPOINTMENT_TIME_SLOTS: list[str] = Field(default_factory=lambda: [
        "09:00 AM",
        "10:00 AM",
        "11:00 AM",
        "02:00 PM",
        "03:00 PM",
        "04:00 PM",
    ])

    # --- Auth form policy ---
    MIN_PASSWORD_LENGTH: int = 6

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "medisync.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get a log line telling them the portal is running
        without an identity provider.
        """
        _log = logging.getLogger("medisync.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty; authentication is disabled and the "
                "doctor directory runs from the local mirror only."
            )

        return self

    # --- Derived URLs ---
    @property
    def oauth_redirect_url(self) -> str:
        """Absolute URL the provider redirects to after an OAuth sign-in."""
        return self.SITE_URL.rstrip("/") + self.OAUTH_REDIRECT_PATH

    @property
    def password_reset_redirect_url(self) -> str:
        """Absolute URL embedded in password-reset emails."""
        return self.SITE_URL.rstrip("/") + self.PASSWORD_RESET_REDIRECT_PATH


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern to avoid the lock overhead on the fast path while remaining
    thread-safe during first initialisation.

    Prefer constructor injection of ``AppConfig``; this factory exists for
    the logger, which cannot receive the config by injection.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
