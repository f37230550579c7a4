"""
Application Configuration.

Pydantic Settings model for PresenceGate.  All configuration is loaded
from environment variables and ``.env`` files.  Inject an ``AppConfig``
instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, SecretStr, model_validator


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase (remote auth) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Federated sign-in ---
    OAUTH_REDIRECT_URL: str = "http://localhost:3000/auth/callback"
    FACEBOOK_SCOPES: list[str] = Field(default_factory=lambda: [
        "email",
        "public_profile",
        "user_friends",
    ])

    # --- Realtime store layout ---
    USERS_PATH: str = "users"
    USERS_EMAILS_PATH: str = "users-emails"
    USERS_PRESENCE_PATH: str = "users-presence"
    CONNECTED_PATH: str = ".info/connected"
    LOCAL_STORE_PATH: str = "presencegate_local.db"

    # --- Credential validation ---
    MIN_PASSWORD_LENGTH: int = 6

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "presencegate.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    # --- Connectivity probe ---
    CONNECTIVITY_PROBE_INTERVAL_S: float = 5.0
    CONNECTIVITY_PROBE_TIMEOUT_S: float = 3.0

    # --- Background actions ---
    ACTION_WORKERS: int = 4

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get a log line instead of a silent offline session.
        """
        _log = logging.getLogger("presencegate.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found: all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty: remote authentication is disabled. "
                "Only the local realtime store will be available."
            )

        return self

    @property
    def federated_scopes(self) -> dict[str, tuple[str, ...]]:
        """Permission scopes requested per federated provider name."""
        return {"facebook": tuple(self.FACEBOOK_SCOPES)}


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

    Prefer direct constructor injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
