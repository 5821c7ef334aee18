"""
Application Configuration.

Pydantic Settings model for the CityReport core.  All configuration is
loaded from environment variables and ``.env`` files.  Inject an
``AppConfig`` instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings

from cityreport.errors import ConfigError


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase (remote mirror, optional) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Local store ---
    LOCAL_DB_PATH: str = "cityreport_local.db"

    # --- Sessions ---
    SESSION_ABSOLUTE_TTL_S: int = Field(default=8 * 60 * 60, gt=0)
    SESSION_INACTIVITY_TTL_S: int = Field(default=2 * 60 * 60, gt=0)

    # --- Authentication policy ---
    MAX_LOGIN_ATTEMPTS: int = Field(default=3, ge=1)
    LOCKOUT_DURATION_S: int = Field(default=30 * 60, gt=0)
    PASSWORD_MIN_LENGTH: int = Field(default=12, ge=8)
    SIGNIN_MIN_PASSWORD_LENGTH: int = Field(default=4, ge=1)
    PASSWORD_HASH_ITERATIONS: int = Field(default=600_000, ge=1)
    COMMON_PASSWORDS: list[str] = Field(default_factory=lambda: [
        "password123",
        "admin123",
        "cityreport123",
    ])

    # --- Remote sync ---
    SYNC_TIMEOUT_S: int = Field(default=5, gt=0)
    SYNC_OUTBOX_ENABLED: bool = False
    SYNC_BASE_INTERVAL_S: float = 30.0
    SYNC_MAX_INTERVAL_S: float = 300.0

    # --- Polling loops (seconds) ---
    REPORT_REFRESH_INTERVAL_S: float = 5.0
    MAP_REFRESH_INTERVAL_S: float = 30.0
    HISTORY_REFRESH_INTERVAL_S: float = 10.0
    ALERT_CHECK_INTERVAL_S: float = 30.0

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "cityreport.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when the remote mirror is not configured."""
        _log = logging.getLogger("cityreport.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty: remote sync is disabled. "
                "The app will operate in local-only mode."
            )

        if self.SESSION_INACTIVITY_TTL_S > self.SESSION_ABSOLUTE_TTL_S:
            _log.warning(
                "SESSION_INACTIVITY_TTL_S (%d) exceeds SESSION_ABSOLUTE_TTL_S "
                "(%d); the inactivity window will never trigger first.",
                self.SESSION_INACTIVITY_TTL_S,
                self.SESSION_ABSOLUTE_TTL_S,
            )

        return self

    # --- Remote Validation ---
    def validate_remote_config(self) -> None:
        """Check that the remote base URL and key are well-formed.

        Only the shape is checked: an ``https`` URL with a host and a
        non-empty key.  The values are otherwise opaque.

        Raises:
            ConfigError: If either value is malformed or missing.
        """
        parsed = urlparse(self.SUPABASE_URL.strip())
        if parsed.scheme != "https" or not parsed.netloc:
            raise ConfigError("SUPABASE_URL must be an https:// URL")
        if not self.SUPABASE_ANON_KEY.get_secret_value().strip():
            raise ConfigError("SUPABASE_ANON_KEY must be set")

    @property
    def remote_enabled(self) -> bool:
        """``True`` when the remote configuration passes validation."""
        try:
            self.validate_remote_config()
        except ConfigError:
            return False
        return True


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path skips the lock.
    Prefer constructor injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
