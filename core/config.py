"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for wwwbase happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, admin_password -> ADMIN_PASSWORD).

  @model_validator(mode="after"): SECRET_KEY policy. Dev mode generates a key
      with a warning, production mode refuses to start without one.

Notes:
  SECRET_KEY signs the session cookie (itsdangerous via Starlette's
  SessionMiddleware). The cookie carries the per-request token and pending
  flash messages, so a forged cookie must be rejected -- short keys are
  refused outright.

  ADMIN_PASSWORD is only used the first time the database is created, when
  the bootstrap administrator (id 1, nick "admin") is inserted.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/ or records/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("wwwbase.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'wwwbase.db'}"
_DEFAULT_ADMIN_PASSWORD = "admin"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    site_title: str = "Sample website"
    # JSON list in the environment, e.g. ALLOWED_HOSTS='["example.org"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_cookie: str = "www-base"
    session_max_age: int = 14 * 24 * 3600
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Bootstrap administrator
    # ------------------------------------------------------------------

    admin_password: str = _DEFAULT_ADMIN_PASSWORD

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Session cookies will not survive a restart -- neither do tokens,
            so nothing extra is lost.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def admin_password_is_default(self) -> bool:
        return self.admin_password == _DEFAULT_ADMIN_PASSWORD


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
