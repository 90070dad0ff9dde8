"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Gatehouse happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. csrf_secret -> CSRF_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Enforces the SECRET_KEY policy and the
      cookie / local-storage transport rule.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. It seeds the CSRF
  secret when CSRF_SECRET is left empty, so its entropy matters.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a
  hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatehouse.config")


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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    log_level: str = "INFO"
    database_url: str = "sqlite:///gatehouse.db"
    # Deadline handed to collaborators doing I/O on behalf of one request.
    request_timeout_seconds: float = 30.0

    # ------------------------------------------------------------------
    # Auth flows
    # ------------------------------------------------------------------

    auth_endpoint: str = "/auth"
    redirect_on_success: str = "/"
    auth_strategy: Literal["password", "passwordless"] = "password"
    enable_registration: bool = True
    # Password strategy only: stage registrations behind an emailed code.
    enable_verification: bool = False
    code_ttl_seconds: int = 3600
    reset_ttl_seconds: int = 3600

    # ------------------------------------------------------------------
    # Token transport
    # ------------------------------------------------------------------

    use_cookies: bool = True
    use_local_storage: bool = False
    cookie_name: str = "authtoken"
    secure_cookies: bool = False
    session_expire_seconds: int = 2 * 60 * 60

    # ------------------------------------------------------------------
    # Password policy
    # ------------------------------------------------------------------

    password_min_length: int = 8
    password_require_uppercase: bool = True
    password_require_lowercase: bool = True
    password_require_digit: bool = True
    password_require_special: bool = True
    password_forbid_common_words: bool = True

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    # Disabling also switches verification codes to the hardened format.
    disable_rate_limit: bool = False
    max_login_attempts: int = 5
    rate_limit_window_seconds: int = 15 * 60
    lockout_seconds: int = 15 * 60
    rate_limit_storage_uri: str = "memory://"
    # Coarse per-IP throttle applied by slowapi to every auth route.
    request_rate_limit: str = "120/minute"

    # ------------------------------------------------------------------
    # CSRF
    # ------------------------------------------------------------------

    enable_csrf: bool = False
    csrf_secret: str = ""

    # ------------------------------------------------------------------
    # Email (SMTP disabled when smtp_host is empty -- emails are logged)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_from: str = "no-reply@localhost"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
        Production mode: refuse to start if SECRET_KEY is missing.
        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. CSRF tokens will not survive restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_transport(self) -> "Settings":
        """Exactly one token transport must be selected."""
        if self.use_cookies and self.use_local_storage:
            raise ValueError("USE_COOKIES and USE_LOCAL_STORAGE cannot be both true.")
        if not self.use_cookies and not self.use_local_storage:
            raise ValueError("USE_COOKIES and USE_LOCAL_STORAGE cannot be both false.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
