"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Mosifra happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The API
      lifespan calls it exactly once at startup and hands the individual values
      (signing secret, store URLs) to the components that need them.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. A missing JWT_SECRET or REDIS_URL is a
      fatal startup condition, never a per-request error.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key makes offline brute-force of tokens feasible.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or users/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("mosifra.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    jwt_secret and redis_url have no usable default: the validator below
    refuses to build a Settings instance without them, so the process exits
    before serving a single request.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `jwt_secret` reads from JWT_SECRET, `redis_url` reads from REDIS_URL.
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
    log_level: str = "INFO"
    # Empty string is the sentinel for "not configured".
    jwt_secret: str = ""

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    redis_url: str = ""
    database_url: str = "sqlite:///mosifra.db"

    # ------------------------------------------------------------------
    # Admin principal (no stored row -- credentials live in configuration)
    # ------------------------------------------------------------------

    admin_login: str = "admin"
    # argon2 encoded hash; empty disables admin login entirely.
    admin_password_hash: str = ""
    admin_mail: str = ""

    # ------------------------------------------------------------------
    # Second factor
    # ------------------------------------------------------------------

    twofa_code_ttl_seconds: int = 600

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_required(self) -> "Settings":
        """Refuse to start without a signing secret or a session store endpoint.

        There is no debug-mode fallback for JWT_SECRET: a generated key would
        silently invalidate every issued token on restart, and sessions live in
        an external store that survives restarts.
        """
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET is required. Set JWT_SECRET in your environment or .env file.")
        if len(self.jwt_secret) < _MIN_SECRET_LENGTH:
            raise ValueError(f"JWT_SECRET must be at least {_MIN_SECRET_LENGTH} characters.")
        if not self.redis_url:
            raise ValueError("REDIS_URL is required. Set REDIS_URL in your environment or .env file.")
        if self.twofa_code_ttl_seconds <= 0:
            raise ValueError("TWOFA_CODE_TTL_SECONDS must be positive.")
        if not self.admin_password_hash:
            logger.info("ADMIN_PASSWORD_HASH not set -- admin login is disabled")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
