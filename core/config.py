"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the catalog API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). A few fields also accept the legacy
      names used by older deployments (DB_URI, NODE_ENV).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Development mode generates a signing secret with a
      warning; production mode refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key makes offline brute force of tokens feasible.

  Rotating JWT_SECRET invalidates every outstanding token. There is no
  revocation list, so rotation is the only way to force a global logout.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, catalog/, or realtime/.
"""

import logging
import re
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("catalog.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'catalog.db'}"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: str | int) -> int:
    """Convert '7d', '12h', '30m', '45s' or a bare number of seconds to seconds.

    Raises ValueError for anything else, including zero or negative values.
    """
    if isinstance(value, bool):
        raise ValueError("duration must be a number of seconds or a string like '7d'")
    if isinstance(value, int):
        seconds = value
    else:
        match = _DURATION_RE.match(str(value).lower())
        if match is None:
            raise ValueError(f"Unrecognised duration {value!r}. Use e.g. 3600, '30m', '12h', '7d'.")
        seconds = int(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ValueError("duration must be positive")
    return seconds


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)
    app_env: Literal["development", "production"] = Field(
        default="production",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV"),
    )
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = Field(
        default=_DEFAULT_DB_URL,
        validation_alias=AliasChoices("DATABASE_URL", "DB_URI"),
    )

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    # Seconds. Accepts "7d"-style strings through parse_duration().
    jwt_expires_in: int = 7 * 24 * 3600
    # bcrypt cost factor. 12 is ~250ms on commodity hardware; tests drop to 4.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    # When false, a client-supplied role on /register is validated then ignored.
    allow_registration_role: bool = False

    # ------------------------------------------------------------------
    # Real-time notifications
    # ------------------------------------------------------------------

    realtime_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_app_env(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("jwt_expires_in", mode="before")
    @classmethod
    def parse_jwt_expires_in(cls, value):
        return parse_duration(value)

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Development mode: auto-generate a random key with a warning. Tokens
            will not survive a restart -- acceptable for local work.

        Production mode: refuse to start if JWT_SECRET is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.is_development:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated JWT_SECRET. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set APP_ENV=development."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
