"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for CampusAuth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_private_key -> JWT_PRIVATE_KEY). Type coercion and validation
      are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used to implement the DEBUG-conditional
      signing key policy: dev mode falls back to an ephemeral keypair with a
      warning, production mode refuses to start without one.

Security notes:
  [K1] The signing keypair is supplied as opaque startup configuration. Either
       both halves are configured or neither; a lone private or public key is
       a hard startup failure.

  [K2] In production mode (DEBUG not set or false), missing keys are a hard
       startup failure. An ephemeral keypair would silently invalidate every
       outstanding token on restart and break verification on other replicas.

  Key *parsing* happens in auth/keys.py when the app starts, so malformed PEM
  or base64 material also fails at startup, never per request.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("campusauth.config")


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
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    service_name: str = "campusauth"
    # Empty string means "use the bundled SQLite file" (see auth/store.py).
    database_url: str = ""
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # PEM text, or base64-encoded DER (PKCS#8 private / SubjectPublicKeyInfo
    # public). Empty string is the sentinel for "not configured".
    jwt_private_key: str = ""
    jwt_public_key: str = ""
    token_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Passwords and login
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    login_rate_limit: str = "10/minute"
    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # Identity events (empty string = log-only publisher)
    # ------------------------------------------------------------------

    events_webhook_url: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_settings(self) -> "Settings":
        """Enforce the signing key policy [K1][K2] and sane token lifetimes."""
        if bool(self.jwt_private_key) != bool(self.jwt_public_key):
            raise ValueError("JWT_PRIVATE_KEY and JWT_PUBLIC_KEY must be configured together.")
        if not self.jwt_private_key:
            if self.debug:
                logger.warning(
                    "WARNING: No signing keypair configured. An ephemeral RSA keypair will be "
                    "generated; tokens will not survive a restart."
                )
            else:
                raise ValueError(
                    "JWT_PRIVATE_KEY and JWT_PUBLIC_KEY are required in production mode. "
                    "Generate a pair with `python main.py keygen`. "
                    "To run in development mode, set DEBUG=true."
                )
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be a positive number of seconds.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
