"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the scholarship portal happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. admin_api_key -> ADMIN_API_KEY). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used for the DEBUG-conditional
      ADMIN_API_KEY logic: dev mode generates a key with a warning, production
      mode refuses to start without one.

Security notes:
  ADMIN_API_KEY shorter than 32 chars is rejected outright. The admin
       endpoints can delete accounts from three stores.

  In production mode (DEBUG not set or false), a missing ADMIN_API_KEY is
       a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, identity/, notify/ or applications/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("scholarship.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'scholarship_portal.db'}"


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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    admin_api_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    public_url: str = "http://localhost:8000"

    # ------------------------------------------------------------------
    # Identity provider / profile mirror / object storage (Firebase)
    # ------------------------------------------------------------------

    # Service account JSON as a string (container deployments) or a path to the
    # JSON file. Neither set -> Application Default Credentials.
    firebase_service_account: str = ""
    firebase_credentials_file: str = ""
    firebase_project_id: str = ""
    firebase_storage_bucket: str = ""
    profile_collection: str = "students"
    # Older deployments wrote a second profile collection. Deleted on admin
    # delete, never written.
    legacy_profile_collections: list[str] = ["student_profiles"]
    # Applied to every outbound call (identity provider, mirror, storage, mail).
    external_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10
    # Drives both the enforced expiry and the lifetime printed in the email.
    verification_code_ttl_minutes: int = 15

    # ------------------------------------------------------------------
    # Mail (SendGrid v3 API). Empty key -> mail is logged, not sent.
    # ------------------------------------------------------------------

    sendgrid_api_key: str = ""
    mail_from: str = "noreply@scholarship-portal.local"
    mail_from_name: str = "Scholarship Portal"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    max_upload_bytes: int = 5 * 1024 * 1024

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"
    verify_rate_limit: str = "10/minute"
    resend_rate_limit: str = "3/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_admin_api_key(self) -> "Settings":
        """Enforce ADMIN_API_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            The key is logged nowhere; use a fixed key in .env for local admin work.

        Production mode (DEBUG=false or not set): refuse to start if
            ADMIN_API_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.admin_api_key:
            if self.debug:
                self.admin_api_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated ADMIN_API_KEY. Admin endpoints are effectively locked.")
            else:
                raise ValueError(
                    "ADMIN_API_KEY is required in production mode. "
                    "Set ADMIN_API_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.admin_api_key) < 32:
            raise ValueError("ADMIN_API_KEY must be at least 32 characters.")
        if self.verification_code_ttl_minutes < 1:
            raise ValueError("VERIFICATION_CODE_TTL_MINUTES must be at least 1.")
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
