"""
auth/tokens.py -- Password hashing, verification secrets, and admin key checks.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). The work factor comes from
       Settings.bcrypt_rounds. The _DUMMY_HASH constant enables timing
       equalization on login so response time does not reveal whether an
       email exists.

  Verification code: 6 digits drawn uniformly from 100000-999999 with the
       `secrets` CSPRNG. Short enough to type, only valid for the configured TTL.

  Verification token: secrets.token_hex(32) -- 256 bits, used in one-click
       email links. Compared in constant time.

  Admin key: the X-Admin-Key header is compared to Settings.admin_api_key
       with hmac.compare_digest.

Layer rule: no imports from api/, web/, identity/, notify/ or applications/.
Import from core/ is allowed -- core/ is the kernel.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta

import bcrypt

from core.config import get_settings

logger = logging.getLogger("scholarship.auth")

_CODE_MIN = 100000
_CODE_MAX = 999999


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

# bcrypt input limit, counted in UTF-8 bytes (not characters).
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects input longer than MAX_PASSWORD_BYTES UTF-8 bytes; callers
    check password_too_long() first.
    """
    work_factor = rounds or get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=work_factor)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if password_too_long(plain):
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store; treat as a mismatch.
        return False


# Timing equalization dummy hash.
# Computed once at module load. Login runs verify_password() against it when
# the email does not exist so both branches pay the bcrypt cost.
_DUMMY_HASH: str = hash_password("scholarship_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a throwaway bcrypt comparison so a missing account costs the same as a wrong password."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Verification secrets
# ---------------------------------------------------------------------------


def generate_verification_code() -> str:
    """Return a 6-digit numeric code, uniform over 100000-999999."""
    return str(_CODE_MIN + secrets.randbelow(_CODE_MAX - _CODE_MIN + 1))


def generate_verification_token() -> str:
    """Return 32 random bytes as 64 hex characters for link-based verification."""
    return secrets.token_hex(32)


def code_expiry(now: datetime, ttl_minutes: int | None = None) -> datetime:
    minutes = ttl_minutes or get_settings().verification_code_ttl_minutes
    return now + timedelta(minutes=minutes)


def secrets_match(submitted: str | None, stored: str | None) -> bool:
    """Constant-time comparison that treats a missing side as a mismatch."""
    if not submitted or not stored:
        return False
    return hmac.compare_digest(submitted.encode("utf-8"), stored.encode("utf-8"))


# ---------------------------------------------------------------------------
# Admin key
# ---------------------------------------------------------------------------


def is_admin_key(raw_key: str, expected: str | None = None) -> bool:
    """Return True if raw_key equals `expected` (default: the configured ADMIN_API_KEY)."""
    expected = expected if expected is not None else get_settings().admin_api_key
    return secrets_match(raw_key, expected)
