"""
auth/verification.py -- Verification engine (Unverified -> Verified).

States per account: Unverified, Verified. Verified is terminal.

Issue:
  A fresh 6-digit code and a 64-hex link token, expiring after the configured
  TTL. Arming overwrites the previous pair in the same UPDATE, so at most one
  code is live. Arming a verified account is a no-op reported as "already
  verified".

Validate (code or link token), checked in this order:
  1. No account                -> AccountNotFound
  2. Already verified          -> success, no-op (idempotent)
  3. Value does not match      -> InvalidCode
  4. now > code_expires_at     -> CodeExpired, and the stale pair is purged
  5. Conditional UPDATE wins   -> Verified, then the orchestrator syncs
     Conditional UPDATE loses  -> re-read: verified by a concurrent request
                                  -> "already verified"; otherwise InvalidCode

Identity provider sync failures after step 5 propagate (the account stays
verified in the credential store and the next login repairs the mirror).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from auth.models import UserRecord
from auth.store import UserStore, parse_iso, utc_now
from auth.tokens import code_expiry, generate_verification_code, generate_verification_token, secrets_match
from core.errors import AccountNotFound, CodeExpired, InvalidCode
from identity.sync import SyncOrchestrator, SyncResult

logger = logging.getLogger("scholarship.auth")


@dataclass(frozen=True)
class IssuedCode:
    code: str
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class VerificationOutcome:
    record: UserRecord
    already_verified: bool
    sync: Optional[SyncResult] = None


class VerificationEngine:
    def __init__(
        self,
        store: UserStore,
        orchestrator: SyncOrchestrator,
        ttl_minutes: int,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._ttl_minutes = ttl_minutes
        self._clock = clock

    @property
    def ttl_minutes(self) -> int:
        return self._ttl_minutes

    def new_code(self) -> IssuedCode:
        """Mint a code/token pair without storing it (registration embeds it in the new record)."""
        return IssuedCode(
            code=generate_verification_code(),
            token=generate_verification_token(),
            expires_at=code_expiry(self._clock(), self._ttl_minutes),
        )

    def issue(self, email: str) -> Optional[IssuedCode]:
        """Arm a fresh code for an existing account.

        Returns None if the account is already verified. Raises AccountNotFound
        if there is no account.
        """
        record = self._store.find_by_email(email)
        if record is None:
            raise AccountNotFound()
        if record.is_verified:
            return None
        issued = self.new_code()
        if not self._store.update_verification(email, issued.code, issued.token, issued.expires_at):
            # Verified (or deleted) between the read and the update.
            if self._store.find_by_email(email) is None:
                raise AccountNotFound()
            return None
        logger.info("Issued verification code for %s", email)
        return issued

    def submit_code(self, email: str, code: str) -> VerificationOutcome:
        return self._validate(
            email,
            code,
            stored=lambda r: r.verification_code,
            consume=self._store.consume_code,
            invalid=InvalidCode(),
        )

    def verify_by_token(self, token: str, email: str) -> VerificationOutcome:
        return self._validate(
            email,
            token,
            stored=lambda r: r.verification_token,
            consume=self._store.consume_token,
            invalid=InvalidCode("Verification failed. Invalid or expired link."),
        )

    def _validate(
        self,
        email: str,
        submitted: str,
        stored: Callable[[UserRecord], Optional[str]],
        consume: Callable[[str, str, datetime], bool],
        invalid: InvalidCode,
    ) -> VerificationOutcome:
        now = self._clock()
        record = self._store.find_by_email(email)
        if record is None:
            raise AccountNotFound()
        if record.is_verified:
            return VerificationOutcome(record=record, already_verified=True)

        if not secrets_match(submitted, stored(record)):
            logger.warning("Rejected verification attempt for %s: mismatch", email)
            raise invalid

        if record.code_expires_at and now > parse_iso(record.code_expires_at):
            self._store.purge_expired_code(email, now)
            logger.warning("Rejected verification attempt for %s: expired, code purged", email)
            raise CodeExpired()

        if not consume(email, submitted, now):
            current = self._store.find_by_email(email)
            if current is None:
                raise AccountNotFound()
            if current.is_verified:
                return VerificationOutcome(record=current, already_verified=True)
            raise invalid

        verified = self._store.find_by_email(email)
        if verified is None:
            # Deleted by an operator between the UPDATE and this read.
            raise AccountNotFound()
        logger.info("Account verified: %s", email)
        result = self._orchestrator.sync(verified)
        return VerificationOutcome(record=verified, already_verified=False, sync=result)
