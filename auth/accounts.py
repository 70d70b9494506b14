"""
auth/accounts.py -- Account flows: register, login, resend, delete, resync, profile update.

Each flow is the place where store-layer and identity errors are translated
into the core.errors taxonomy. Routes and the CLI call these methods and map
PortalError to their own output; they never touch the stores directly for a
state transition.

Policies:
  Mail failure on register: the account is kept and the caller is told
      (email_sent=False) so the student can use "resend code". A transient
      mail outage must not silently delete a fresh account.
  Login order: unknown email -> InvalidCredentials; unverified -> NotVerified
      (the password is not checked, so the response does not reveal whether it
      was right); wrong password -> InvalidCredentials; then sync and mint.
  Registration sync: best-effort reservation of the join key at the identity
      provider. Verification and login re-run it and treat failure as fatal.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from auth.models import UserRecord
from auth.store import DuplicateKey, UserStore, to_iso
from auth.tokens import (
    MAX_PASSWORD_BYTES,
    burn_password_check,
    hash_password,
    password_too_long,
    verify_password,
)
from auth.verification import IssuedCode, VerificationEngine, VerificationOutcome
from core.errors import (
    AccountNotFound,
    DuplicateIdentity,
    IdentityProviderConflict,
    IdentitySyncFailed,
    InvalidCredentials,
    MailDeliveryFailed,
    NotVerified,
    PortalError,
    ValidationFailed,
)
from identity.session import SessionIssuer
from identity.sync import SyncOrchestrator, SyncResult
from notify.emails import render_verification_email, verification_link
from notify.mailer import Mailer

logger = logging.getLogger("scholarship.auth")

_DUPLICATE_MESSAGES = {
    "email": "This email is already registered. Please log in.",
    "student_no": "Student Number already registered. Please check your Student Number or log in.",
}


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class RegistrationResult:
    record: UserRecord
    email_sent: bool


@dataclass(frozen=True)
class LoginResult:
    record: UserRecord
    token: str


@dataclass(frozen=True)
class DeletionReport:
    credential_deleted: bool
    identity_deleted: bool
    mirror_deleted: bool

    @property
    def anything_deleted(self) -> bool:
        return self.credential_deleted or self.identity_deleted


class AccountService:
    def __init__(
        self,
        store: UserStore,
        engine: VerificationEngine,
        orchestrator: SyncOrchestrator,
        issuer: SessionIssuer,
        mailer: Mailer,
        public_url: str,
        bcrypt_rounds: Optional[int] = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._orchestrator = orchestrator
        self._issuer = issuer
        self._mailer = mailer
        self._public_url = public_url
        self._bcrypt_rounds = bcrypt_rounds

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        student_no: Optional[str] = None,
        middle_initial: Optional[str] = None,
        course: Optional[str] = None,
        year_level: Optional[str] = None,
    ) -> RegistrationResult:
        email = normalize_email(email)
        student_no = (student_no or "").strip() or None
        if not email or not password:
            raise ValidationFailed("Email and password are required.")
        if password_too_long(password):
            raise ValidationFailed(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

        if self._store.find_by_email(email) is not None:
            raise DuplicateIdentity("email", _DUPLICATE_MESSAGES["email"])
        if student_no is not None:
            if self._store.find_by_student_no(student_no) is not None:
                logger.warning("Blocked registration: student number %s already registered", student_no)
                raise DuplicateIdentity("student_no", _DUPLICATE_MESSAGES["student_no"])
        else:
            student_no = uuid.uuid4().hex

        issued = self._engine.new_code()
        record = UserRecord(
            student_no=student_no,
            email=email,
            hashed_password=hash_password(password, self._bcrypt_rounds),
            first_name=(first_name or "").strip(),
            middle_initial=middle_initial,
            last_name=(last_name or "").strip(),
            course=course,
            year_level=year_level,
            verification_code=issued.code,
            verification_token=issued.token,
            code_expires_at=to_iso(issued.expires_at),
        )

        try:
            self._store.insert(record)
        except DuplicateKey as exc:
            # Lost a race with a concurrent registration; the constraint decides.
            message = _DUPLICATE_MESSAGES.get(exc.field)
            raise DuplicateIdentity(exc.field, message) from exc

        try:
            self._orchestrator.sync(record)
        except (IdentityProviderConflict, IdentitySyncFailed) as exc:
            logger.warning("Join key reservation deferred for %s (%s); login will retry", student_no, exc.code)

        email_sent = self._send_verification(email, issued)
        if email_sent:
            logger.info("User registered (pending verification): %s", email)
        else:
            logger.error("Verification email failed for %s; account kept, student can request a resend", email)
        return RegistrationResult(record=record, email_sent=email_sent)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def submit_code(self, email: str, code: str) -> VerificationOutcome:
        email = normalize_email(email)
        if not email or not code:
            raise ValidationFailed("Email and verification code are required.")
        return self._engine.submit_code(email, code.strip())

    def verify_by_token(self, token: str, email: str) -> VerificationOutcome:
        email = normalize_email(email)
        if not email or not token:
            raise ValidationFailed("Verification failed. Missing token or email.")
        return self._engine.verify_by_token(token.strip(), email)

    def resend_code(self, email: str) -> bool:
        """Arm and mail a fresh code. Returns False if the account is already verified."""
        email = normalize_email(email)
        if not email:
            raise ValidationFailed("Email is required.")
        issued = self._engine.issue(email)
        if issued is None:
            return False
        if not self._send_verification(email, issued):
            raise MailDeliveryFailed("Failed to send new verification email. Please try again later.")
        logger.info("Resent verification code to %s", email)
        return True

    def mark_verified(self, email: str) -> SyncResult:
        """Operator override: verify without a code, then sync."""
        email = normalize_email(email)
        if self._store.find_by_email(email) is None:
            raise AccountNotFound()
        if self._store.mark_verified(email):
            logger.info("Account manually verified: %s", email)
        return self.resync(email)

    def _send_verification(self, email: str, issued: IssuedCode) -> bool:
        link = verification_link(self._public_url, issued.token, email)
        subject, html = render_verification_email(issued.code, link, self._engine.ttl_minutes)
        return self._mailer.send(email, subject, html)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationFailed("Email and password are required.")

        record = self._store.find_by_email(email)
        if record is None:
            burn_password_check(password)
            raise InvalidCredentials()
        if not record.is_verified:
            logger.warning("Blocked login: %s is not verified", email)
            raise NotVerified()
        if not verify_password(password, record.hashed_password):
            logger.warning("Invalid password for %s", email)
            raise InvalidCredentials()

        self._orchestrator.sync(record)
        token = self._issuer.issue(record.student_no, record.role)
        self._store.update_last_login(record.student_no)
        logger.info("User logged in: %s (%s)", email, record.student_no)
        return LoginResult(record=record, token=token)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, student_no: str) -> UserRecord:
        record = self._store.find_by_student_no(student_no)
        if record is None:
            raise AccountNotFound()
        return record

    def update_profile(self, student_no: str, /, **fields) -> UserRecord:
        """Update profile fields in the credential store, then push them to both mirrors."""
        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes:
            raise ValidationFailed("No fields to update.")
        try:
            updated = self._store.update_profile(student_no, **changes)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from exc
        if not updated:
            raise AccountNotFound()
        record = self.get_profile(student_no)
        self._orchestrator.sync(record)
        return record

    # ------------------------------------------------------------------
    # Operator flows
    # ------------------------------------------------------------------

    def resync(self, email: str) -> SyncResult:
        record = self._store.find_by_email(normalize_email(email))
        if record is None:
            raise AccountNotFound()
        return self._orchestrator.sync(record)

    def delete_user(self, email: str, student_no: Optional[str] = None) -> DeletionReport:
        """Remove an account from all three stores and report what was actually removed.

        The join key comes from the credential record when present. Supplying
        student_no lets an operator clean up identity provider / mirror leftovers
        after the credential record is already gone.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationFailed("Email is required for deletion.")
        record = self._store.find_by_email(email)
        if record is not None and student_no and record.student_no != student_no:
            raise ValidationFailed("Student number does not match the account registered with this email.")
        uid = student_no or (record.student_no if record else None)

        credential_deleted = self._store.delete_by_email(email)
        if credential_deleted:
            logger.info("Deleted student from credential store: %s", email)
        else:
            logger.warning("Credential store has no account for %s", email)

        identity_deleted = mirror_deleted = False
        if uid:
            try:
                identity_deleted, mirror_deleted = self._orchestrator.remove(uid)
            except PortalError as exc:
                exc.extra["credential_deleted"] = credential_deleted
                raise
        return DeletionReport(
            credential_deleted=credential_deleted,
            identity_deleted=identity_deleted,
            mirror_deleted=mirror_deleted,
        )
