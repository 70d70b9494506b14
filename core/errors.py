"""
core/errors.py -- Error taxonomy for the scholarship portal.

Every failure a flow can report to a caller is a PortalError subclass. Each
carries a stable machine-readable `code`, the HTTP status the API layer maps it
to, a user-facing `message`, and optional `extra` fields that are merged into
the JSON envelope (e.g. needs_verification on NotVerified).

Store-layer and SDK errors never leave the orchestrating operation raw. They
are caught there and translated into one of these classes.

Layer rule: core/ is the kernel. No imports from other project packages.
"""

from __future__ import annotations

from typing import Any


class PortalError(Exception):
    """Base class for all expected, user-reportable failures."""

    code = "internal_error"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class ValidationFailed(PortalError):
    code = "validation_error"
    status_code = 400
    default_message = "Request validation failed."


class DuplicateIdentity(PortalError):
    """Email or student number already registered. `field` names which one."""

    code = "duplicate_identity"
    status_code = 409
    default_message = "A user with this email or student number already exists."

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message, field=field)


class InvalidCredentials(PortalError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password."


class NotVerified(PortalError):
    code = "not_verified"
    status_code = 403
    default_message = "Account is not verified. Redirecting to verification page."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, needs_verification=True)


class AccountNotFound(PortalError):
    code = "not_found"
    status_code = 404
    default_message = "User not found."


class InvalidOrExpiredCode(PortalError):
    code = "invalid_or_expired_code"
    status_code = 401
    default_message = "Invalid or expired verification code."


class InvalidCode(InvalidOrExpiredCode):
    code = "invalid_code"
    default_message = "Invalid verification code."


class CodeExpired(InvalidOrExpiredCode):
    code = "code_expired"
    default_message = "Verification code has expired. Please request a new one."


class IdentityProviderConflict(PortalError):
    """The email is claimed by a different identity-provider account.

    Unrecoverable without an operator merging or deleting one of the accounts.
    """

    code = "identity_conflict"
    status_code = 409
    default_message = "Email is already in use by another sign-in account. Contact support for account reset."


class DependencyFailure(PortalError):
    code = "dependency_failure"
    status_code = 500
    default_message = "A required service failed. Please try again later."


class IdentitySyncFailed(DependencyFailure):
    code = "identity_sync_failed"
    default_message = "Account synchronization failed. Please try again later."


class SessionIssueFailed(DependencyFailure):
    code = "session_issue_failed"
    default_message = "Could not start a session. Please try again later."


class MailDeliveryFailed(DependencyFailure):
    code = "mail_delivery_failed"
    default_message = "Failed to send email. Please try again later."


class DependencyUnavailable(PortalError):
    code = "service_unavailable"
    status_code = 503
    default_message = "Server initializing or database unavailable. Please try again in a moment."
