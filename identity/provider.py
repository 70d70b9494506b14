"""
identity/provider.py -- Identity provider adapter (Firebase Authentication).

The orchestrator never sees SDK exception classes. Every call goes through
_translated(), which turns firebase-admin errors into IdentityProviderError
with a typed IdentityErrorKind. Swapping the identity provider means writing a
new adapter, not touching the sync logic.

The UID of every identity provider user is the credential store's student_no.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import firebase_admin
from firebase_admin import auth, exceptions

logger = logging.getLogger("scholarship.identity")


class IdentityErrorKind(str, Enum):
    USER_NOT_FOUND = "user_not_found"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    UID_ALREADY_EXISTS = "uid_already_exists"
    INVALID_TOKEN = "invalid_token"
    OTHER = "other"


class IdentityProviderError(Exception):
    """A failed identity provider call, classified by kind."""

    def __init__(self, kind: IdentityErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")


@dataclass(frozen=True)
class IdentityUser:
    uid: str
    email: Optional[str]
    email_verified: bool
    display_name: Optional[str]
    disabled: bool = False


class IdentityProvider(Protocol):
    """User-record CRUD and token operations the core needs from an identity provider.

    All methods raise IdentityProviderError on failure.
    """

    def get_user(self, uid: str) -> IdentityUser: ...

    def create_user(
        self,
        uid: str,
        email: str,
        display_name: str,
        email_verified: bool,
        password: Optional[str] = None,
    ) -> IdentityUser: ...

    def update_user(
        self,
        uid: str,
        *,
        email: Optional[str] = None,
        email_verified: Optional[bool] = None,
        display_name: Optional[str] = None,
    ) -> IdentityUser: ...

    def delete_user(self, uid: str) -> None: ...

    def create_custom_token(self, uid: str, claims: Optional[dict] = None) -> str: ...

    def verify_id_token(self, id_token: str) -> str: ...


# ---------------------------------------------------------------------------
# Firebase implementation
# ---------------------------------------------------------------------------


@contextmanager
def _translated(action: str, uid: str) -> Iterator[None]:
    """Map firebase-admin exceptions onto IdentityProviderError.

    Order matters: the specific auth errors subclass FirebaseError.
    """
    try:
        yield
    except auth.UserNotFoundError as exc:
        raise IdentityProviderError(IdentityErrorKind.USER_NOT_FOUND, f"{action}: no user {uid}") from exc
    except auth.EmailAlreadyExistsError as exc:
        raise IdentityProviderError(IdentityErrorKind.EMAIL_ALREADY_EXISTS, f"{action}: email in use") from exc
    except auth.UidAlreadyExistsError as exc:
        raise IdentityProviderError(IdentityErrorKind.UID_ALREADY_EXISTS, f"{action}: uid {uid} in use") from exc
    except (auth.InvalidIdTokenError, auth.UserDisabledError) as exc:
        raise IdentityProviderError(IdentityErrorKind.INVALID_TOKEN, f"{action}: {exc}") from exc
    except exceptions.FirebaseError as exc:
        raise IdentityProviderError(IdentityErrorKind.OTHER, f"{action}: {exc}") from exc
    except ValueError as exc:
        # The SDK raises ValueError for malformed arguments (bad email, uid too long).
        raise IdentityProviderError(IdentityErrorKind.OTHER, f"{action}: {exc}") from exc


def _to_identity_user(record: auth.UserRecord) -> IdentityUser:
    return IdentityUser(
        uid=record.uid,
        email=record.email,
        email_verified=bool(record.email_verified),
        display_name=record.display_name,
        disabled=bool(record.disabled),
    )


class FirebaseIdentityProvider:
    """IdentityProvider backed by firebase_admin.auth for one named App."""

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    def get_user(self, uid: str) -> IdentityUser:
        with _translated("get_user", uid):
            return _to_identity_user(auth.get_user(uid, app=self._app))

    def create_user(
        self,
        uid: str,
        email: str,
        display_name: str,
        email_verified: bool,
        password: Optional[str] = None,
    ) -> IdentityUser:
        kwargs: dict = {
            "uid": uid,
            "email": email,
            "email_verified": email_verified,
            "display_name": display_name or None,
            "app": self._app,
        }
        if password:
            kwargs["password"] = password
        with _translated("create_user", uid):
            return _to_identity_user(auth.create_user(**kwargs))

    def update_user(
        self,
        uid: str,
        *,
        email: Optional[str] = None,
        email_verified: Optional[bool] = None,
        display_name: Optional[str] = None,
    ) -> IdentityUser:
        kwargs: dict = {}
        if email is not None:
            kwargs["email"] = email
        if email_verified is not None:
            kwargs["email_verified"] = email_verified
        if display_name is not None:
            # An empty string would be rejected by the SDK; DELETE_ATTRIBUTE clears it.
            kwargs["display_name"] = display_name or auth.DELETE_ATTRIBUTE
        with _translated("update_user", uid):
            return _to_identity_user(auth.update_user(uid, app=self._app, **kwargs))

    def delete_user(self, uid: str) -> None:
        with _translated("delete_user", uid):
            auth.delete_user(uid, app=self._app)

    def create_custom_token(self, uid: str, claims: Optional[dict] = None) -> str:
        with _translated("create_custom_token", uid):
            token = auth.create_custom_token(uid, developer_claims=claims, app=self._app)
        return token.decode("utf-8") if isinstance(token, bytes) else token

    def verify_id_token(self, id_token: str) -> str:
        """Return the UID an ID token was issued for. Raises INVALID_TOKEN on any rejection."""
        with _translated("verify_id_token", "-"):
            claims = auth.verify_id_token(id_token, app=self._app, check_revoked=True)
        return claims["uid"]
