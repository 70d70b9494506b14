"""
tests/fakes.py -- In-memory doubles for the external adapters.

Each fake implements the same Protocol as the real adapter (identity/provider.py,
identity/mirror.py, applications/storage.py, notify/mailer.py) and keeps its
state in plain dicts so tests can assert on what was written.

Failure injection: set `fail_next[<method name>]` to an exception instance and
the next call to that method raises it. unittest.mock is used in tests for
anything more elaborate.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from applications.storage import ObjectStoreError
from identity.mirror import ProfileMirrorError
from identity.provider import IdentityErrorKind, IdentityProviderError, IdentityUser


class _FailureInjection:
    def __init__(self) -> None:
        self.fail_next: dict[str, Exception] = {}

    def _maybe_fail(self, method: str) -> None:
        exc = self.fail_next.pop(method, None)
        if exc is not None:
            raise exc


class FakeIdentityProvider(_FailureInjection):
    def __init__(self) -> None:
        super().__init__()
        self.users: dict[str, IdentityUser] = {}
        self.id_tokens: dict[str, str] = {}
        self.calls: list[str] = []

    def _owner_of(self, email: str) -> Optional[str]:
        for uid, user in self.users.items():
            if user.email == email:
                return uid
        return None

    def get_user(self, uid: str) -> IdentityUser:
        self.calls.append("get_user")
        self._maybe_fail("get_user")
        if uid not in self.users:
            raise IdentityProviderError(IdentityErrorKind.USER_NOT_FOUND, f"no user {uid}")
        return self.users[uid]

    def create_user(
        self,
        uid: str,
        email: str,
        display_name: str,
        email_verified: bool,
        password: Optional[str] = None,
    ) -> IdentityUser:
        self.calls.append("create_user")
        self._maybe_fail("create_user")
        if uid in self.users:
            raise IdentityProviderError(IdentityErrorKind.UID_ALREADY_EXISTS, f"uid {uid} exists")
        if self._owner_of(email) is not None:
            raise IdentityProviderError(IdentityErrorKind.EMAIL_ALREADY_EXISTS, f"email {email} exists")
        user = IdentityUser(uid=uid, email=email, email_verified=email_verified, display_name=display_name or None)
        self.users[uid] = user
        return user

    def update_user(
        self,
        uid: str,
        *,
        email: Optional[str] = None,
        email_verified: Optional[bool] = None,
        display_name: Optional[str] = None,
    ) -> IdentityUser:
        self.calls.append("update_user")
        self._maybe_fail("update_user")
        current = self.users.get(uid)
        if current is None:
            raise IdentityProviderError(IdentityErrorKind.USER_NOT_FOUND, f"no user {uid}")
        if email is not None and self._owner_of(email) not in (None, uid):
            raise IdentityProviderError(IdentityErrorKind.EMAIL_ALREADY_EXISTS, f"email {email} exists")
        user = IdentityUser(
            uid=uid,
            email=email if email is not None else current.email,
            email_verified=email_verified if email_verified is not None else current.email_verified,
            display_name=(display_name or None) if display_name is not None else current.display_name,
        )
        self.users[uid] = user
        return user

    def delete_user(self, uid: str) -> None:
        self.calls.append("delete_user")
        self._maybe_fail("delete_user")
        if self.users.pop(uid, None) is None:
            raise IdentityProviderError(IdentityErrorKind.USER_NOT_FOUND, f"no user {uid}")

    def create_custom_token(self, uid: str, claims: Optional[dict] = None) -> str:
        self.calls.append("create_custom_token")
        self._maybe_fail("create_custom_token")
        role = (claims or {}).get("role", "")
        return f"custom-token.{uid}.{role}"

    def verify_id_token(self, id_token: str) -> str:
        self._maybe_fail("verify_id_token")
        uid = self.id_tokens.get(id_token)
        if uid is None:
            raise IdentityProviderError(IdentityErrorKind.INVALID_TOKEN, "bad token")
        return uid

    # Test helper: what the client would get after exchanging the custom token.
    def issue_id_token(self, uid: str) -> str:
        token = f"id-token-{uid}"
        self.id_tokens[token] = uid
        return token


class FakeProfileMirror(_FailureInjection):
    def __init__(self, legacy: Optional[dict[str, dict[str, Any]]] = None) -> None:
        super().__init__()
        self.docs: dict[str, dict[str, Any]] = {}
        self.legacy: dict[str, dict[str, Any]] = legacy or {}

    def upsert_merge(self, uid: str, fields: dict[str, Any]) -> None:
        self._maybe_fail("upsert_merge")
        self.docs.setdefault(uid, {}).update(fields)

    def delete(self, uid: str) -> bool:
        self._maybe_fail("delete")
        existed = self.docs.pop(uid, None) is not None
        existed = (self.legacy.pop(uid, None) is not None) or existed
        return existed


def mirror_down(message: str = "firestore unavailable") -> ProfileMirrorError:
    return ProfileMirrorError(message)


class FakeObjectStore(_FailureInjection):
    def __init__(self) -> None:
        super().__init__()
        self.objects: dict[str, tuple[bytes, str]] = {}

    def upload(self, data: bytes, folder: str, key: str, content_type: str) -> str:
        self._maybe_fail("upload")
        path = f"{folder.strip('/')}/{key}"
        self.objects[path] = (data, content_type)
        return f"https://storage.test/{path}"

    def delete(self, folder: str, key: str) -> None:
        self._maybe_fail("delete")
        self.objects.pop(f"{folder.strip('/')}/{key}", None)


def storage_down(message: str = "bucket unavailable") -> ObjectStoreError:
    return ObjectStoreError(message)


class FakeMailer:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not self.ok:
            return False
        self.sent.append((to, subject, html_body))
        return True

    def last_to(self, to: str) -> tuple[str, str]:
        """Return (subject, html) of the most recent message to `to`."""
        for recipient, subject, html in reversed(self.sent):
            if recipient == to:
                return subject, html
        raise AssertionError(f"no email sent to {to}")

    def last_code(self, to: str) -> str:
        _, html = self.last_to(to)
        match = re.search(r"\b(\d{6})\b", html)
        assert match, "no 6-digit code in email"
        return match.group(1)

    def last_token(self, to: str) -> str:
        _, html = self.last_to(to)
        match = re.search(r"token=([0-9a-f]{64})", html)
        assert match, "no link token in email"
        return match.group(1)
