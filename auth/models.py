"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost zero logic). Stores and flows
do the work; these only own the domain shape.

Layer rule: no imports from api/, web/, identity/, notify/ or applications/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Profile fields are mutable, mirrored to the profile store, and not
# authoritative anywhere else.
PROFILE_FIELDS: tuple[str, ...] = ("first_name", "middle_initial", "last_name", "course", "year_level")


class Role(str, Enum):
    student = "student"
    admin = "admin"


@dataclass
class UserRecord:
    """A student account in the credential store (source of truth for auth).

    student_no is the join key: minted once at registration, never reassigned,
    and used verbatim as the identity provider UID and the profile mirror
    document id.

    verification_code / verification_token / code_expires_at are only set
    while the account is unverified. is_verified only ever moves False -> True.
    Timestamps are ISO 8601 UTC strings.
    """

    student_no: str
    email: str
    hashed_password: str
    role: str = Role.student.value
    is_verified: bool = False
    verification_code: str | None = None
    verification_token: str | None = None
    code_expires_at: str | None = None
    first_name: str = ""
    middle_initial: str | None = None
    last_name: str = ""
    course: str | None = None
    year_level: str | None = None
    created_at: str | None = None
    verified_at: str | None = None
    last_login_at: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def profile(self) -> dict[str, str | None]:
        """Return the profile fields as a dict (mirror payload, API response)."""
        return {name: getattr(self, name) for name in PROFILE_FIELDS}
