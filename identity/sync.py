"""
identity/sync.py -- Synchronization orchestrator (credential store -> identity provider + profile mirror).

Contract: given a UserRecord, make the identity provider user and the profile
mirror document exist and match the record's email, display name, verified
flag, and profile fields. Both are keyed by record.student_no.

Algorithm (read-repair with create-on-miss):
  1. get_user(uid).
  2. Found -> update email / emailVerified / displayName. Common path on login.
  3. USER_NOT_FOUND -> create_user with the same uid.
       EMAIL_ALREADY_EXISTS: the email belongs to a different identity-provider
       account. Unrecoverable here -> IdentityProviderConflict. We never guess
       which account is authoritative.
       UID_ALREADY_EXISTS: a concurrent sync created it between steps 1 and 3
       -> fall through to the update path.
  4. Any other identity provider error -> IdentitySyncFailed. Nothing further
     is written.
  5. Merge-upsert the mirror document. verifiedAt only when verified.
  6. Mirror failures are logged and reported in SyncResult, never raised.

Fatal vs best-effort: a session credential is only meaningful if the identity
provider knows the uid, so identity failures abort the calling flow. The
mirror is a read convenience.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from auth.models import UserRecord
from core.errors import IdentityProviderConflict, IdentitySyncFailed
from identity.mirror import ProfileMirror, ProfileMirrorError
from identity.provider import IdentityErrorKind, IdentityProvider, IdentityProviderError

logger = logging.getLogger("scholarship.identity")


@dataclass(frozen=True)
class SyncResult:
    uid: str
    created: bool  # identity provider user was created by this call
    mirror_synced: bool


class SyncOrchestrator:
    """Reconciles the identity provider and profile mirror with the credential store.

    The only component allowed to create entries in either secondary store.
    Holds no locks and no state between calls; safe to share across requests.
    """

    def __init__(self, provider: IdentityProvider, mirror: ProfileMirror) -> None:
        self._provider = provider
        self._mirror = mirror

    def sync(self, record: UserRecord) -> SyncResult:
        """Bring both secondary stores in line with `record`.

        Raises IdentityProviderConflict or IdentitySyncFailed on identity
        provider failure. Never raises for mirror failures.
        """
        created = self._sync_identity(record)
        mirror_synced = self._sync_mirror(record)
        return SyncResult(uid=record.student_no, created=created, mirror_synced=mirror_synced)

    # ------------------------------------------------------------------
    # Identity provider
    # ------------------------------------------------------------------

    def _sync_identity(self, record: UserRecord) -> bool:
        uid = record.student_no
        try:
            self._provider.get_user(uid)
        except IdentityProviderError as exc:
            if exc.kind is not IdentityErrorKind.USER_NOT_FOUND:
                logger.error("Identity provider lookup failed for %s: %s", uid, exc)
                raise IdentitySyncFailed() from exc
        else:
            self._update_identity(record)
            return False

        try:
            self._provider.create_user(
                uid=uid,
                email=record.email,
                display_name=record.display_name,
                email_verified=record.is_verified,
            )
        except IdentityProviderError as exc:
            if exc.kind is IdentityErrorKind.EMAIL_ALREADY_EXISTS:
                logger.error(
                    "CONFLICT: email of %s is linked to a different identity provider account. "
                    "Manual merge or delete required.",
                    uid,
                )
                raise IdentityProviderConflict() from exc
            if exc.kind is IdentityErrorKind.UID_ALREADY_EXISTS:
                logger.info("Identity provider user %s created concurrently; updating instead", uid)
                self._update_identity(record)
                return False
            logger.error("Identity provider create failed for %s: %s", uid, exc)
            raise IdentitySyncFailed() from exc
        logger.info("Created identity provider user %s", uid)
        return True

    def _update_identity(self, record: UserRecord) -> None:
        uid = record.student_no
        try:
            self._provider.update_user(
                uid,
                email=record.email,
                email_verified=record.is_verified,
                display_name=record.display_name,
            )
        except IdentityProviderError as exc:
            if exc.kind is IdentityErrorKind.EMAIL_ALREADY_EXISTS:
                logger.error("CONFLICT: cannot move %s to an email owned by another account", uid)
                raise IdentityProviderConflict() from exc
            logger.error("Identity provider update failed for %s: %s", uid, exc)
            raise IdentitySyncFailed() from exc
        logger.info("Updated identity provider user %s", uid)

    def remove(self, uid: str) -> tuple[bool, bool]:
        """Delete uid from the identity provider and the mirror.

        Returns (identity_deleted, mirror_deleted). A user that does not exist
        in either store counts as tolerated-but-not-deleted (False). Identity
        provider failures other than not-found raise IdentitySyncFailed; mirror
        failures are logged and reported as False.
        """
        identity_deleted = False
        try:
            self._provider.delete_user(uid)
            identity_deleted = True
            logger.info("Deleted identity provider user %s", uid)
        except IdentityProviderError as exc:
            if exc.kind is not IdentityErrorKind.USER_NOT_FOUND:
                logger.error("Identity provider delete failed for %s: %s", uid, exc)
                raise IdentitySyncFailed("Identity provider deletion failed.") from exc
            logger.warning("Identity provider user %s not found; nothing to delete", uid)

        try:
            mirror_deleted = self._mirror.delete(uid)
        except ProfileMirrorError as exc:
            logger.warning("Could not delete profile mirror documents for %s: %s", uid, exc)
            mirror_deleted = False
        return identity_deleted, mirror_deleted

    # ------------------------------------------------------------------
    # Profile mirror
    # ------------------------------------------------------------------

    def _sync_mirror(self, record: UserRecord) -> bool:
        try:
            self._mirror.upsert_merge(record.student_no, mirror_payload(record))
        except ProfileMirrorError as exc:
            logger.error("Profile mirror sync failed for %s (continuing): %s", record.student_no, exc)
            return False
        return True


def mirror_payload(record: UserRecord) -> dict[str, Any]:
    """Build the mirror document fields for `record`.

    None values are left out so a merge never blanks a field that another
    writer populated.
    """
    payload: dict[str, Any] = {
        "firebaseUid": record.student_no,
        "studentNo": record.student_no,
        "email": record.email,
        "firstName": record.first_name,
        "middleInitial": record.middle_initial,
        "lastName": record.last_name,
        "course": record.course,
        "yearLevel": record.year_level,
        "role": record.role,
        "isVerified": record.is_verified,
    }
    if record.is_verified and record.verified_at:
        verified_at = datetime.fromisoformat(record.verified_at)
        if verified_at.tzinfo is None:
            verified_at = verified_at.replace(tzinfo=timezone.utc)
        payload["verifiedAt"] = verified_at
    return {key: value for key, value in payload.items() if value is not None}
