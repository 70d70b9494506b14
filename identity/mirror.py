"""
identity/mirror.py -- Profile mirror store (Cloud Firestore).

A read-optimized, denormalized copy of each student's profile, keyed by the
join key. Writes are always merge-upserts: a sync never erases fields it does
not set, so fields written by other clients (e.g. the portal frontend) survive.

The mirror is a read convenience. Failures raise ProfileMirrorError and the
orchestrator decides they are non-fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

import firebase_admin
from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

logger = logging.getLogger("scholarship.identity")


class ProfileMirrorError(Exception):
    """A failed profile mirror read or write."""


class ProfileMirror(Protocol):
    def upsert_merge(self, uid: str, fields: dict[str, Any]) -> None: ...

    def delete(self, uid: str) -> bool: ...


class FirestoreProfileMirror:
    """ProfileMirror backed by one Firestore collection (plus legacy collections for delete)."""

    def __init__(
        self,
        app: firebase_admin.App,
        collection: str = "students",
        legacy_collections: Iterable[str] = (),
        timeout: float = 10.0,
    ) -> None:
        self._client = firestore.client(app=app)
        self._collection = collection
        self._legacy_collections = tuple(legacy_collections)
        self._timeout = timeout

    def upsert_merge(self, uid: str, fields: dict[str, Any]) -> None:
        ref = self._client.collection(self._collection).document(uid)
        try:
            ref.set(fields, merge=True, timeout=self._timeout)
        except google_exceptions.GoogleAPIError as exc:
            raise ProfileMirrorError(f"upsert {self._collection}/{uid}: {exc}") from exc

    def delete(self, uid: str) -> bool:
        """Delete the profile document from the primary and legacy collections.

        Returns True if at least one document existed. A missing document is
        not an error.
        """
        existed = False
        for collection in (self._collection, *self._legacy_collections):
            ref = self._client.collection(collection).document(uid)
            try:
                if ref.get(timeout=self._timeout).exists:
                    ref.delete(timeout=self._timeout)
                    existed = True
            except google_exceptions.GoogleAPIError as exc:
                raise ProfileMirrorError(f"delete {collection}/{uid}: {exc}") from exc
        return existed
