"""
applications/storage.py -- Object store for application documents (Cloud Storage for Firebase).

upload() is synchronous and atomic from the caller's point of view: it either
returns the object URL or raises ObjectStoreError.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Protocol

import firebase_admin
from firebase_admin import storage
from google.api_core import exceptions as google_exceptions

logger = logging.getLogger("scholarship.applications")


class ObjectStoreError(Exception):
    """A failed object store upload."""


class ObjectStore(Protocol):
    def upload(self, data: bytes, folder: str, key: str, content_type: str) -> str: ...

    def delete(self, folder: str, key: str) -> None: ...


def safe_key(filename: str) -> str:
    """Reduce a client-supplied file name to a single safe path segment."""
    name = posixpath.basename(filename.replace("\\", "/")).strip()
    cleaned = "".join(c if c.isalnum() or c in "._-" else "_" for c in name)
    return cleaned.lstrip(".") or "document"


class FirebaseObjectStore:
    def __init__(self, app: firebase_admin.App, bucket_name: str | None = None, timeout: float = 10.0) -> None:
        self._bucket = storage.bucket(name=bucket_name or None, app=app)
        self._timeout = timeout

    def upload(self, data: bytes, folder: str, key: str, content_type: str) -> str:
        path = f"{folder.strip('/')}/{key}"
        blob = self._bucket.blob(path)
        try:
            blob.upload_from_string(data, content_type=content_type, timeout=self._timeout)
        except google_exceptions.GoogleAPIError as exc:
            raise ObjectStoreError(f"upload {path}: {exc}") from exc
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return blob.public_url

    def delete(self, folder: str, key: str) -> None:
        """Remove one object. A missing object is not an error."""
        path = f"{folder.strip('/')}/{key}"
        try:
            self._bucket.blob(path).delete(timeout=self._timeout)
        except google_exceptions.NotFound:
            return
        except google_exceptions.GoogleAPIError as exc:
            raise ObjectStoreError(f"delete {path}: {exc}") from exc
        logger.info("Deleted %s", path)
