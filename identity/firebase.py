"""
identity/firebase.py -- Firebase Admin SDK app lifecycle.

One named firebase_admin.App per PortalServices instance. The identity
provider, profile mirror, and object store adapters all receive this App
explicitly instead of relying on the SDK's default app, so tests and the CLI
can run several isolated instances in one process.

Credential resolution order:
  1. FIREBASE_SERVICE_ACCOUNT -- service account JSON as a string.
  2. FIREBASE_CREDENTIALS_FILE -- path to the service account JSON file.
  3. Application Default Credentials.
"""

from __future__ import annotations

import json
import logging

import firebase_admin
from firebase_admin import credentials

from core.config import Settings

logger = logging.getLogger("scholarship.identity")

_APP_NAME = "scholarship-portal"


def init_app(settings: Settings, name: str = _APP_NAME) -> firebase_admin.App:
    """Initialize (or return the already-initialized) named Firebase app.

    Raises ValueError if FIREBASE_SERVICE_ACCOUNT is not valid JSON. That is
    a deployment error, not something to retry.
    """
    try:
        return firebase_admin.get_app(name)
    except ValueError:
        pass

    if settings.firebase_service_account:
        try:
            info = json.loads(settings.firebase_service_account)
        except json.JSONDecodeError as exc:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT is not valid JSON.") from exc
        cred = credentials.Certificate(info)
    elif settings.firebase_credentials_file:
        cred = credentials.Certificate(settings.firebase_credentials_file)
    else:
        cred = credentials.ApplicationDefault()

    options: dict = {"httpTimeout": settings.external_timeout_seconds}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket

    app = firebase_admin.initialize_app(cred, options, name=name)
    logger.info("Firebase Admin SDK initialized (app=%s)", name)
    return app


def close_app(app: firebase_admin.App) -> None:
    firebase_admin.delete_app(app)
