"""
container.py -- Composition root for the scholarship portal.

PortalServices owns every long-lived handle: the credential and application
stores, the Firebase app, and the adapters built on it. The API lifespan and
the operator CLI each construct one, call connect(), pass it where it is
needed, and call close() on the way out. Nothing here is a module global.

Any of the external adapters (identity provider, profile mirror, object
store, mailer) can be passed in already built. Tests use this to run the
whole stack against in-memory fakes; the Firebase app is only initialized
when at least one Firebase-backed adapter still has to be created.

Usage:
    services = PortalServices()
    services.connect()
    services.accounts.login("a@x.com", "pw")
    services.close()
"""

from __future__ import annotations

import logging
from typing import Optional

from applications.service import ApplicationService
from applications.storage import FirebaseObjectStore, ObjectStore
from applications.store import ApplicationStore
from auth.accounts import AccountService
from auth.store import UserStore
from auth.verification import VerificationEngine
from core.config import Settings, get_settings
from identity.firebase import close_app, init_app
from identity.mirror import FirestoreProfileMirror, ProfileMirror
from identity.provider import FirebaseIdentityProvider, IdentityProvider
from identity.session import SessionIssuer
from identity.sync import SyncOrchestrator
from notify.mailer import Mailer, SendGridMailer

logger = logging.getLogger("scholarship.container")


class PortalServices:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        provider: Optional[IdentityProvider] = None,
        mirror: Optional[ProfileMirror] = None,
        objects: Optional[ObjectStore] = None,
        mailer: Optional[Mailer] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider
        self.mirror = mirror
        self.objects = objects
        self.mailer = mailer
        self.connected = False
        self._firebase_app = None

    def connect(self) -> "PortalServices":
        """Open stores and build adapters and flows. Idempotent."""
        if self.connected:
            return self
        s = self.settings

        self.users = UserStore(s.database_url)
        self.applications_store = ApplicationStore(s.database_url)

        if self.provider is None or self.mirror is None or self.objects is None:
            try:
                self._firebase_app = init_app(s)
            except Exception:
                self.users.close()
                self.applications_store.close()
                raise
        if self.provider is None:
            self.provider = FirebaseIdentityProvider(self._firebase_app)
        if self.mirror is None:
            self.mirror = FirestoreProfileMirror(
                self._firebase_app,
                collection=s.profile_collection,
                legacy_collections=s.legacy_profile_collections,
                timeout=s.external_timeout_seconds,
            )
        if self.objects is None:
            self.objects = FirebaseObjectStore(
                self._firebase_app,
                bucket_name=s.firebase_storage_bucket,
                timeout=s.external_timeout_seconds,
            )
        if self.mailer is None:
            self.mailer = SendGridMailer(
                s.sendgrid_api_key,
                s.mail_from,
                s.mail_from_name,
                timeout=s.external_timeout_seconds,
            )

        self.orchestrator = SyncOrchestrator(self.provider, self.mirror)
        self.verification = VerificationEngine(self.users, self.orchestrator, s.verification_code_ttl_minutes)
        self.sessions = SessionIssuer(self.provider)
        self.accounts = AccountService(
            self.users,
            self.verification,
            self.orchestrator,
            self.sessions,
            self.mailer,
            public_url=s.public_url,
            bcrypt_rounds=s.bcrypt_rounds,
        )
        self.applications = ApplicationService(
            self.applications_store,
            self.objects,
            self.users,
            self.mailer,
            max_upload_bytes=s.max_upload_bytes,
        )
        self.connected = True
        logger.info("Portal services connected (users=%d)", self.users.count_users())
        return self

    def close(self) -> None:
        if not self.connected:
            return
        self.connected = False
        self.users.close()
        self.applications_store.close()
        close_mailer = getattr(self.mailer, "close", None)
        if close_mailer is not None:
            close_mailer()
        if self._firebase_app is not None:
            close_app(self._firebase_app)
            self._firebase_app = None
        logger.info("Portal services closed")
