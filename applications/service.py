"""
applications/service.py -- Application flows: submit, list, status change with notification.

Only verified students may submit. Documents are uploaded after the row
exists so the object store folder can carry the application id; if any
upload fails the row and any documents already uploaded are removed again
and the caller gets DependencyFailure. Documents that cannot be removed are
logged with their object path.
"""

from __future__ import annotations

import logging
from typing import Optional

from applications.models import ApplicationRecord, UploadedFile
from applications.storage import ObjectStore, ObjectStoreError, safe_key
from applications.store import STATUSES, ApplicationStore
from auth.store import UserStore
from core.errors import AccountNotFound, DependencyFailure, MailDeliveryFailed, NotVerified, ValidationFailed
from notify.emails import render_status_email
from notify.mailer import Mailer

logger = logging.getLogger("scholarship.applications")


class ApplicationService:
    def __init__(
        self,
        store: ApplicationStore,
        objects: ObjectStore,
        users: UserStore,
        mailer: Mailer,
        max_upload_bytes: int,
    ) -> None:
        self._store = store
        self._objects = objects
        self._users = users
        self._mailer = mailer
        self._max_upload_bytes = max_upload_bytes

    def submit(self, student_no: str, scholarship_type: str, files: list[UploadedFile]) -> ApplicationRecord:
        student = self._users.find_by_student_no(student_no)
        if student is None:
            raise AccountNotFound()
        if not student.is_verified:
            raise NotVerified("Verify your account before applying.")
        scholarship_type = (scholarship_type or "").strip()
        if not scholarship_type:
            raise ValidationFailed("Scholarship type is required.")
        for f in files:
            if len(f.data) > self._max_upload_bytes:
                raise ValidationFailed(f"{f.filename} exceeds the {self._max_upload_bytes} byte upload limit.")

        record = ApplicationRecord(student_no=student_no, scholarship_type=scholarship_type)
        app_id = self._store.create(record)
        folder = f"applications/{student_no}/{app_id}"

        documents: dict[str, str] = {}
        uploaded: list[str] = []
        try:
            for f in files:
                key = safe_key(f.filename)
                documents[f.filename] = self._objects.upload(f.data, folder, key, f.content_type)
                uploaded.append(key)
        except ObjectStoreError as exc:
            logger.error("Document upload failed for application %s: %s", app_id, exc)
            self._discard_uploads(folder, uploaded)
            self._store.delete(app_id)
            raise DependencyFailure("Document upload failed. Please try again later.") from exc

        if documents:
            self._store.set_documents(app_id, documents)
            record.documents = documents
        logger.info("Application %s submitted by %s (%d documents)", app_id, student_no, len(documents))
        return record

    def _discard_uploads(self, folder: str, keys: list[str]) -> None:
        """Remove objects uploaded before a failed submit. Leftovers are logged with their path."""
        for key in keys:
            try:
                self._objects.delete(folder, key)
            except ObjectStoreError as exc:
                logger.error("Orphaned document %s/%s left in object store: %s", folder, key, exc)

    def list_for_student(self, student_no: str) -> list[ApplicationRecord]:
        return self._store.list_for_student(student_no)

    def list_all(self, status: Optional[str] = None) -> list[ApplicationRecord]:
        if status and status not in STATUSES:
            raise ValidationFailed(f"Unknown status: {status}")
        return self._store.list_all(status)

    def set_status(self, app_id: int, status: str, notify: bool = False) -> tuple[ApplicationRecord, Optional[bool]]:
        """Change an application's status, optionally emailing the student.

        Returns (record, email_sent). email_sent is None when no notification
        was requested. A failed notification does not undo the status change.
        """
        status = (status or "").strip().lower()
        if status not in STATUSES:
            raise ValidationFailed(f"Unknown status: {status}")
        if not self._store.update_status(app_id, status):
            raise AccountNotFound("Application not found.")
        record = self._store.get(app_id)
        if record is None:
            raise AccountNotFound("Application not found.")
        logger.info("Application %s status -> %s", app_id, status)

        email_sent: Optional[bool] = None
        if notify:
            student = self._users.find_by_student_no(record.student_no)
            if student is None:
                logger.warning("Application %s belongs to a deleted student; no notification", app_id)
                email_sent = False
            else:
                subject, html = render_status_email(
                    student.display_name or student.email, record.scholarship_type, status
                )
                email_sent = self._mailer.send(student.email, subject, html)
        return record, email_sent

    def send_status_email(self, email: str, student_name: str, scholarship_type: str, status: str) -> None:
        """Send a status notice to an arbitrary address. Raises MailDeliveryFailed on failure."""
        subject, html = render_status_email(student_name, scholarship_type, status)
        if not self._mailer.send(email, subject, html):
            raise MailDeliveryFailed()
        logger.info("Status email (%s) sent to %s", status, email)
