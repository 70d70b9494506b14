"""
api/routes/v1/admin.py -- Operator endpoints.

Routes:
  DELETE /api/v1/admin/students                      -- delete from all three stores
  POST   /api/v1/admin/students/resync               -- re-run the sync for one account
  GET    /api/v1/admin/applications                  -- list applications (?status=)
  PATCH  /api/v1/admin/applications/{app_id}/status  -- change status, optionally email the student
  POST   /api/v1/admin/send-status-email             -- send a status notice to any address

Auth policy: every route requires X-Admin-Key (router-level require_admin).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from api.models import (
    ApplicationListResponse,
    ApplicationOut,
    ApplicationResponse,
    ApplicationStatusEnum,
    ApplicationStatusPatch,
    DeleteResponse,
    DeleteStudentRequest,
    EmailRequest,
    MessageResponse,
    ResyncResponse,
    StatusEmailRequest,
)
from auth.dependencies import get_services, require_admin
from core.errors import AccountNotFound

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.delete("/students", response_model=DeleteResponse)
def delete_student(body: DeleteStudentRequest, services=Depends(get_services)) -> DeleteResponse:
    """Delete an account everywhere and report what each store actually removed.

    404 only when neither the credential store nor the identity provider had
    the account. A partial result (e.g. credential_deleted=true,
    identity_deleted=false) is a success the caller can inspect.
    """
    report = services.accounts.delete_user(body.email, body.student_no)
    if not report.anything_deleted:
        raise AccountNotFound("User not found in the credential store or the identity provider.")
    return DeleteResponse(
        message=f"User {body.email} deleted.",
        credential_deleted=report.credential_deleted,
        identity_deleted=report.identity_deleted,
        mirror_deleted=report.mirror_deleted,
    )


@router.post("/students/resync", response_model=ResyncResponse)
def resync_student(body: EmailRequest, services=Depends(get_services)) -> ResyncResponse:
    result = services.accounts.resync(body.email)
    return ResyncResponse(
        message="Account synchronized.",
        uid=result.uid,
        created=result.created,
        mirror_synced=result.mirror_synced,
    )


@router.get("/applications", response_model=ApplicationListResponse)
def list_applications(
    status: Optional[ApplicationStatusEnum] = None,
    services=Depends(get_services),
) -> ApplicationListResponse:
    records = services.applications.list_all(status.value if status else None)
    return ApplicationListResponse(
        message=f"{len(records)} application(s).",
        applications=[ApplicationOut.from_record(r) for r in records],
    )


@router.patch("/applications/{app_id}/status", response_model=ApplicationResponse)
def update_application_status(
    app_id: int,
    body: ApplicationStatusPatch,
    services=Depends(get_services),
) -> ApplicationResponse:
    record, email_sent = services.applications.set_status(app_id, body.status.value, notify=body.notify)
    message = f"Application status updated to {record.status}."
    if email_sent is False:
        message += " The notification email could not be sent."
    return ApplicationResponse(message=message, application=ApplicationOut.from_record(record), email_sent=email_sent)


@router.post("/send-status-email", response_model=MessageResponse)
def send_status_email(body: StatusEmailRequest, services=Depends(get_services)) -> MessageResponse:
    services.applications.send_status_email(body.email, body.student_name, body.scholarship_type, body.status.value)
    return MessageResponse(message=f"Status email sent to {body.email}.")
