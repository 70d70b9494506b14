"""
api/routes/v1/applications.py -- Student scholarship applications.

Routes:
  POST /api/v1/applications   -- multipart: scholarship_type + files; verified students only
  GET  /api/v1/applications   -- the signed-in student's own applications

Documents go to the object store under applications/<student_no>/<application_id>/.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from api.models import ApplicationListResponse, ApplicationOut, ApplicationResponse, ErrorDetail
from applications.models import UploadedFile
from auth.dependencies import get_current_student, get_services
from auth.models import UserRecord

router = APIRouter()


@router.post("/applications", response_model=ApplicationResponse, status_code=201)
async def submit_application(
    scholarship_type: str = Form(...),
    files: list[UploadFile] = File(default=[]),
    student: UserRecord = Depends(get_current_student),
    services=Depends(get_services),
) -> ApplicationResponse:
    """Submit an application with its supporting documents."""
    max_bytes = services.settings.max_upload_bytes
    uploads: list[UploadedFile] = []
    for f in files:
        # Size guard -- read up to the limit + 1 byte; reject if over
        raw = await f.read(max_bytes + 1)
        if len(raw) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=ErrorDetail(
                    code="file_too_large",
                    message=f"{f.filename} must be {max_bytes // (1024 * 1024)} MB or smaller.",
                ).model_dump(),
            )
        uploads.append(
            UploadedFile(
                filename=f.filename or "document",
                data=raw,
                content_type=f.content_type or "application/octet-stream",
            )
        )

    record = await run_in_threadpool(services.applications.submit, student.student_no, scholarship_type, uploads)
    return ApplicationResponse(message="Application submitted.", application=ApplicationOut.from_record(record))


@router.get("/applications", response_model=ApplicationListResponse)
def list_my_applications(
    student: UserRecord = Depends(get_current_student),
    services=Depends(get_services),
) -> ApplicationListResponse:
    records = services.applications.list_for_student(student.student_no)
    return ApplicationListResponse(
        message=f"{len(records)} application(s).",
        applications=[ApplicationOut.from_record(r) for r in records],
    )
