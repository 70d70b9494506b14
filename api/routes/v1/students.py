"""
api/routes/v1/students.py -- The signed-in student's own profile.

Routes:
  GET   /api/v1/students/me   -- profile from the credential store
  PATCH /api/v1/students/me   -- update profile fields, then resync both mirrors

Auth: Authorization: Bearer <identity provider ID token> (get_current_student).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import ProfilePatch, ProfileResponse, UserOut
from auth.dependencies import get_current_student, get_services
from auth.models import UserRecord

router = APIRouter()


@router.get("/students/me", response_model=ProfileResponse)
def get_me(student: UserRecord = Depends(get_current_student)) -> ProfileResponse:
    return ProfileResponse(message="Profile loaded.", user=UserOut.from_record(student))


@router.patch("/students/me", response_model=ProfileResponse)
def update_me(
    body: ProfilePatch,
    student: UserRecord = Depends(get_current_student),
    services=Depends(get_services),
) -> ProfileResponse:
    record = services.accounts.update_profile(student.student_no, **body.model_dump(exclude_unset=True))
    return ProfileResponse(message="Profile updated.", user=UserOut.from_record(record))
