"""
API request and response models for the scholarship portal REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
applications/models.py, which own the internal domain representation. Route
handlers map between the two with the from_record() constructors.

Every response carries the same envelope fields: success and message. Errors
add an `error` object (see ErrorResponse).

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from applications.models import ApplicationRecord
from auth.models import UserRecord

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ApplicationStatusEnum(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    student_no is optional: when omitted the server mints one. Either way it
    becomes the permanent join key for the identity provider and profile mirror.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=1, max_length=72)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    middle_initial: Optional[str] = Field(default=None, max_length=10)
    student_no: Optional[str] = Field(default=None, max_length=128, pattern=r"^[A-Za-z0-9_-]+$")
    course: Optional[str] = Field(default=None, max_length=100)
    year_level: Optional[str] = Field(default=None, max_length=20)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class VerifyCodeRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    code: str = Field(min_length=1, max_length=12)


class EmailRequest(BaseModel):
    """Request body for endpoints that only need an email (resend-code, admin resync)."""

    email: EmailStr


class DeleteStudentRequest(BaseModel):
    """Request body for DELETE /api/v1/admin/students.

    student_no is only needed to clean up identity provider / mirror leftovers
    when the credential store record is already gone.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    student_no: Optional[str] = Field(default=None, max_length=128)


class StatusEmailRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    student_name: str = Field(min_length=1, max_length=200)
    scholarship_type: str = Field(min_length=1, max_length=200)
    status: ApplicationStatusEnum


class ProfilePatch(BaseModel):
    """Request body for PATCH /api/v1/students/me.

    Only profile fields are accepted. Email, password, verification state and
    the student number cannot be changed here.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=100)
    middle_initial: Optional[str] = Field(default=None, max_length=10)
    last_name: Optional[str] = Field(default=None, max_length=100)
    course: Optional[str] = Field(default=None, max_length=100)
    year_level: Optional[str] = Field(default=None, max_length=20)


class ApplicationStatusPatch(BaseModel):
    status: ApplicationStatusEnum
    notify: bool = False


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of a student. id is the join key (identity provider UID)."""

    id: str
    student_no: str
    email: str
    first_name: str
    middle_initial: Optional[str] = None
    last_name: str
    course: Optional[str] = None
    year_level: Optional[str] = None
    role: str
    is_verified: bool
    verified_at: Optional[str] = None
    last_login_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserOut":
        return cls(
            id=record.student_no,
            student_no=record.student_no,
            email=record.email,
            first_name=record.first_name,
            middle_initial=record.middle_initial,
            last_name=record.last_name,
            course=record.course,
            year_level=record.year_level,
            role=record.role,
            is_verified=record.is_verified,
            verified_at=record.verified_at,
            last_login_at=record.last_login_at,
        )


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class RegisterResponse(MessageResponse):
    student_no: str
    email_sent: bool
    needs_verification: bool = True


class LoginResponse(MessageResponse):
    token: str
    user: UserOut


class VerifyResponse(MessageResponse):
    already_verified: bool
    user: UserOut


class ResendResponse(MessageResponse):
    already_verified: bool


class ProfileResponse(MessageResponse):
    user: UserOut


class DeleteResponse(MessageResponse):
    credential_deleted: bool
    identity_deleted: bool
    mirror_deleted: bool


class ResyncResponse(MessageResponse):
    uid: str
    created: bool
    mirror_synced: bool


class ApplicationOut(BaseModel):
    id: int
    student_no: str
    scholarship_type: str
    status: str
    documents: dict[str, str]
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: ApplicationRecord) -> "ApplicationOut":
        return cls(
            id=record.id,
            student_no=record.student_no,
            scholarship_type=record.scholarship_type,
            status=record.status,
            documents=record.documents,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ApplicationResponse(MessageResponse):
    application: ApplicationOut
    email_sent: Optional[bool] = None


class ApplicationListResponse(MessageResponse):
    applications: list[ApplicationOut]


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
