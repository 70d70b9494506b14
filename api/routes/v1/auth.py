"""
api/routes/v1/auth.py -- Registration, verification and login REST endpoints.

Routes:
  POST /api/v1/auth/register      -- create an unverified account, email a code
  POST /api/v1/auth/verify-code   -- submit the 6-digit code
  POST /api/v1/auth/resend-code   -- arm and email a fresh code
  POST /api/v1/auth/login         -- password login; returns a custom token + profile

The one-click verification link is served by web/routes.py (/verify-link)
because it answers with an HTML page, not JSON.

Security:
  All four routes are rate-limited per IP (limits from Settings).
  Cache-Control: no-store on login and verify responses.
  Handlers are sync def: bcrypt and the Firebase SDK block, so FastAPI runs
  them in the threadpool.
  No `from __future__ import annotations` here: slowapi wraps these handlers and
  FastAPI would resolve string annotations against the wrapper module.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter, login_limit, register_limit, resend_limit, verify_limit
from api.models import (
    EmailRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    ResendResponse,
    UserOut,
    VerifyCodeRequest,
    VerifyResponse,
)
from auth.dependencies import get_services

router = APIRouter()


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(register_limit)
def register(request: Request, body: RegisterRequest, services=Depends(get_services)) -> RegisterResponse:
    """Create an unverified account and send the verification email.

    If the email could not be sent the account is kept and email_sent is
    false; the client should offer "resend code".
    """
    result = services.accounts.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        student_no=body.student_no,
        middle_initial=body.middle_initial,
        course=body.course,
        year_level=body.year_level,
    )
    if result.email_sent:
        message = "Registration successful. Please check your email for the verification code."
    else:
        message = "Registration successful, but the verification email could not be sent. Please request a new code."
    return RegisterResponse(message=message, student_no=result.record.student_no, email_sent=result.email_sent)


@router.post("/auth/verify-code", response_model=VerifyResponse)
@limiter.limit(verify_limit)
def verify_code(
    request: Request, response: Response, body: VerifyCodeRequest, services=Depends(get_services)
) -> VerifyResponse:
    """Submit a verification code. Submitting for an already-verified account succeeds as a no-op."""
    outcome = services.accounts.submit_code(body.email, body.code)
    response.headers["Cache-Control"] = "no-store"
    message = (
        "Account is already verified." if outcome.already_verified else "Account verified successfully. You can now log in."
    )
    return VerifyResponse(
        message=message,
        already_verified=outcome.already_verified,
        user=UserOut.from_record(outcome.record),
    )


@router.post("/auth/resend-code", response_model=ResendResponse)
@limiter.limit(resend_limit)
def resend_code(request: Request, body: EmailRequest, services=Depends(get_services)) -> ResendResponse:
    """Arm a fresh code (replacing the previous one) and email it."""
    sent = services.accounts.resend_code(body.email)
    if not sent:
        return ResendResponse(message="Account is already verified.", already_verified=True)
    return ResendResponse(message="A new verification code has been sent to your email.", already_verified=False)


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_limit)
def login(request: Request, response: Response, body: LoginRequest, services=Depends(get_services)) -> LoginResponse:
    """Authenticate with email and password.

    Returns a custom token the client exchanges with the identity provider for
    a full session, plus the profile. user.id is the identity provider UID.
    """
    result = services.accounts.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(message="Login successful.", token=result.token, user=UserOut.from_record(result.record))
