"""
web/routes.py -- Server-rendered landing page for the one-click verification link.

The verification email links to GET /verify-link?token=...&email=... . A
browser opens it directly, so the answer is an HTML page, not the JSON
envelope used by api/. It shares app.state.services with the API routes.

Routes:
  GET /verify-link   -- verify by link token, render the outcome

Outcomes rendered (status code in brackets):
  verified [200], already verified [200], invalid or expired link [400],
  identity conflict [409], sync failure [500], services not ready [503].
The raw query values are never echoed into the page.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from core.errors import (
    AccountNotFound,
    DependencyFailure,
    IdentityProviderConflict,
    InvalidOrExpiredCode,
    ValidationFailed,
)

logger = logging.getLogger("scholarship.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# outcome -> (title, message, ok)
_OUTCOMES: dict[str, tuple[str, str, bool]] = {
    "verified": ("Email verified", "Your account is verified. You can now log in to the scholarship portal.", True),
    "already_verified": ("Already verified", "This account was already verified. You can log in.", True),
    "invalid": (
        "Link invalid or expired",
        "This verification link is invalid or has expired. Request a new code from the login page.",
        False,
    ),
    "conflict": (
        "Account conflict",
        "Your account is verified, but this email is linked to another sign-in account. Contact support.",
        False,
    ),
    "sync_failed": (
        "Almost there",
        "Your account is verified, but we could not finish setting it up. Try logging in in a few minutes.",
        False,
    ),
    "unavailable": ("Service unavailable", "The portal is starting up. Please try the link again shortly.", False),
}


def _render(request: Request, outcome: str, status_code: int) -> HTMLResponse:
    title, message, ok = _OUTCOMES[outcome]
    return templates.TemplateResponse(
        request,
        "verify_result.html",
        {"title": title, "message": message, "ok": ok},
        status_code=status_code,
    )


@router.get("/verify-link", response_class=HTMLResponse)
def verify_link(request: Request, token: str = "", email: str = "") -> HTMLResponse:
    services = getattr(request.app.state, "services", None)
    if services is None or not services.connected:
        return _render(request, "unavailable", 503)

    try:
        outcome = services.accounts.verify_by_token(token, email)
    except (InvalidOrExpiredCode, AccountNotFound, ValidationFailed):
        return _render(request, "invalid", 400)
    except IdentityProviderConflict:
        return _render(request, "conflict", 409)
    except DependencyFailure:
        return _render(request, "sync_failed", 500)

    if outcome.already_verified:
        return _render(request, "already_verified", 200)
    return _render(request, "verified", 200)
