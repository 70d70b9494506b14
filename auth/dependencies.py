"""
auth/dependencies.py -- FastAPI Depends() helpers for services and authentication.

get_services() returns the connected PortalServices from app.state, or raises
DependencyUnavailable (503) while the lifespan has not finished connecting.

Two callers are recognised:
  1. Students: Authorization: Bearer <identity provider ID token>. The client
     obtains it by exchanging the custom token returned from login. The token's
     uid is the join key; the credential store record must exist and be verified.
  2. Operators: X-Admin-Key header equal to ADMIN_API_KEY (constant-time compare).
     A shared-secret gate, not a role policy.

Layer rule: no imports from web/ or api/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from auth.models import UserRecord
from auth.tokens import is_admin_key
from core.errors import DependencyUnavailable, NotVerified
from identity.provider import IdentityErrorKind, IdentityProviderError

logger = logging.getLogger("scholarship.auth")


def get_services(request: Request):
    """Return the connected PortalServices. Raises 503 if startup has not completed."""
    services = getattr(request.app.state, "services", None)
    if services is None or not services.connected:
        raise DependencyUnavailable()
    return services


def require_admin(request: Request, services=Depends(get_services)) -> None:
    """Require a valid X-Admin-Key header. Raises HTTP 403 otherwise.

    Use as a FastAPI dependency:
        @router.delete("/admin/students", dependencies=[Depends(require_admin)])
    """
    raw_key = request.headers.get("X-Admin-Key", "")
    if not is_admin_key(raw_key, services.settings.admin_api_key):
        logger.warning("Rejected admin request to %s", request.url.path)
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )


def get_current_student(request: Request, services=Depends(get_services)) -> UserRecord:
    """Require a student ID token. Raises HTTP 401 if missing or invalid.

    Use as a FastAPI dependency:
        @router.get("/students/me")
        def route(student: UserRecord = Depends(get_current_student)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else ""
    if not token:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )

    try:
        uid = services.provider.verify_id_token(token)
    except IdentityProviderError as exc:
        if exc.kind is not IdentityErrorKind.INVALID_TOKEN:
            logger.error("ID token verification failed: %s", exc)
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or expired session."},
        ) from exc

    record = services.users.find_by_student_no(uid)
    if record is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or expired session."},
        )
    if not record.is_verified:
        raise NotVerified()
    return record
