"""
tests/conftest.py -- Shared test fixtures for scholarship portal tests.

This module provides:
  - make_services(): a PortalServices wired to an isolated in-memory DB and
    the in-memory fakes from tests/fakes.py
  - _patch_lifespan(): puts that PortalServices on app.state, bypassing the
    real startup (no Firebase app is ever initialized in tests)
  - services: connected PortalServices for flow-level tests
  - portal: (TestClient, services) for HTTP integration tests
  - admin_headers: X-Admin-Key header for admin routes

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each fixture instance gets a fresh uuid-named DB, so tests never see
each other's accounts.

Environment must be set before any project import: get_settings() is cached
and auth/tokens.py hashes its timing dummy at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key-0123456789abcdef0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SENDGRID_API_KEY", "")
os.environ.setdefault("PUBLIC_URL", "http://portal.test")
for _limit in ("LOGIN_RATE_LIMIT", "REGISTER_RATE_LIMIT", "VERIFY_RATE_LIMIT", "RESEND_RATE_LIMIT"):
    os.environ.setdefault(_limit, "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from container import PortalServices
from core.config import get_settings
from fakes import FakeIdentityProvider, FakeMailer, FakeObjectStore, FakeProfileMirror

ADMIN_KEY = os.environ["ADMIN_API_KEY"]


def memory_db_url(prefix: str = "portal") -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_services(**overrides) -> PortalServices:
    """Build an unconnected PortalServices on a fresh in-memory DB with fake adapters.

    Keyword overrides replace individual fakes (provider=, mirror=, objects=, mailer=).
    """
    settings = get_settings().model_copy(update={"database_url": memory_db_url()})
    adapters = {
        "provider": FakeIdentityProvider(),
        "mirror": FakeProfileMirror(),
        "objects": FakeObjectStore(),
        "mailer": FakeMailer(),
    }
    adapters.update(overrides)
    return PortalServices(settings, **adapters)


def _patch_lifespan(services: PortalServices):
    """Return an async context manager that replaces the real lifespan.

    Connects the given services exactly as the real lifespan does, but with
    fakes already injected so nothing reaches Firebase or SendGrid.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        services.connect()
        app.state.services = services
        yield
        services.close()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def services() -> Generator[PortalServices, None, None]:
    svc = make_services().connect()
    yield svc
    svc.close()


@pytest.fixture
def portal() -> Generator[tuple[TestClient, PortalServices], None, None]:
    """Yield (client, services) running the real app against fakes."""
    svc = make_services()
    app.router.lifespan_context = _patch_lifespan(svc)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, svc


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}


# ---------------------------------------------------------------------------
# Helpers shared by API tests
# ---------------------------------------------------------------------------


def register(client: TestClient, email: str = "a@x.com", password: str = "Pw1!", **fields):
    body = {"email": email, "password": password, "first_name": "Alice", "last_name": "Lee"}
    body.update(fields)
    return client.post("/api/v1/auth/register", json=body)


def register_verified(client: TestClient, services: PortalServices, email: str = "a@x.com", **fields) -> str:
    """Register and verify an account through the API. Returns the student_no."""
    resp = register(client, email=email, **fields)
    assert resp.status_code == 201, resp.text
    code = services.mailer.last_code(email)
    resp = client.post("/api/v1/auth/verify-code", json={"email": email, "code": code})
    assert resp.status_code == 200, resp.text
    return resp.json()["user"]["student_no"]


def student_headers(services: PortalServices, student_no: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {services.provider.issue_id_token(student_no)}"}
