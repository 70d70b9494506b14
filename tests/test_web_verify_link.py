"""
tests/test_web_verify_link.py -- GET /verify-link, the one-click link in the verification email.

Covers:
  - valid link verifies and renders the success page (200)
  - reusing the link renders "already verified" (200)
  - wrong / missing token renders the invalid page (400)
  - identity conflict after verification renders 409
  - services not connected renders 503
  - query values are never echoed into the page
"""

from __future__ import annotations

from conftest import register


def test_link_verifies_account(portal) -> None:
    client, services = portal
    register(client)
    token = services.mailer.last_token("a@x.com")
    resp = client.get("/verify-link", params={"token": token, "email": "a@x.com"})
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "Email verified" in resp.text
    assert services.users.find_by_email("a@x.com").is_verified is True


def test_link_reuse_is_already_verified(portal) -> None:
    client, services = portal
    register(client)
    token = services.mailer.last_token("a@x.com")
    client.get("/verify-link", params={"token": token, "email": "a@x.com"})
    resp = client.get("/verify-link", params={"token": token, "email": "a@x.com"})
    assert resp.status_code == 200
    assert "Already verified" in resp.text


def test_wrong_token_is_invalid(portal) -> None:
    client, services = portal
    register(client)
    resp = client.get("/verify-link", params={"token": "f" * 64, "email": "a@x.com"})
    assert resp.status_code == 400
    assert "invalid or has expired" in resp.text
    assert services.users.find_by_email("a@x.com").is_verified is False


def test_missing_params_is_invalid(portal) -> None:
    client, _ = portal
    assert client.get("/verify-link").status_code == 400


def test_unknown_email_is_invalid(portal) -> None:
    client, _ = portal
    resp = client.get("/verify-link", params={"token": "f" * 64, "email": "nobody@x.com"})
    assert resp.status_code == 400


def test_query_values_not_echoed(portal) -> None:
    client, _ = portal
    resp = client.get("/verify-link", params={"token": "<script>x</script>", "email": "<b>@x.com"})
    assert "<script>" not in resp.text
    assert "<b>@x.com" not in resp.text


def test_identity_conflict_renders_409(portal) -> None:
    client, services = portal
    register(client)
    token = services.mailer.last_token("a@x.com")
    services.provider.users.clear()
    services.provider.create_user(uid="someone-else", email="a@x.com", display_name="", email_verified=True)
    resp = client.get("/verify-link", params={"token": token, "email": "a@x.com"})
    assert resp.status_code == 409
    # The credential store commit stands even though the identity provider refused.
    assert services.users.find_by_email("a@x.com").is_verified is True


def test_services_not_connected_renders_503(portal) -> None:
    client, services = portal
    services.connected = False
    try:
        resp = client.get("/verify-link", params={"token": "f" * 64, "email": "a@x.com"})
    finally:
        services.connected = True
    assert resp.status_code == 503
