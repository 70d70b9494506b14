"""
tests/test_api_admin.py -- Integration tests for /api/v1/admin/*.

Covers:
  - X-Admin-Key required (missing and wrong key -> 403)
  - DELETE /admin/students: per-store flags, 404 when nothing existed, leftovers by student_no
  - POST /admin/students/resync repairs the identity provider
  - POST /admin/send-status-email: sent, mail failure -> 500
"""

from __future__ import annotations

from conftest import register, register_verified


def _delete(client, body, headers):
    return client.request("DELETE", "/api/v1/admin/students", json=body, headers=headers)


class TestAdminGuard:
    def test_missing_key_is_403(self, portal) -> None:
        client, _ = portal
        resp = _delete(client, {"email": "a@x.com"}, {})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_wrong_key_is_403(self, portal) -> None:
        client, _ = portal
        resp = client.post(
            "/api/v1/admin/students/resync",
            json={"email": "a@x.com"},
            headers={"X-Admin-Key": "x" * 40},
        )
        assert resp.status_code == 403


class TestDeleteStudent:
    def test_delete_everywhere(self, portal, admin_headers) -> None:
        client, services = portal
        student_no = register_verified(client, services)
        resp = _delete(client, {"email": "a@x.com"}, admin_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["credential_deleted"] is True
        assert body["identity_deleted"] is True
        assert body["mirror_deleted"] is True
        assert services.users.find_by_email("a@x.com") is None
        assert student_no not in services.provider.users

    def test_delete_unknown_is_404(self, portal, admin_headers) -> None:
        client, _ = portal
        resp = _delete(client, {"email": "nobody@x.com"}, admin_headers)
        assert resp.status_code == 404

    def test_delete_partial_reports_flags(self, portal, admin_headers) -> None:
        client, services = portal
        student_no = register(client).json()["student_no"]
        services.provider.users.pop(student_no)
        body = _delete(client, {"email": "a@x.com"}, admin_headers).json()
        assert body["credential_deleted"] is True
        assert body["identity_deleted"] is False

    def test_delete_leftover_identity_by_student_no(self, portal, admin_headers) -> None:
        client, services = portal
        services.provider.create_user(uid="2024-0042", email="gone@x.com", display_name="", email_verified=True)
        resp = _delete(client, {"email": "gone@x.com", "student_no": "2024-0042"}, admin_headers)
        assert resp.status_code == 200
        assert resp.json()["credential_deleted"] is False
        assert resp.json()["identity_deleted"] is True


class TestResync:
    def test_resync_recreates_identity_user(self, portal, admin_headers) -> None:
        client, services = portal
        student_no = register_verified(client, services)
        services.provider.users.clear()
        resp = client.post("/api/v1/admin/students/resync", json={"email": "a@x.com"}, headers=admin_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["uid"] == student_no
        assert body["created"] is True
        assert services.provider.users[student_no].email_verified is True

    def test_resync_unknown_is_404(self, portal, admin_headers) -> None:
        client, _ = portal
        resp = client.post("/api/v1/admin/students/resync", json={"email": "no@x.com"}, headers=admin_headers)
        assert resp.status_code == 404


class TestStatusEmail:
    _body = {"email": "s@x.com", "student_name": "Alice Lee", "scholarship_type": "Academic Grant", "status": "approved"}

    def test_send_status_email(self, portal, admin_headers) -> None:
        client, services = portal
        resp = client.post("/api/v1/admin/send-status-email", json=self._body, headers=admin_headers)
        assert resp.status_code == 200
        subject, html = services.mailer.last_to("s@x.com")
        assert "APPROVED" in subject
        assert "Academic Grant" in html

    def test_unknown_status_is_400(self, portal, admin_headers) -> None:
        client, _ = portal
        body = dict(self._body, status="lost")
        resp = client.post("/api/v1/admin/send-status-email", json=body, headers=admin_headers)
        assert resp.status_code == 400

    def test_mail_failure_is_500(self, portal, admin_headers) -> None:
        client, services = portal
        services.mailer.ok = False
        resp = client.post("/api/v1/admin/send-status-email", json=self._body, headers=admin_headers)
        assert resp.status_code == 500
        assert resp.json()["success"] is False
