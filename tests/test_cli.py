"""
tests/test_cli.py -- The scholarship-admin operator CLI (main.py).

Each test gets its own in-memory PortalServices through services_factory, so
nothing touches Firebase or a real database.
"""

from __future__ import annotations

import pytest

from conftest import make_services
from fakes import mirror_down
from main import main


@pytest.fixture
def cli_services():
    """One PortalServices shared by setup and the CLI run (close() is idempotent)."""
    svc = make_services().connect()
    yield svc
    svc.close()


def _run(services, *argv: str) -> int:
    return main(list(argv), services_factory=lambda: services)


def test_show_prints_record(cli_services, capsys):
    cli_services.accounts.register(email="a@x.com", password="Pw1!", first_name="Alice", student_no="2024-0001")
    assert _run(cli_services, "show", "A@x.com") == 0
    out = capsys.readouterr().out
    assert "2024-0001" in out
    assert "verified     no" in out


def test_list_prints_every_account(cli_services, capsys):
    cli_services.accounts.register(email="a@x.com", password="Pw1!", student_no="2024-0001")
    cli_services.accounts.register(email="b@x.com", password="Pw1!", student_no="2024-0002")
    cli_services.accounts.mark_verified("b@x.com")
    assert _run(cli_services, "list") == 0
    out = capsys.readouterr().out
    assert "2024-0001" in out
    assert "2024-0002" in out
    assert "2 account(s)." in out


def test_list_empty(cli_services, capsys):
    assert _run(cli_services, "list") == 0
    assert "No accounts." in capsys.readouterr().out


def test_show_unknown_email(cli_services, capsys):
    assert _run(cli_services, "show", "nobody@x.com") == 1
    assert "No account" in capsys.readouterr().out


def test_verify_marks_and_syncs(cli_services, capsys):
    cli_services.accounts.register(email="a@x.com", password="Pw1!", student_no="2024-0001")
    assert _run(cli_services, "verify", "a@x.com") == 0
    assert cli_services.provider.users["2024-0001"].email_verified is True
    assert "synced as 2024-0001" in capsys.readouterr().out


def test_resync_reports_mirror_failure(cli_services, capsys):
    cli_services.accounts.register(email="a@x.com", password="Pw1!", student_no="2024-0001")
    cli_services.mirror.fail_next["upsert_merge"] = mirror_down()
    assert _run(cli_services, "resync", "a@x.com") == 1
    assert "FAILED" in capsys.readouterr().out


def test_delete_with_student_no(cli_services, capsys):
    cli_services.provider.create_user(uid="2024-0042", email="gone@x.com", display_name="", email_verified=True)
    assert _run(cli_services, "delete", "gone@x.com", "--student-no", "2024-0042") == 0
    out = capsys.readouterr().out
    assert "credential store   not found" in out
    assert "identity provider  deleted" in out


def test_portal_error_is_reported(cli_services, capsys):
    assert _run(cli_services, "resync", "nobody@x.com") == 1
    assert "(not_found)" in capsys.readouterr().out
