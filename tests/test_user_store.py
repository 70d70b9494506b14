"""Unit tests for auth/store.py -- the credential store.

Covers:
- insert / find_by_email / find_by_student_no round trip
- UNIQUE constraints raise DuplicateKey naming the field
- consume_code() succeeds once and only for a live, unexpired code
- purge_expired_code() clears a stale code, leaves a live one
- mark_verified() stamps verified_at only on the first transition
- update_verification() never re-arms a verified account
- update_profile() refuses non-profile fields
- delete_by_email() reports whether a row was removed
"""

from datetime import timedelta

import pytest

from auth.models import UserRecord
from auth.store import DuplicateKey, UserStore, to_iso, utc_now
from conftest import memory_db_url


@pytest.fixture
def store():
    s = UserStore(memory_db_url("store"))
    yield s
    s.close()


def _record(email="a@x.com", student_no="2024-0001", code="123456", token="t" * 64, minutes=15) -> UserRecord:
    return UserRecord(
        student_no=student_no,
        email=email,
        hashed_password="hash",
        first_name="Alice",
        last_name="Lee",
        verification_code=code,
        verification_token=token,
        code_expires_at=to_iso(utc_now() + timedelta(minutes=minutes)),
    )


def test_insert_and_find(store):
    store.insert(_record())
    by_email = store.find_by_email("a@x.com")
    by_no = store.find_by_student_no("2024-0001")
    assert by_email is not None and by_no is not None
    assert by_email.student_no == by_no.student_no == "2024-0001"
    assert by_email.is_verified is False
    assert by_email.role == "student"
    assert by_email.created_at
    assert store.count_users() == 1


def test_find_missing_returns_none(store):
    assert store.find_by_email("nobody@x.com") is None
    assert store.find_by_student_no("nope") is None


def test_duplicate_email_names_field(store):
    store.insert(_record())
    with pytest.raises(DuplicateKey) as exc_info:
        store.insert(_record(student_no="2024-0002"))
    assert exc_info.value.field == "email"
    assert store.count_users() == 1


def test_duplicate_student_no_names_field(store):
    store.insert(_record())
    with pytest.raises(DuplicateKey) as exc_info:
        store.insert(_record(email="b@x.com"))
    assert exc_info.value.field == "student_no"


def test_consume_code_succeeds_once(store):
    store.insert(_record())
    now = utc_now()
    assert store.consume_code("a@x.com", "123456", now) is True
    assert store.consume_code("a@x.com", "123456", now) is False

    record = store.find_by_email("a@x.com")
    assert record.is_verified is True
    assert record.verified_at is not None
    assert record.verification_code is None
    assert record.verification_token is None
    assert record.code_expires_at is None


def test_consume_code_rejects_wrong_code(store):
    store.insert(_record())
    assert store.consume_code("a@x.com", "654321", utc_now()) is False
    assert store.find_by_email("a@x.com").is_verified is False


def test_consume_code_rejects_expired_code(store):
    store.insert(_record(minutes=-1))
    assert store.consume_code("a@x.com", "123456", utc_now()) is False
    assert store.find_by_email("a@x.com").is_verified is False


def test_consume_token(store):
    store.insert(_record())
    assert store.consume_token("a@x.com", "t" * 64, utc_now()) is True
    assert store.find_by_email("a@x.com").is_verified is True


def test_purge_expired_code(store):
    store.insert(_record(email="old@x.com", student_no="1", minutes=-5))
    store.insert(_record(email="live@x.com", student_no="2", minutes=5))
    now = utc_now()
    assert store.purge_expired_code("old@x.com", now) is True
    assert store.purge_expired_code("live@x.com", now) is False
    assert store.find_by_email("old@x.com").verification_code is None
    assert store.find_by_email("live@x.com").verification_code == "123456"


def test_mark_verified_only_first_time(store):
    store.insert(_record())
    assert store.mark_verified("a@x.com") is True
    first = store.find_by_email("a@x.com").verified_at
    assert store.mark_verified("a@x.com") is False
    assert store.find_by_email("a@x.com").verified_at == first


def test_update_verification_replaces_code(store):
    store.insert(_record())
    expires = utc_now() + timedelta(minutes=15)
    assert store.update_verification("a@x.com", "999999", "u" * 64, expires) is True
    record = store.find_by_email("a@x.com")
    assert record.verification_code == "999999"
    assert record.verification_token == "u" * 64
    # The old code is gone.
    assert store.consume_code("a@x.com", "123456", utc_now()) is False


def test_update_verification_never_rearms_verified(store):
    store.insert(_record())
    store.mark_verified("a@x.com")
    assert store.update_verification("a@x.com", "999999", "u" * 64, utc_now()) is False
    assert store.find_by_email("a@x.com").verification_code is None


def test_update_profile(store):
    store.insert(_record())
    assert store.update_profile("2024-0001", course="BSCS", year_level="3") is True
    record = store.find_by_student_no("2024-0001")
    assert record.course == "BSCS"
    assert record.year_level == "3"


def test_update_profile_rejects_auth_fields(store):
    store.insert(_record())
    with pytest.raises(ValueError):
        store.update_profile("2024-0001", is_verified=1)
    with pytest.raises(ValueError):
        store.update_profile("2024-0001", student_no="other")


def test_update_last_login(store):
    store.insert(_record())
    store.update_last_login("2024-0001")
    assert store.find_by_email("a@x.com").last_login_at is not None


def test_delete_by_email(store):
    store.insert(_record())
    assert store.delete_by_email("a@x.com") is True
    assert store.delete_by_email("a@x.com") is False
    assert store.find_by_email("a@x.com") is None


def test_list_users(store):
    assert store.list_users() == []
    store.insert(_record())
    store.insert(_record(email="b@x.com", student_no="2024-0002"))
    assert {r.email for r in store.list_users()} == {"a@x.com", "b@x.com"}


def test_ping(store):
    assert store.ping() is True
