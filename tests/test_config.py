"""Tests for core/config.py -- Settings validation rules."""

import pytest
from pydantic import ValidationError

from core.config import Settings

_KEY = "k" * 32


def test_production_requires_admin_key(monkeypatch):
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    with pytest.raises(ValidationError, match="ADMIN_API_KEY is required"):
        Settings(_env_file=None, debug=False, admin_api_key="")


def test_debug_generates_admin_key():
    settings = Settings(_env_file=None, debug=True, admin_api_key="")
    assert len(settings.admin_api_key) == 64


def test_short_admin_key_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(_env_file=None, admin_api_key="short")


def test_ttl_must_be_positive():
    with pytest.raises(ValidationError, match="VERIFICATION_CODE_TTL_MINUTES"):
        Settings(_env_file=None, admin_api_key=_KEY, verification_code_ttl_minutes=0)


def test_bcrypt_rounds_bounds():
    with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
        Settings(_env_file=None, admin_api_key=_KEY, bcrypt_rounds=3)


def test_env_vars_are_read(monkeypatch):
    monkeypatch.setenv("VERIFICATION_CODE_TTL_MINUTES", "30")
    monkeypatch.setenv("PROFILE_COLLECTION", "scholars")
    settings = Settings(_env_file=None, admin_api_key=_KEY)
    assert settings.verification_code_ttl_minutes == 30
    assert settings.profile_collection == "scholars"
