"""Unit tests for core/config.py -- Settings validation.

Covers:
- missing SECRET_KEY is fatal outside debug mode, generated inside it
- short secrets and out-of-range numeric settings are rejected
- secure cookies switch on only in production
"""

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_SECRET = "s" * 32


def test_missing_secret_outside_debug_is_fatal():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False, secret_key="")


def test_debug_generates_secret():
    settings = Settings(_env_file=None, debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_short_secret_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, secret_key="too-short")


@pytest.mark.parametrize(
    "overrides",
    [
        {"bcrypt_rounds": 3},
        {"bcrypt_rounds": 32},
        {"token_expire_seconds": 10},
        {"max_sessions_per_user": 0},
    ],
)
def test_out_of_range_values_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key=GOOD_SECRET, **overrides)


def test_defaults():
    settings = Settings(_env_file=None, secret_key=GOOD_SECRET)
    assert settings.token_expire_seconds == 3600
    assert settings.bcrypt_rounds == 10
    assert settings.enforce_session_registry is True
    assert settings.jwt_algorithm == "HS256"


@pytest.mark.parametrize(("environment", "secure"), [("production", True), ("development", False), ("test", False)])
def test_secure_cookies_follow_environment(environment, secure):
    settings = Settings(_env_file=None, secret_key=GOOD_SECRET, environment=environment)
    assert settings.secure_cookies is secure
