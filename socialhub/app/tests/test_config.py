"""
Unit Tests for Configuration
============================

Tests for socialhub/app/config.py

Run tests:
----------
    pytest socialhub/app/tests/test_config.py -v
"""

import pytest
from pydantic import ValidationError

from socialhub.app.config import Settings, validate_configuration


def test_log_level_is_normalised():
    assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(LOG_LEVEL="chatty")


def test_only_hmac_algorithms_accepted():
    with pytest.raises(ValidationError):
        Settings(SESSION_JWT_ALGORITHM="RS256")


def test_short_internal_secret_rejected():
    with pytest.raises(ValidationError):
        Settings(INTERNAL_SHARED_SECRET="short")


def test_allowed_origins_list():
    settings = Settings(ALLOWED_ORIGINS="http://a.test, http://b.test,,")

    assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]
    assert Settings(ALLOWED_ORIGINS="").allowed_origins_list == []


def test_validate_configuration_warns_on_dev_defaults():
    settings = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        SESSION_JWT_SECRET=Settings.model_fields["SESSION_JWT_SECRET"].default,
        INTERNAL_SHARED_SECRET=None,
    )

    report = validate_configuration(settings)

    assert report["valid"] is True
    assert any("SESSION_JWT_SECRET" in w for w in report["warnings"])
    assert any("INTERNAL_SHARED_SECRET" in w for w in report["warnings"])
    assert any("in-memory" in w for w in report["warnings"])


def test_validate_configuration_clean(mock_settings):
    report = validate_configuration(mock_settings)

    assert report["valid"] is True
    assert report["errors"] == []
    assert report["warnings"] == []
    assert report["room_join_requires_participant"] is False
