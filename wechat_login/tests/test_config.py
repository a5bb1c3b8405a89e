"""
Configuration Tests

Tests for wechat_login/config.py: field validators, computed properties and
the startup configuration report.
"""

import pytest
from pydantic import ValidationError

from wechat_login.config import Settings, validate_configuration

SECRET = "test-session-secret-0123456789abcdef"


def make_settings(**overrides):
    values = {
        "WECHAT_APP_ID": "wx-test-app",
        "WECHAT_APP_SECRET": "test-app-secret",
        "WECHAT_REDIRECT_URI": "http://localhost:3000/auth/callback",
        "SESSION_SECRET": SECRET,
        "APP_ENV": "test",
        "ALLOWED_ORIGINS": None,
    }
    values.update(overrides)
    return Settings(**values)


class TestValidators:

    def test_app_env_is_normalized(self):
        assert make_settings(APP_ENV=" Production ").APP_ENV == "production"

    def test_unknown_app_env(self):
        with pytest.raises(ValidationError):
            make_settings(APP_ENV="staging")

    def test_log_level_is_normalized(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="verbose")

    def test_rejects_non_hmac_algorithm(self):
        with pytest.raises(ValidationError):
            make_settings(SESSION_JWT_ALGORITHM="RS256")

    def test_rejects_short_session_secret(self):
        with pytest.raises(ValidationError):
            make_settings(SESSION_SECRET="too-short")

    def test_random_session_secret_when_unset(self):
        settings = Settings(APP_ENV="test", _env_file=None)

        assert len(settings.SESSION_SECRET) == 64


class TestProperties:

    @pytest.mark.parametrize("app_env, secure", [
        ("development", False),
        ("test", False),
        ("production", True),
    ])
    def test_cookie_secure_only_in_production(self, app_env, secure):
        assert make_settings(APP_ENV=app_env).session_cookie_secure is secure

    def test_allowed_origins_list(self):
        settings = make_settings(ALLOWED_ORIGINS="http://localhost:3000, https://example.com,")

        assert settings.allowed_origins_list == ["http://localhost:3000", "https://example.com"]

    def test_no_allowed_origins(self):
        assert make_settings().allowed_origins_list == []


class TestValidateConfiguration:

    def test_complete_configuration(self):
        report = validate_configuration(make_settings())

        assert report["valid"] is True
        assert report["errors"] == []
        assert report["warnings"] == []

    def test_missing_app_id_and_redirect(self):
        report = validate_configuration(make_settings(WECHAT_APP_ID="", WECHAT_REDIRECT_URI=""))

        assert report["valid"] is False
        assert len(report["errors"]) == 2

    def test_missing_secret_is_a_warning(self):
        report = validate_configuration(make_settings(WECHAT_APP_SECRET=None))

        assert report["valid"] is True
        assert any("WECHAT_APP_SECRET" in w for w in report["warnings"])

    def test_random_session_secret_is_a_warning(self):
        settings = Settings(
            WECHAT_APP_ID="wx-test-app",
            WECHAT_APP_SECRET="test-app-secret",
            WECHAT_REDIRECT_URI="http://localhost:3000/auth/callback",
            _env_file=None,
        )

        report = validate_configuration(settings)

        assert any("SESSION_SECRET" in w for w in report["warnings"])

    def test_plain_http_redirect_in_production(self):
        report = validate_configuration(make_settings(APP_ENV="production"))

        assert report["cookie_secure"] is True
        assert any("plain http" in w for w in report["warnings"])
