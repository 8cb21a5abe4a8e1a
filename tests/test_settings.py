"""Tests for environment configuration."""

import pytest

from subtracker.core.settings import load_settings, validate_environment
from subtracker.models.schemas import Currency

JWT_KEY = "eyJhbGciOiJIUzI1NiJ9.test.key"


def _env(**overrides):
    env = {
        "SUPABASE_URL": "https://abc.supabase.co",
        "SUPABASE_ANON_KEY": JWT_KEY,
    }
    env.update(overrides)
    return {k: v for k, v in env.items() if v is not None}


class TestValidateEnvironment:
    def test_valid(self):
        result = validate_environment(_env())
        assert result.is_valid
        assert result.warnings == []

    def test_missing_required(self):
        result = validate_environment({})
        assert not result.is_valid
        assert "SUPABASE_URL is required" in result.errors
        assert "SUPABASE_ANON_KEY is required" in result.errors

    def test_invalid_url(self):
        result = validate_environment(_env(SUPABASE_URL="not a url"))
        assert "SUPABASE_URL is not a valid URL" in result.errors

    def test_non_supabase_host_warns(self):
        result = validate_environment(_env(SUPABASE_URL="https://example.com"))
        assert result.is_valid
        assert any("Supabase instance" in w for w in result.warnings)

    def test_localhost_allowed(self):
        result = validate_environment(_env(SUPABASE_URL="http://localhost:54321"))
        assert result.is_valid
        assert result.warnings == []

    def test_production_requires_https(self):
        result = validate_environment(
            _env(SUPABASE_URL="http://abc.supabase.co", SUBTRACKER_ENV="production")
        )
        assert "Production SUPABASE_URL must use HTTPS" in result.errors

    def test_non_jwt_key_warns(self):
        result = validate_environment(_env(SUPABASE_ANON_KEY="plain-key"))
        assert result.is_valid
        assert any("JWT" in w for w in result.warnings)

    def test_unsupported_default_currency(self):
        result = validate_environment(_env(SUBTRACKER_DEFAULT_CURRENCY="XYZ"))
        assert not result.is_valid


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(_env())
        assert settings.supabase_url == "https://abc.supabase.co"
        assert settings.access_token is None
        assert settings.user_id is None
        assert settings.default_currency == Currency.USD
        assert settings.drafts_file is None
        assert settings.environment == "development"

    def test_optional_values(self):
        settings = load_settings(_env(
            SUBTRACKER_ACCESS_TOKEN="user-jwt",
            SUBTRACKER_USER_ID="user-1",
            SUBTRACKER_DEFAULT_CURRENCY="gbp",
            SUBTRACKER_DRAFTS_FILE="/tmp/drafts.json",
        ))
        assert settings.access_token == "user-jwt"
        assert settings.user_id == "user-1"
        assert settings.default_currency == Currency.GBP
        assert settings.drafts_file == "/tmp/drafts.json"

    def test_invalid_raises_with_every_error(self):
        with pytest.raises(RuntimeError) as exc_info:
            load_settings({})
        assert "SUPABASE_URL is required" in str(exc_info.value)
        assert "SUPABASE_ANON_KEY is required" in str(exc_info.value)
