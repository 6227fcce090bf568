"""
Tests for configuration management
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from storefront.config import ConfigValidator, Settings, get_config, reset_config


@pytest.fixture
def in_tmp_dir(tmp_path, monkeypatch):
    """Run from an empty directory so no real .env or logs/ are touched"""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestSettings:
    """Test Settings model"""

    def test_settings_from_environment(self, in_tmp_dir):
        settings = Settings()
        assert settings.bot_token.startswith("123456789:")
        assert settings.admin_chat_id == 987654321
        assert settings.api_base_url == "https://api.test.example.com/api"
        assert settings.environment == "test"
        assert settings.log_level == "DEBUG"

    def test_settings_defaults(self, in_tmp_dir):
        with patch.dict(os.environ, {"BOT_TOKEN": "token"}, clear=True):
            settings = Settings()
        assert settings.admin_chat_id is None
        assert settings.api_base_url == "http://localhost:3000/api"
        assert settings.currency_symbol == "$"
        assert settings.default_country == "United States"
        assert settings.cache_ttl_seconds == 60
        assert settings.webhook_url is None
        assert not settings.is_production

    def test_trailing_slash_is_stripped(self, in_tmp_dir):
        with patch.dict(os.environ, {"API_BASE_URL": "https://shop.example.com/api/"}):
            assert Settings().api_base_url == "https://shop.example.com/api"

    def test_missing_token_fails(self, in_tmp_dir):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError):
                Settings()

    @pytest.mark.parametrize("name,value", [("ADMIN_CHAT_ID", "0"), ("API_TIMEOUT_SECONDS", "0"), ("CACHE_TTL_SECONDS", "-1")])
    def test_out_of_range_values_fail(self, in_tmp_dir, name, value):
        with patch.dict(os.environ, {name: value}):
            with pytest.raises(ValidationError):
                Settings()

    def test_get_config_is_cached_until_reset(self, in_tmp_dir):
        first = get_config()
        assert get_config() is first
        reset_config()
        assert get_config() is not first


class TestConfigValidator:
    """Test ConfigValidator"""

    def test_valid_test_configuration(self, in_tmp_dir):
        validator = ConfigValidator()

        assert validator.validate_all() is True
        report = validator.get_validation_report()
        assert report["valid"] is True
        assert report["config_summary"]["environment"] == "test"
        assert report["config_summary"]["admin_configured"] is True
        assert report["config_summary"]["webhook_mode"] is False

    def test_short_token_is_an_error(self, in_tmp_dir):
        with patch.dict(os.environ, {"BOT_TOKEN": "short"}):
            validator = ConfigValidator()
            assert validator.validate_all() is False
        assert "BOT_TOKEN appears too short" in validator.errors

    def test_bad_api_url_is_an_error(self, in_tmp_dir):
        with patch.dict(os.environ, {"API_BASE_URL": "ftp://shop.example.com"}):
            validator = ConfigValidator()
            assert validator.validate_all() is False
        assert any("API_BASE_URL" in error for error in validator.errors)

    def test_plain_http_webhook_is_an_error(self, in_tmp_dir):
        with patch.dict(os.environ, {"WEBHOOK_URL": "http://bot.example.com"}):
            validator = ConfigValidator()
            validator.validate_all()
        assert "WEBHOOK_URL must use https" in validator.errors

    def test_missing_admin_chat_is_a_warning(self, in_tmp_dir):
        env = {key: value for key, value in os.environ.items() if key != "ADMIN_CHAT_ID"}
        with patch.dict(os.environ, env, clear=True):
            validator = ConfigValidator()
            assert validator.validate_all() is True
        assert any("ADMIN_CHAT_ID" in warning for warning in validator.warnings)

    def test_zero_ttl_is_a_warning(self, in_tmp_dir):
        with patch.dict(os.environ, {"CACHE_TTL_SECONDS": "0"}):
            validator = ConfigValidator()
            assert validator.validate_all() is True
        assert any("CACHE_TTL_SECONDS" in warning for warning in validator.warnings)

    def test_invalid_log_level(self, in_tmp_dir):
        with patch.dict(os.environ, {"LOG_LEVEL": "LOUD"}):
            validator = ConfigValidator()
            assert validator.validate_all() is False
        assert "Invalid LOG_LEVEL: LOUD" in validator.errors
