"""Tests for Settings validation and derived values."""

import os

import pytest
from chatreact.core.config import Settings, get_settings
from pydantic import ValidationError


class TestSettingsDefaults:
    def test_reaction_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.REACTION_MAX_PER_MINUTE == 10
        assert settings.REACTION_MAX_PER_HOUR == 200
        assert settings.REACTION_MESSAGE_COOLDOWN_MS == 5000
        assert settings.REACTION_USER_COOLDOWN_MS == 1000
        assert settings.REACTION_HISTORY_TTL_SECONDS == 24 * 3600
        assert settings.REACTION_COUNTER_TTL_SECONDS == 30 * 86400
        assert settings.WHATSAPP_API_VERSION == "v18.0"

    def test_db_path_under_data_dir(self, tmp_path):
        settings = Settings(_env_file=None, DATA_DIR=str(tmp_path))
        assert settings.REACTION_DB_PATH == os.path.join(str(tmp_path), "reactions.db")

    def test_whatsapp_configured(self):
        unconfigured = Settings(_env_file=None, WHATSAPP_TOKEN="", PHONE_NUMBER_ID="")
        assert not unconfigured.whatsapp_configured
        assert Settings(
            _env_file=None, WHATSAPP_TOKEN="tok", PHONE_NUMBER_ID="1"
        ).whatsapp_configured


class TestSettingsValidation:
    def test_zero_limit_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, REACTION_MAX_PER_MINUTE=0)

    def test_negative_cooldown_clamped(self):
        settings = Settings(_env_file=None, REACTION_USER_COOLDOWN_MS=-5)
        assert settings.REACTION_USER_COOLDOWN_MS == 0

    def test_store_backend_normalized(self):
        settings = Settings(_env_file=None, REACTION_STORE_BACKEND=" SQLite ")
        assert settings.REACTION_STORE_BACKEND == "sqlite"

    def test_unknown_store_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, REACTION_STORE_BACKEND="redis")

    def test_api_url_trailing_slash_stripped(self):
        settings = Settings(_env_file=None, WHATSAPP_API_URL="https://graph.facebook.com/")
        assert settings.WHATSAPP_API_URL == "https://graph.facebook.com"

    def test_unknown_log_level_falls_back(self):
        assert Settings(_env_file=None, LOG_LEVEL="chatty").LOG_LEVEL == "INFO"
        assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("REACTION_MAX_PER_MINUTE", "3")
        assert get_settings().REACTION_MAX_PER_MINUTE == 3

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()
