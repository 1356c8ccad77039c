"""Tests for settings: API key pool assembly and startup validation."""

import pytest

from interview_ai.core.config import Settings, settings, validate_settings_for_production


class TestApiKeyPool:
    def test_numbered_keys_in_order(self):
        s = Settings(_env_file=None, openai_api_key="sk-one", openai_api_key_2="sk-two", openai_api_key_3="")
        assert s.api_key_pool[:2] == ["sk-one", "sk-two"]

    def test_comma_list_appended_and_deduplicated(self):
        s = Settings(
            _env_file=None,
            openai_api_key="sk-one",
            openai_api_key_2="",
            openai_api_key_3="",
            openai_api_keys=" sk-two , sk-one,,sk-three ",
        )
        assert s.api_key_pool == ["sk-one", "sk-two", "sk-three"]

    def test_empty_pool(self):
        s = Settings(_env_file=None, openai_api_key="", openai_api_key_2="", openai_api_key_3="", openai_api_keys="")
        assert s.api_key_pool == []


class TestValidateSettings:
    def test_valid_test_settings(self):
        validate_settings_for_production()

    def test_missing_keys(self, monkeypatch):
        monkeypatch.setattr(settings, "openai_api_key", "")
        monkeypatch.setattr(settings, "openai_api_key_2", "")
        with pytest.raises(SystemExit, match="OPENAI_API_KEY"):
            validate_settings_for_production()

    def test_production_rejects_wildcard_cors(self, monkeypatch):
        monkeypatch.setattr(settings, "app_env", "production")
        monkeypatch.setattr(settings, "app_debug", False)
        monkeypatch.setattr(settings, "allowed_origins", "*")
        with pytest.raises(SystemExit, match="ALLOWED_ORIGINS"):
            validate_settings_for_production()

    def test_bad_concurrency(self, monkeypatch):
        monkeypatch.setattr(settings, "max_concurrent_requests", 0)
        with pytest.raises(SystemExit, match="MAX_CONCURRENT_REQUESTS"):
            validate_settings_for_production()
