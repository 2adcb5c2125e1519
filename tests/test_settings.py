"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from llmroute.config import Environment, ProviderMode, Settings


class TestSettings:
    """Test Settings model and validation."""

    def test_default_settings_load_correctly(self):
        settings = Settings()

        assert settings.environment == Environment.DEV
        assert settings.debug is True  # Auto-set from DEV environment
        assert settings.provider_mode == ProviderMode.MOCK
        assert settings.chars_per_token == 4
        assert settings.completion_reserve_ratio == 0.25
        assert settings.enabled_providers == ["openai", "anthropic", "google", "mistral"]

    def test_production_blocks_mock_provider(self):
        with pytest.raises(RuntimeError, match="PROVIDER_MODE=mock"):
            Settings(environment=Environment.PROD, litellm_api_key="sk-production-key")

    def test_production_blocks_default_litellm_key(self):
        with pytest.raises(RuntimeError, match="LITELLM_API_KEY"):
            Settings(environment=Environment.PROD, provider_mode=ProviderMode.LITELLM)

    def test_production_settings_accepted(self):
        settings = Settings(
            environment=Environment.PROD,
            provider_mode=ProviderMode.LITELLM,
            litellm_api_key="sk-production-key",
            debug=False,
        )
        assert settings.is_prod is True
        assert settings.is_dev is False
        assert settings.debug is False

    def test_test_environment_counts_as_dev(self):
        settings = Settings(environment=Environment.TEST)
        assert settings.is_dev is True
        assert settings.is_prod is False

    def test_reserve_ratio_must_leave_room_for_prompt(self):
        with pytest.raises(ValidationError):
            Settings(completion_reserve_ratio=1.0)

    def test_chars_per_token_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(chars_per_token=0)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CHARS_PER_TOKEN", "3")
        monkeypatch.setenv("ENABLED_PROVIDERS", '["openai"]')
        monkeypatch.setenv("SEGMENT_TIMEOUT_SECONDS", "30")

        settings = Settings()

        assert settings.chars_per_token == 3
        assert settings.enabled_providers == ["openai"]
        assert settings.segment_timeout_seconds == 30.0
