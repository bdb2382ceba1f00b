"""
Tests for environment-driven settings.
"""

import pytest

from minichat.core.config import DEFAULT_FRONTEND_URL, Settings

ENV_VARS = [
    "DATABASE_URL", "LLM_PROVIDER", "OPENAI_API_KEY", "OPENAI_MODEL", "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL", "OLLAMA_BASE_URL", "OLLAMA_MODEL", "MAX_TOKENS", "TEMPERATURE",
    "LLM_REQUEST_TIMEOUT", "LLM_FALLBACK_TO_MOCK", "HISTORY_LIMIT", "FRONTEND_URL",
    "FRONTEND_URL2", "PORT", "RATE_LIMIT_ENABLED", "RATE_LIMIT_GLOBAL", "RATE_LIMIT_CHAT_CREATE",
    "RATE_LIMIT_MESSAGE_SEND", "ENVIRONMENT", "LOG_LEVEL", "LOG_FORMAT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettingsFromEnv:
    """Test reading configuration from the environment."""

    def test_defaults(self, clean_env):
        settings = Settings.from_env()

        assert settings.database_url == "sqlite:///./minichat.db"
        assert settings.llm_provider == "openai"
        assert settings.openai_api_key is None
        assert settings.openai_model == "gpt-3.5-turbo"
        assert settings.max_tokens == 500
        assert settings.temperature == 0.7
        assert settings.llm_request_timeout is None
        assert settings.llm_fallback_to_mock is True
        assert settings.history_limit == 10
        assert settings.cors_origins == [DEFAULT_FRONTEND_URL]
        assert settings.port == 5000
        assert settings.rate_limit_enabled is True
        assert settings.rate_limit_global == "100/15minutes"
        assert settings.rate_limit_chat_create == "50/30minutes"
        assert settings.rate_limit_message_send == "50/10minutes"
        assert settings.is_development

    def test_overrides(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "Ollama")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("MAX_TOKENS", "128")
        clean_env.setenv("TEMPERATURE", "0")
        clean_env.setenv("LLM_REQUEST_TIMEOUT", "12.5")
        clean_env.setenv("LLM_FALLBACK_TO_MOCK", "false")
        clean_env.setenv("FRONTEND_URL", "https://chat.example.com")
        clean_env.setenv("RATE_LIMIT_ENABLED", "0")
        clean_env.setenv("ENVIRONMENT", "production")
        clean_env.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.llm_provider == "ollama"
        assert settings.openai_api_key == "sk-test"
        assert settings.max_tokens == 128
        assert settings.temperature == 0.0
        assert settings.llm_request_timeout == 12.5
        assert settings.llm_fallback_to_mock is False
        assert settings.cors_origins == ["https://chat.example.com", DEFAULT_FRONTEND_URL]
        assert settings.rate_limit_enabled is False
        assert not settings.is_development
        assert settings.log_level == "DEBUG"

    def test_invalid_numbers_fall_back(self, clean_env):
        clean_env.setenv("MAX_TOKENS", "lots")
        clean_env.setenv("TEMPERATURE", "warm")
        clean_env.setenv("PORT", "")

        settings = Settings.from_env()

        assert settings.max_tokens == 500
        assert settings.temperature == 0.7
        assert settings.port == 5000
