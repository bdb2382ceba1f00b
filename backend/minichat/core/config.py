"""
Application settings.

All values come from environment variables; a `.env` file in the working
directory is loaded first.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

import structlog
from dotenv import load_dotenv

load_dotenv()

logger = structlog.get_logger(__name__)

APP_VERSION = "1.0.0"
DEFAULT_FRONTEND_URL = "http://localhost:3000"


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer in environment, using default", variable=name, value=raw, default=default)
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number in environment, using default", variable=name, value=raw, default=default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_str(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime configuration for the chat API."""

    database_url: str = "sqlite:///./minichat.db"

    # Completion provider
    llm_provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-haiku-latest"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    max_tokens: int = 500
    temperature: float = 0.7
    llm_request_timeout: Optional[float] = None
    llm_fallback_to_mock: bool = True
    history_limit: int = 10

    # HTTP
    cors_origins: list[str] = field(default_factory=lambda: [DEFAULT_FRONTEND_URL])
    port: int = 5000
    rate_limit_enabled: bool = True
    rate_limit_global: str = "100/15minutes"
    rate_limit_chat_create: str = "50/30minutes"
    rate_limit_message_send: str = "50/10minutes"

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current process environment."""
        origins = [
            _env_str("FRONTEND_URL", DEFAULT_FRONTEND_URL),
            _env_str("FRONTEND_URL2", DEFAULT_FRONTEND_URL),
        ]

        return cls(
            database_url=_env_str("DATABASE_URL", cls.database_url),
            llm_provider=_env_str("LLM_PROVIDER", cls.llm_provider).lower(),
            openai_api_key=_env_str("OPENAI_API_KEY"),
            openai_model=_env_str("OPENAI_MODEL", cls.openai_model),
            anthropic_api_key=_env_str("ANTHROPIC_API_KEY"),
            anthropic_model=_env_str("ANTHROPIC_MODEL", cls.anthropic_model),
            ollama_base_url=_env_str("OLLAMA_BASE_URL", cls.ollama_base_url),
            ollama_model=_env_str("OLLAMA_MODEL", cls.ollama_model),
            max_tokens=_env_int("MAX_TOKENS", cls.max_tokens),
            temperature=_env_float("TEMPERATURE", cls.temperature),
            llm_request_timeout=_env_float("LLM_REQUEST_TIMEOUT", None),
            llm_fallback_to_mock=_env_bool("LLM_FALLBACK_TO_MOCK", cls.llm_fallback_to_mock),
            history_limit=_env_int("HISTORY_LIMIT", cls.history_limit),
            cors_origins=list(dict.fromkeys(origins)),
            port=_env_int("PORT", cls.port),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", cls.rate_limit_enabled),
            rate_limit_global=_env_str("RATE_LIMIT_GLOBAL", cls.rate_limit_global),
            rate_limit_chat_create=_env_str("RATE_LIMIT_CHAT_CREATE", cls.rate_limit_chat_create),
            rate_limit_message_send=_env_str("RATE_LIMIT_MESSAGE_SEND", cls.rate_limit_message_send),
            environment=_env_str("ENVIRONMENT", cls.environment),
            log_level=_env_str("LOG_LEVEL", cls.log_level).upper(),
            log_format=_env_str("LOG_FORMAT", cls.log_format).lower(),
        )


settings = Settings.from_env()
