"""
Chat model construction for the supported LLM providers.
"""

from enum import Enum
from typing import Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel

from minichat.core.config import Settings

logger = structlog.get_logger(__name__)


class Provider(str, Enum):
    """LLM provider types."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    MOCK = "mock"


def resolve_provider(settings: Settings) -> Provider:
    """
    Pick the provider to use, falling back to MOCK when the configured one
    has no credential or is unknown.
    """
    try:
        provider = Provider(settings.llm_provider)
    except ValueError:
        logger.warning("Unknown LLM provider, using mock responses", provider=settings.llm_provider)
        return Provider.MOCK

    if provider == Provider.OPENAI and not settings.openai_api_key:
        logger.warning("OpenAI API key not found, using mock responses")
        return Provider.MOCK
    if provider == Provider.ANTHROPIC and not settings.anthropic_api_key:
        logger.warning("Anthropic API key not found, using mock responses")
        return Provider.MOCK

    return provider


def get_llm(settings: Settings, provider: Optional[Provider] = None) -> BaseChatModel:
    """
    Build a LangChain chat model for `provider` (resolved from settings when omitted).

    Raises:
        ValueError: if the provider is MOCK, which has no chat model
    """
    provider = provider or resolve_provider(settings)
    timeout = settings.llm_request_timeout

    if provider == Provider.OPENAI:
        from langchain_openai import ChatOpenAI

        llm = ChatOpenAI(
            model=settings.openai_model,
            api_key=settings.openai_api_key,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=timeout,
        )
        model = settings.openai_model
    elif provider == Provider.ANTHROPIC:
        from langchain_anthropic import ChatAnthropic

        llm = ChatAnthropic(
            model=settings.anthropic_model,
            api_key=settings.anthropic_api_key,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=timeout,
        )
        model = settings.anthropic_model
    elif provider == Provider.OLLAMA:
        from langchain_ollama import ChatOllama

        llm = ChatOllama(
            model=settings.ollama_model,
            base_url=settings.ollama_base_url,
            num_predict=settings.max_tokens,
            temperature=settings.temperature,
            client_kwargs={"timeout": timeout} if timeout is not None else {},
        )
        model = settings.ollama_model
    else:
        raise ValueError(f"Provider {provider.value!r} has no chat model")

    logger.info("LLM initialized", provider=provider.value, model=model)
    return llm
