"""
Completion providers.

A provider turns a conversation prefix into an assistant reply. The result is
a tagged value: `Reply` on success, `Degraded` when no reply could be
produced. Providers never raise for provider-side failures; callers decide
what to do with a `Degraded` result.
"""

import random
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Union

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from minichat.core.config import Settings
from minichat.core.llm import Provider, get_llm, resolve_provider
from minichat.models.chat import ROLE_ASSISTANT

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant. Keep responses concise and friendly."

MOCK_RESPONSES = [
    "I understand you're asking about that topic. Could you provide more details?",
    "That's an interesting question! Let me think about it...",
    "Based on the information provided, here's what I can suggest.",
    "I'd be happy to help with that. Here are some thoughts.",
    "Thanks for asking! Here's my perspective on that matter.",
    "My knowledge on that is a bit limited, but here's what I know.",
    "I'm not sure about that, but I can help you find more information.",
    "Let's explore that topic together. Here's a starting point.",
    "That's a great question! Here's what I've found.",
    "I appreciate your curiosity! Here's some information that might help.",
]


@dataclass(frozen=True)
class ChatTurn:
    """One prior message handed to a provider as context."""
    role: str
    content: str


@dataclass(frozen=True)
class Reply:
    """A successful completion."""
    content: str
    tokens: int = 0


@dataclass(frozen=True)
class Degraded:
    """No completion could be produced."""
    reason: str


Completion = Union[Reply, Degraded]


class CompletionProvider(Protocol):
    def generate_reply(
        self,
        content: str,
        chat_id: str,
        history: Sequence[ChatTurn] = (),
    ) -> Completion: ...


class MockCompletionProvider:
    """Answers with a canned response picked at random; reports no token usage."""

    name = "mock"

    def __init__(self, responses: Sequence[str] = MOCK_RESPONSES, rng: Optional[random.Random] = None):
        if not responses:
            raise ValueError("MockCompletionProvider needs at least one response")
        self.responses = list(responses)
        self._rng = rng or random.Random()

    def generate_reply(self, content: str, chat_id: str, history: Sequence[ChatTurn] = ()) -> Completion:
        return Reply(content=self._rng.choice(self.responses), tokens=0)


class LiveCompletionProvider:
    """
    Calls a LangChain chat model.

    The prompt is the system instruction, then `history` oldest first, then
    the new user content.
    """

    def __init__(self, llm: BaseChatModel, name: str = "live"):
        self.llm = llm
        self.name = name

    def build_messages(self, content: str, history: Sequence[ChatTurn]) -> list[BaseMessage]:
        messages: list[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
        for turn in history:
            if turn.role == ROLE_ASSISTANT:
                messages.append(AIMessage(content=turn.content))
            else:
                messages.append(HumanMessage(content=turn.content))
        messages.append(HumanMessage(content=content))
        return messages

    def generate_reply(self, content: str, chat_id: str, history: Sequence[ChatTurn] = ()) -> Completion:
        messages = self.build_messages(content, history)

        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            logger.error(
                "LLM call failed",
                provider=self.name,
                chat_id=chat_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return Degraded(reason=f"{type(e).__name__}: {e}")

        text = response.content if isinstance(response.content, str) else None
        if not text or not text.strip():
            logger.error("LLM returned no text", provider=self.name, chat_id=chat_id)
            return Degraded(reason="empty response")

        usage = getattr(response, "usage_metadata", None) or {}
        tokens = int(usage.get("total_tokens") or 0)

        logger.info(
            "LLM reply generated",
            provider=self.name,
            chat_id=chat_id,
            history_messages=len(history),
            tokens=tokens,
        )
        return Reply(content=text, tokens=tokens)


class FallbackCompletionProvider:
    """Uses `primary`, and `fallback` whenever `primary` is degraded."""

    def __init__(self, primary: CompletionProvider, fallback: CompletionProvider):
        self.primary = primary
        self.fallback = fallback
        self.name = f"{getattr(primary, 'name', 'primary')}+{getattr(fallback, 'name', 'fallback')}"

    def generate_reply(self, content: str, chat_id: str, history: Sequence[ChatTurn] = ()) -> Completion:
        result = self.primary.generate_reply(content, chat_id, history)
        if isinstance(result, Reply):
            return result

        logger.warning("Primary provider degraded, using fallback", chat_id=chat_id, reason=result.reason)
        return self.fallback.generate_reply(content, chat_id, history)


def build_completion_provider(settings: Settings) -> CompletionProvider:
    """
    Choose the provider once at startup.

    A missing credential selects the mock provider. A live provider is
    wrapped with the mock as fallback unless `llm_fallback_to_mock` is off.
    """
    provider = resolve_provider(settings)
    if provider == Provider.MOCK:
        logger.info("Using mock completion provider")
        return MockCompletionProvider()

    live = LiveCompletionProvider(get_llm(settings, provider), name=provider.value)
    if settings.llm_fallback_to_mock:
        return FallbackCompletionProvider(live, MockCompletionProvider())
    return live
