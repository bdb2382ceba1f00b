"""
Conversation workflows: chats, messages, replies, regeneration.

The service validates input, drives the repository step by step and asks the
completion provider for replies. A provider that cannot answer never fails a
request: the reply is replaced by a stored placeholder flagged `error=True`.
"""

from dataclasses import dataclass
from typing import List, Optional

import structlog

from minichat.core.errors import (
    InvalidStateError,
    ValidationError,
    chat_not_found,
    message_not_found,
)
from minichat.core.logging_config import set_chat_id
from minichat.models.chat import (
    DEFAULT_CHAT_TITLE,
    MAX_CONTENT_LENGTH,
    MAX_TITLE_LENGTH,
    ROLE_ASSISTANT,
    ROLE_USER,
    Chat,
    Message,
)
from minichat.services.completion import (
    ChatTurn,
    Completion,
    CompletionProvider,
    Degraded,
    Reply,
)
from minichat.services.repository import ChatRepository

logger = structlog.get_logger(__name__)

CHAT_LIST_LIMIT = 50
DEFAULT_HISTORY_LIMIT = 10
AUTO_TITLE_LENGTH = 50

SEND_PLACEHOLDER = "Sorry, I encountered an error while processing your request. Please try again."
REGENERATE_PLACEHOLDER = "Sorry, I encountered an error while regenerating the response. Please try again."
EDIT_PLACEHOLDER = "Sorry, I encountered an error while processing your edited message. Please try again."


@dataclass
class ChatThread:
    chat: Chat
    messages: List[Message]


@dataclass
class SendResult:
    user_message: Message
    assistant_message: Message
    chat: Chat


@dataclass
class RegenerateResult:
    success: bool
    new_message: Message


@dataclass
class EditResult:
    success: bool
    user_message: Message
    assistant_message: Message
    deleted_assistant: Optional[Message]


@dataclass
class Stats:
    total_chats: int
    total_messages: int


def validate_content(content: Optional[str]) -> str:
    """Return the trimmed content or raise ValidationError."""
    if content is None or not content.strip():
        raise ValidationError("Message content is required", "EMPTY_MESSAGE")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Message too long (max {MAX_CONTENT_LENGTH} characters)", "MESSAGE_TOO_LONG"
        )
    return content.strip()


def validate_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title is required", "EMPTY_TITLE")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title too long (max {MAX_TITLE_LENGTH} characters)", "TITLE_TOO_LONG")
    return title


def derive_title(content: str) -> str:
    """Title for a chat named after its first message."""
    if len(content) > AUTO_TITLE_LENGTH:
        return content[:AUTO_TITLE_LENGTH] + "..."
    return content


class ConversationService:
    """Chat and message lifecycle over a repository and a completion provider."""

    def __init__(
        self,
        repository: ChatRepository,
        provider: CompletionProvider,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.repository = repository
        self.provider = provider
        self.history_limit = history_limit

    # Chats

    def create_chat(self, title: Optional[str] = None) -> Chat:
        title = (title or "").strip() or DEFAULT_CHAT_TITLE
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title too long (max {MAX_TITLE_LENGTH} characters)", "TITLE_TOO_LONG")

        chat = self.repository.create_chat(title)
        logger.info("Chat created", chat_id=chat.id, title=chat.title)
        return chat

    def list_chats(self) -> List[Chat]:
        return self.repository.list_chats(limit=CHAT_LIST_LIMIT)

    def get_chat(self, chat_id: str) -> ChatThread:
        chat = self._require_chat(chat_id)
        return ChatThread(chat=chat, messages=self.repository.list_messages(chat_id))

    def list_messages(self, chat_id: str) -> List[Message]:
        self._require_chat(chat_id)
        return self.repository.list_messages(chat_id)

    def update_chat_title(self, chat_id: str, title: Optional[str]) -> Chat:
        title = validate_title(title)
        chat = self._require_chat(chat_id)
        chat = self.repository.update_chat_title(chat, title)
        logger.info("Chat renamed", title=title)
        return chat

    def delete_chat(self, chat_id: str) -> dict:
        chat = self._require_chat(chat_id)
        removed = self.repository.delete_chat(chat)
        logger.info("Chat deleted", messages_removed=removed)
        return {"success": True, "message": "Chat deleted successfully"}

    def get_stats(self) -> Stats:
        return Stats(
            total_chats=self.repository.count_chats(),
            total_messages=self.repository.count_messages(),
        )

    # Messages

    def send_message(self, chat_id: str, content: Optional[str]) -> SendResult:
        content = validate_content(content)
        chat = self._require_chat(chat_id)

        user_message = self.repository.add_message(chat.id, ROLE_USER, content)
        chat = self.repository.adjust_messages_count(chat, 1)

        if chat.messages_count == 1:
            chat = self.repository.update_chat_title(chat, derive_title(content))
            logger.info("Chat titled from first message", title=chat.title)

        completion = self._complete(content, chat.id, user_message)
        assistant_message = self._store_reply(chat, completion, SEND_PLACEHOLDER)

        return SendResult(user_message=user_message, assistant_message=assistant_message, chat=chat)

    def regenerate_last(self, chat_id: str) -> RegenerateResult:
        chat = self._require_chat(chat_id)

        last_messages = self.repository.latest_messages(chat.id, limit=2)
        if len(last_messages) < 2:
            raise InvalidStateError(
                "Cannot regenerate - need at least one user message and one assistant response",
                "NO_PAIR_TO_REGENERATE",
            )

        last_assistant, last_user = last_messages
        if last_assistant.role != ROLE_ASSISTANT or last_user.role != ROLE_USER:
            raise InvalidStateError(
                "Cannot regenerate - last pair must be user message followed by assistant response",
                "INVALID_MESSAGE_PAIR",
            )

        self.repository.delete_message(last_assistant)
        chat = self.repository.adjust_messages_count(chat, -1)
        logger.info("Assistant message discarded for regeneration", message_id=last_assistant.id)

        completion = self._complete(last_user.content, chat.id, last_user)
        new_message = self._store_reply(chat, completion, REGENERATE_PLACEHOLDER)

        return RegenerateResult(success=isinstance(completion, Reply), new_message=new_message)

    def edit_and_regenerate(self, chat_id: str, message_id: str, content: Optional[str]) -> EditResult:
        content = validate_content(content)
        chat = self._require_chat(chat_id)

        user_message = self.repository.get_user_message(chat.id, message_id)
        if user_message is None:
            raise message_not_found()
        user_message = self.repository.update_message_content(user_message, content)
        logger.info("User message edited", message_id=user_message.id)

        deleted_assistant = self.repository.next_assistant_message(chat.id, user_message.created_at)
        if deleted_assistant is not None:
            self.repository.delete_message(deleted_assistant)
            chat = self.repository.adjust_messages_count(chat, -1)
            logger.info("Following assistant message discarded", message_id=deleted_assistant.id)
        else:
            chat = self.repository.touch_chat(chat)

        completion = self._complete(content, chat.id, user_message)
        assistant_message = self._store_reply(chat, completion, EDIT_PLACEHOLDER)

        return EditResult(
            success=isinstance(completion, Reply),
            user_message=user_message,
            assistant_message=assistant_message,
            deleted_assistant=deleted_assistant,
        )

    # Internals

    def _require_chat(self, chat_id: str) -> Chat:
        set_chat_id(chat_id)
        chat = self.repository.get_chat(chat_id)
        if chat is None:
            logger.info("Chat not found")
            raise chat_not_found()
        return chat

    def _complete(self, content: str, chat_id: str, answering: Message) -> Completion:
        history = [
            ChatTurn(role=m.role, content=m.content)
            for m in self.repository.history_before(chat_id, answering.created_at, self.history_limit)
        ]

        try:
            completion = self.provider.generate_reply(content, chat_id, history)
        except Exception as e:
            # Providers should return Degraded themselves; anything raised is treated the same way
            logger.exception("Completion provider raised", error_type=type(e).__name__)
            return Degraded(reason=f"{type(e).__name__}: {e}")

        if isinstance(completion, Reply) and not completion.content.strip():
            return Degraded(reason="empty reply")
        return completion

    def _store_reply(self, chat: Chat, completion: Completion, placeholder: str) -> Message:
        if isinstance(completion, Reply):
            message = self.repository.add_message(
                chat.id,
                ROLE_ASSISTANT,
                completion.content.strip()[:MAX_CONTENT_LENGTH],
                tokens=max(0, completion.tokens),
            )
        else:
            logger.warning("Reply degraded, storing placeholder", reason=completion.reason)
            message = self.repository.add_message(chat.id, ROLE_ASSISTANT, placeholder, error=True)

        self.repository.adjust_messages_count(chat, 1)
        return message
