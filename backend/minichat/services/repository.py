"""
Persistence for chats and messages.

Every write commits on its own. Workflows that span several writes are not
atomic as a whole; only the message counter update is atomic, because it is
applied in place by the database.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from minichat.models.chat import (
    ROLE_ASSISTANT,
    ROLE_USER,
    Chat,
    Message,
    utcnow,
)

logger = structlog.get_logger(__name__)


class ChatRepository:
    """SQLAlchemy-backed store for `Chat` and `Message` rows."""

    def __init__(self, db: Session):
        self.db = db

    # Chats

    def create_chat(self, title: str) -> Chat:
        now = utcnow()
        chat = Chat(title=title, messages_count=0, created_at=now, updated_at=now)
        self.db.add(chat)
        self.db.commit()
        self.db.refresh(chat)
        return chat

    def get_chat(self, chat_id: str) -> Optional[Chat]:
        return self.db.query(Chat).filter(Chat.id == chat_id).first()

    def list_chats(self, limit: int = 50) -> List[Chat]:
        return (
            self.db.query(Chat)
            .order_by(Chat.updated_at.desc())
            .limit(limit)
            .all()
        )

    def update_chat_title(self, chat: Chat, title: str) -> Chat:
        chat.title = title
        chat.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(chat)
        return chat

    def touch_chat(self, chat: Chat) -> Chat:
        chat.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(chat)
        return chat

    def delete_chat(self, chat: Chat) -> int:
        """Delete a chat and its messages in one transaction. Returns the number of messages removed."""
        removed = (
            self.db.query(Message)
            .filter(Message.chat_id == chat.id)
            .delete(synchronize_session=False)
        )
        self.db.delete(chat)
        self.db.commit()
        return removed

    def adjust_messages_count(self, chat: Chat, delta: int) -> Chat:
        """
        Add `delta` to the chat's message counter and bump `updated_at`.

        The arithmetic runs in the database, so concurrent requests cannot
        overwrite each other's increments. Decrements stop at zero.
        """
        new_count = Chat.messages_count + delta
        if delta < 0:
            new_count = case((new_count > 0, new_count), else_=0)

        self.db.query(Chat).filter(Chat.id == chat.id).update(
            {Chat.messages_count: new_count, Chat.updated_at: utcnow()},
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(chat)
        return chat

    # Messages

    def add_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        tokens: int = 0,
        error: bool = False,
    ) -> Message:
        message = Message(
            chat_id=chat_id,
            role=role,
            content=content,
            tokens=tokens,
            error=error,
            created_at=self._next_timestamp(chat_id),
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def _next_timestamp(self, chat_id: str) -> datetime:
        # created_at orders the thread, so it must be strictly increasing per chat
        now = utcnow()
        latest = (
            self.db.query(func.max(Message.created_at))
            .filter(Message.chat_id == chat_id)
            .scalar()
        )
        if latest is not None and now <= latest:
            return latest + timedelta(microseconds=1)
        return now

    def list_messages(self, chat_id: str) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(Message.chat_id == chat_id)
            .order_by(Message.created_at.asc())
            .all()
        )

    def latest_messages(self, chat_id: str, limit: int) -> List[Message]:
        """Newest first."""
        return (
            self.db.query(Message)
            .filter(Message.chat_id == chat_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
            .all()
        )

    def history_before(self, chat_id: str, before: datetime, limit: int) -> List[Message]:
        """The `limit` most recent messages older than `before`, oldest first."""
        recent = (
            self.db.query(Message)
            .filter(Message.chat_id == chat_id, Message.created_at < before)
            .order_by(Message.created_at.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(recent))

    def get_user_message(self, chat_id: str, message_id: str) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.id == message_id,
                Message.chat_id == chat_id,
                Message.role == ROLE_USER,
            )
            .first()
        )

    def update_message_content(self, message: Message, content: str) -> Message:
        message.content = content
        message.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(message)
        return message

    def next_assistant_message(self, chat_id: str, after: datetime) -> Optional[Message]:
        """Earliest assistant message created strictly after `after`."""
        return (
            self.db.query(Message)
            .filter(
                Message.chat_id == chat_id,
                Message.role == ROLE_ASSISTANT,
                Message.created_at > after,
            )
            .order_by(Message.created_at.asc())
            .first()
        )

    def delete_message(self, message: Message) -> None:
        self.db.delete(message)
        self.db.commit()

    # Counts

    def count_chats(self) -> int:
        return self.db.query(func.count(Chat.id)).scalar() or 0

    def count_messages(self, chat_id: Optional[str] = None) -> int:
        query = self.db.query(func.count(Message.id))
        if chat_id is not None:
            query = query.filter(Message.chat_id == chat_id)
        return query.scalar() or 0
