import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from minichat.core.database import Base

DEFAULT_CHAT_TITLE = "New Chat"
MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 4096

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


def utcnow() -> datetime:
    # Naive UTC; SQLite drops tzinfo on the way back anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Chat(Base):
    __tablename__ = "chats"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(MAX_TITLE_LENGTH), nullable=False, default=DEFAULT_CHAT_TITLE)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    messages_count = Column(Integer, nullable=False, default=0)

    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )

    def __repr__(self):
        return f"<Chat(id={self.id}, title='{self.title[:30]}', messages_count={self.messages_count})>"


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_chat_id_created_at", "chat_id", "created_at"),)

    id = Column(String(36), primary_key=True, default=new_id)
    chat_id = Column(String(36), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)
    tokens = Column(Integer, nullable=False, default=0)
    error = Column(Boolean, nullable=False, default=False)

    chat = relationship("Chat", back_populates="messages")

    def __repr__(self):
        return f"<Message(id={self.id}, role='{self.role}', content='{self.content[:30]}')>"
