from pydantic import AfterValidator, BaseModel
from pydantic.alias_generators import to_camel
from typing import Annotated, List, Optional
from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; label them so clients never read local time."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    """Serialized with camelCase keys; accepts either form on input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Requests

class ChatCreate(CamelModel):
    title: Optional[str] = None


class ChatUpdate(CamelModel):
    title: Optional[str] = None


class MessageContent(CamelModel):
    content: Optional[str] = None


# Responses

class Message(CamelModel):
    id: str
    chat_id: str
    role: str
    content: str
    created_at: UtcDatetime
    updated_at: Optional[UtcDatetime] = None
    tokens: int = 0
    error: bool = False


class Chat(CamelModel):
    id: str
    title: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    messages_count: int


class ChatWithMessages(Chat):
    messages: List[Message] = []


class SendMessageResponse(CamelModel):
    user_message: Message
    assistant_message: Message
    chat: Chat


class RegenerateResponse(CamelModel):
    success: bool
    new_message: Message


class EditRegenerateResponse(CamelModel):
    success: bool
    user_message: Message
    assistant_message: Message
    deleted_assistant: Optional[Message] = None


class DeleteChatResponse(CamelModel):
    success: bool
    message: str


class StatsResponse(CamelModel):
    total_chats: int
    total_messages: int
    timestamp: str


class HealthResponse(CamelModel):
    status: str
    timestamp: str
    service: str
    version: str
    environment: str
