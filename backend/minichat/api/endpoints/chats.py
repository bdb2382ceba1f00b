from fastapi import APIRouter, Depends, Request
from typing import List, Optional

from minichat.api.deps import get_conversation_service
from minichat.core.rate_limit import api_limit, chat_create_limit, message_send_limit
from minichat.schemas.chat import (
    Chat,
    ChatCreate,
    ChatUpdate,
    ChatWithMessages,
    DeleteChatResponse,
    EditRegenerateResponse,
    Message,
    MessageContent,
    RegenerateResponse,
    SendMessageResponse,
)
from minichat.services.conversation import ConversationService

router = APIRouter()


@router.post("/chats", response_model=Chat, status_code=201)
@api_limit
@chat_create_limit
def create_chat(
    request: Request,
    body: Optional[ChatCreate] = None,
    service: ConversationService = Depends(get_conversation_service),
):
    chat = service.create_chat(body.title if body else None)
    return Chat.model_validate(chat)


@router.get("/chats", response_model=List[Chat])
@api_limit
def list_chats(request: Request, service: ConversationService = Depends(get_conversation_service)):
    """Most recently updated chats first."""
    return [Chat.model_validate(chat) for chat in service.list_chats()]


@router.get("/chats/{chat_id}", response_model=ChatWithMessages)
@api_limit
def get_chat(request: Request, chat_id: str, service: ConversationService = Depends(get_conversation_service)):
    thread = service.get_chat(chat_id)
    payload = Chat.model_validate(thread.chat).model_dump()
    payload["messages"] = [Message.model_validate(m) for m in thread.messages]
    return ChatWithMessages(**payload)


@router.patch("/chats/{chat_id}", response_model=Chat)
@api_limit
def update_chat(
    request: Request,
    chat_id: str,
    body: Optional[ChatUpdate] = None,
    service: ConversationService = Depends(get_conversation_service),
):
    chat = service.update_chat_title(chat_id, body.title if body else None)
    return Chat.model_validate(chat)


@router.delete("/chats/{chat_id}", response_model=DeleteChatResponse)
@api_limit
def delete_chat(request: Request, chat_id: str, service: ConversationService = Depends(get_conversation_service)):
    return DeleteChatResponse(**service.delete_chat(chat_id))


@router.get("/chats/{chat_id}/messages", response_model=List[Message])
@api_limit
def list_messages(request: Request, chat_id: str, service: ConversationService = Depends(get_conversation_service)):
    return [Message.model_validate(m) for m in service.list_messages(chat_id)]


@router.post("/chats/{chat_id}/messages", response_model=SendMessageResponse)
@api_limit
@message_send_limit
def send_message(
    request: Request,
    chat_id: str,
    body: Optional[MessageContent] = None,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Store the user message and the assistant reply.

    A failing completion provider still yields 200; the reply is then a
    placeholder with `error: true`.
    """
    result = service.send_message(chat_id, body.content if body else None)
    return SendMessageResponse.model_validate(result)


@router.post("/chats/{chat_id}/regenerate", response_model=RegenerateResponse)
@api_limit
def regenerate(request: Request, chat_id: str, service: ConversationService = Depends(get_conversation_service)):
    """Replace the last assistant reply with a new one."""
    result = service.regenerate_last(chat_id)
    return RegenerateResponse.model_validate(result)


@router.put("/chats/{chat_id}/messages/{message_id}/regenerate", response_model=EditRegenerateResponse)
@api_limit
def edit_and_regenerate(
    request: Request,
    chat_id: str,
    message_id: str,
    body: Optional[MessageContent] = None,
    service: ConversationService = Depends(get_conversation_service),
):
    """Edit a user message and regenerate the reply that followed it."""
    result = service.edit_and_regenerate(chat_id, message_id, body.content if body else None)
    return EditRegenerateResponse.model_validate(result)
