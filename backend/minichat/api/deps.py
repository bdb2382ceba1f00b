from fastapi import Depends, Request
from sqlalchemy.orm import Session

from minichat.core.database import get_db
from minichat.services.conversation import ConversationService
from minichat.services.repository import ChatRepository


def get_conversation_service(request: Request, db: Session = Depends(get_db)) -> ConversationService:
    """Service bound to this request's session and the app's completion provider."""
    state = request.app.state
    return ConversationService(
        ChatRepository(db),
        state.completion_provider,
        history_limit=state.settings.history_limit,
    )
