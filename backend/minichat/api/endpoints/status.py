"""
Service status endpoints: usage statistics and liveness.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from minichat.core.config import APP_VERSION
from minichat.api.deps import get_conversation_service
from minichat.core.rate_limit import api_limit
from minichat.schemas.chat import HealthResponse, StatsResponse
from minichat.services.conversation import ConversationService

router = APIRouter()

SERVICE_NAME = "Chat API"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/stats", response_model=StatsResponse)
@api_limit
def get_stats(request: Request, service: ConversationService = Depends(get_conversation_service)):
    """Total number of chats and messages."""
    stats = service.get_stats()
    return StatsResponse(
        total_chats=stats.total_chats,
        total_messages=stats.total_messages,
        timestamp=_now_iso(),
    )


@router.get("/health", response_model=HealthResponse)
@api_limit
def health(request: Request):
    return HealthResponse(
        status="OK",
        timestamp=_now_iso(),
        service=SERVICE_NAME,
        version=APP_VERSION,
        environment=request.app.state.settings.environment,
    )
