"""
Per-client request limits for the HTTP layer, enforced by slowapi.

Route decorators are bound to the module-level `limiter`. Their limit strings
are read on every request from the values `configure_limiter` installs, so an
app built from a Settings object gets that object's limits.
"""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from minichat.core.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)

GLOBAL = "global"
CHAT_CREATE = "chat_create"
MESSAGE_SEND = "message_send"

# All /api routes draw from one budget per client
API_SCOPE = "api"

DEFAULT_MESSAGE = "Too many requests from this IP, please try again after 15 minutes"
CHAT_CREATE_MESSAGE = "Too many new chats created. Please try again later."
MESSAGE_SEND_MESSAGE = "Too many messages sent. Please try again later."

_limits: dict[str, str] = {}

limiter = Limiter(
    key_func=get_remote_address,
    strategy="moving-window",
    storage_uri="memory://",
    enabled=default_settings.rate_limit_enabled,
)


def configure_limiter(settings: Settings) -> Limiter:
    """Install the limits from `settings` and clear all recorded hits."""
    _limits.update({
        GLOBAL: settings.rate_limit_global,
        CHAT_CREATE: settings.rate_limit_chat_create,
        MESSAGE_SEND: settings.rate_limit_message_send,
    })
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
    return limiter


def current_limit(name: str) -> str:
    return _limits.get(name) or getattr(default_settings, f"rate_limit_{name}")


api_limit = limiter.shared_limit(lambda: current_limit(GLOBAL), scope=API_SCOPE)

chat_create_limit = limiter.limit(
    lambda: current_limit(CHAT_CREATE),
    error_message=CHAT_CREATE_MESSAGE,
)

message_send_limit = limiter.limit(
    lambda: current_limit(MESSAGE_SEND),
    error_message=MESSAGE_SEND_MESSAGE,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    limit = getattr(exc, "limit", None)
    message = getattr(limit, "error_message", None) or DEFAULT_MESSAGE
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(getattr(limit, "limit", "")),
    )
    return JSONResponse(
        status_code=429,
        content={"error": message, "code": "RATE_LIMIT_EXCEEDED"},
    )
