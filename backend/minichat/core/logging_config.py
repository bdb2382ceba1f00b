"""
structlog setup for the chat API.

Every log line carries the id of the HTTP request that produced it and, once
a workflow has looked up its chat, that chat's id. Production renders JSON;
development renders coloured console lines.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Any

import structlog
from structlog.types import Processor

# Reset by RequestContextMiddleware when the request finishes
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
chat_id_var: ContextVar[Optional[str]] = ContextVar("chat_id", default=None)


def get_request_id() -> Optional[str]:
    """Id of the request being served, if any."""
    return request_id_var.get()


def set_request_id(request_id: Optional[str]) -> None:
    request_id_var.set(request_id)


def get_chat_id() -> Optional[str]:
    """Chat the current workflow operates on."""
    return chat_id_var.get()


def set_chat_id(chat_id: Optional[str]) -> None:
    chat_id_var.set(chat_id)


def generate_request_id() -> str:
    """Eight hex characters; enough to tell concurrent requests apart in logs."""
    return str(uuid.uuid4())[:8]


def add_request_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Copy the request and chat ids into the event unless the caller set them."""
    request_id = get_request_id()
    chat_id = get_chat_id()

    if request_id:
        event_dict["request_id"] = request_id
    if chat_id and "chat_id" not in event_dict:
        event_dict["chat_id"] = chat_id

    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def configure_logging(
    json_format: bool = False,
    log_level: str = "INFO",
) -> None:
    """
    Route structlog through the stdlib `logging` module.

    Args:
        json_format: Render JSON lines instead of console output
        log_level: Name of the lowest level that is emitted
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_request_context,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        shared_processors.append(structlog.dev.set_exc_info)
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    shared_processors.append(renderer)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # HTTP clients used by the LLM integrations log every call at INFO
    for logger_name in ["httpx", "httpcore", "openai", "urllib3", "asyncio"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


class RequestContextMiddleware:
    """
    Tags each HTTP request with a short id.

    The id is bound for logging while the request runs and echoed back to the
    client in the `x-request-id` header. Start, finish and duration are logged
    for every request.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = generate_request_id()
        set_request_id(request_id)

        logger = structlog.get_logger("request")
        start_time = datetime.now(timezone.utc)

        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "/")

        logger.info("Request started", method=method, path=path)

        response_status = None

        async def send_wrapper(message):
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message.get("status", 0)
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logger.error(
                "Request failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            logger.info(
                "Request completed",
                method=method,
                path=path,
                status=response_status,
                duration_ms=round(duration_ms, 2),
            )

            request_id_var.set(None)
            chat_id_var.set(None)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
