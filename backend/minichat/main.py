from dotenv import load_dotenv
load_dotenv()  # Load environment variables before other imports

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from minichat.core.config import APP_VERSION, Settings, settings as default_settings
from minichat.core.errors import ChatError
from minichat.core.logging_config import configure_logging, RequestContextMiddleware, get_logger
from minichat.core.rate_limit import configure_limiter, rate_limit_exceeded_handler
from minichat.services.completion import CompletionProvider, build_completion_provider

logger = get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def register_exception_handlers(app: FastAPI) -> None:
    """Map errors to JSON bodies of the form {"error": ..., "code": ...}."""

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        logger.info(
            "Request rejected",
            path=request.url.path,
            code=exc.code,
            status=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Malformed request body", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "code": "INVALID_REQUEST"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Route not found",
                    "path": request.url.path,
                    "method": request.method,
                    "timestamp": _timestamp(),
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": "HTTP_ERROR"},
        )

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    def server_error_response(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        settings: Settings = request.app.state.settings
        content = {
            "error": str(exc) if settings.is_development and str(exc) else "Internal Server Error",
            "code": "SERVER_ERROR",
            "timestamp": _timestamp(),
        }
        return JSONResponse(status_code=500, content=content)

    # Handled inside the middleware stack, so CORS and request id headers apply
    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        return server_error_response(request, exc)

    # Anything else reaches Starlette's outermost error middleware
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return server_error_response(request, exc)


def create_app(
    settings: Optional[Settings] = None,
    completion_provider: Optional[CompletionProvider] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted
        completion_provider: Reply strategy; chosen from settings when omitted
    """
    settings = settings or default_settings

    configure_logging(json_format=settings.log_format == "json", log_level=settings.log_level)

    app = FastAPI(title="Mini Chat API", version=APP_VERSION)
    app.state.settings = settings
    app.state.completion_provider = completion_provider or build_completion_provider(settings)
    app.state.limiter = configure_limiter(settings)

    # Added first so it wraps inside CORS and sees the final response status
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    from minichat.api.endpoints import chats, status

    app.include_router(chats.router, prefix="/api", tags=["chats"])
    app.include_router(status.router, prefix="/api", tags=["status"])

    @app.on_event("startup")
    async def startup_event():
        """Create database tables on startup."""
        from minichat.core.database import init_db

        init_db()
        logger.info(
            "Chat API started",
            environment=settings.environment,
            provider=getattr(app.state.completion_provider, "name", type(app.state.completion_provider).__name__),
            rate_limiting=settings.rate_limit_enabled,
        )

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("minichat.main:app", host="0.0.0.0", port=default_settings.port)
