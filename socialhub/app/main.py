"""
FastAPI Application Factory
===========================

Entry point for the SocialHub realtime gateway: presence, conversation rooms,
realtime messaging and notification delivery for the social network clients.

Routers:
    - /realtime/*               : WebSocket channel and status
    - /internal/*               : Notification publishing for post/friend services
    - /api/v1/conversation/*    : Conversation management
    - /api/v1/message/*         : Message sending and read receipts
    - /api/v1/notifications/*   : Notification inbox
    - /health                   : Health check endpoint

Environment Variables (see config.py):
    - DATABASE_URL: SQLAlchemy async URL (default: sqlite+aiosqlite:///./socialhub.db)
    - SESSION_JWT_SECRET: Secret for verifying session JWTs
    - INTERNAL_SHARED_SECRET: Secret required on /internal requests
    - ALLOWED_ORIGINS: Comma-separated CORS origins
    - ROOM_JOIN_REQUIRES_PARTICIPANT: Restrict join-room to participants
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn socialhub.app.main:app --reload --host 0.0.0.0 --port 3001

    Production:
        socialhub-gateway
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import conversation_router, message_router, notification_router
from .config import Settings, get_settings, validate_configuration
from .errors import ConversationNotFound, GatewayError, NotAuthorized, NotificationNotFound
from .models import ErrorResponse, HealthResponse
from .realtime import MessageIngestionHandler, RealtimeGateway, internal_router, realtime_router
from .storage import ConversationStore, Database, NotificationStore

SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Create database tables
        - Build the stores, the ingestion handler and the RealtimeGateway
        - Log configuration warnings

    Shutdown tasks:
        - Close active WebSocket connections
        - Dispose of the database engine
    """
    settings: Settings = app.state.settings
    logger = logging.getLogger("socialhub.main")

    report = validate_configuration(settings)
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")
    for error in report["errors"]:
        logger.error(f"Configuration error: {error}")

    database = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    await database.init_models()

    conversation_store = ConversationStore(database)
    ingestion = MessageIngestionHandler(conversation_store, separator=settings.CONVERSATION_KEY_SEPARATOR)

    app.state.database = database
    app.state.conversation_store = conversation_store
    app.state.notification_store = NotificationStore(database)
    app.state.gateway = RealtimeGateway(
        ingestion,
        separator=settings.CONVERSATION_KEY_SEPARATOR,
        room_join_requires_participant=settings.ROOM_JOIN_REQUIRES_PARTICIPANT,
    )

    logger.info(
        "SocialHub gateway started",
        extra={
            "service": settings.APP_NAME,
            "version": SERVICE_VERSION,
            "database": database.engine.url.render_as_string(hide_password=True),
        }
    )

    yield

    logger.info("Shutting down SocialHub gateway")

    await app.state.gateway.close_all()
    await database.dispose()

    logger.info("SocialHub gateway shutdown complete")


def create_application(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - CORS middleware
        - Route handlers
        - Exception handlers

    Args:
        settings: Explicit settings (tests); defaults to ``get_settings()``

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="SocialHub Gateway",
        description="Presence, realtime messaging and notifications for SocialHub clients",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings

    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    # Realtime router: WebSocket channel and status
    app.include_router(realtime_router, prefix="/realtime", tags=["Real-time Communications"])

    # Internal router: notifications from post/friend services
    app.include_router(internal_router)

    app.include_router(conversation_router)
    app.include_router(message_router)
    app.include_router(notification_router)

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check() -> HealthResponse:
        """
        Health check endpoint.

        Returns:
            HealthResponse: Service health information
        """
        return HealthResponse(status="ok", service=settings.APP_NAME, version=SERVICE_VERSION)

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, object]:
        return {
            "service": settings.APP_NAME,
            "version": SERVICE_VERSION,
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "realtime": "/realtime/ws",
                "conversations": "/api/v1/conversation",
                "messages": "/api/v1/message",
                "notifications": "/api/v1/notifications"
            }
        }

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
        """Map domain errors raised by stores to HTTP responses."""
        if isinstance(exc, (ConversationNotFound, NotificationNotFound)):
            status_code, error = status.HTTP_404_NOT_FOUND, "not_found"
        elif isinstance(exc, NotAuthorized):
            status_code, error = status.HTTP_403_FORBIDDEN, "forbidden"
        else:
            status_code, error = status.HTTP_400_BAD_REQUEST, "bad_request"

        body = ErrorResponse(error=error, message=exc.message)
        return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("socialhub.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None
            }
        )

    return app


def main() -> None:
    """Console entry point: run the gateway with uvicorn."""
    settings = get_settings()

    uvicorn.run(
        "socialhub.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


# Create app instance for uvicorn
app = create_application()


if __name__ == "__main__":
    main()
