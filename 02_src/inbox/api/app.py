"""FastAPI application setup."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import Application
from ..errors import (
    DeliveryFailed,
    DispatchInProgress,
    InboxError,
    NoContext,
    NotFound,
    Timeout,
    TooLarge,
    TransportError,
    UnsupportedMediaType,
    UploadFailed,
    ValidationError,
)
from ..logging_config import get_logger
from .routes import control, conversations, messaging, observability, webhooks

logger = get_logger(__name__)

# Most specific class wins; lookup walks the exception's MRO.
ERROR_STATUS: dict[type[InboxError], int] = {
    NotFound: 404,
    ValidationError: 400,
    TooLarge: 413,
    UnsupportedMediaType: 415,
    UploadFailed: 502,
    Timeout: 504,
    TransportError: 502,
    DeliveryFailed: 502,
    NoContext: 409,
    DispatchInProgress: 409,
}


# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def status_for(error: InboxError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


async def inbox_error_handler(request: Request, exc: InboxError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"error": exc.code, "title": exc.title, "detail": str(exc)},
    )


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        # Startup
        await application.start()
        sim_instance = control.get_sim_instance()
        if sim_instance and hasattr(sim_instance, "set_tracker"):
            sim_instance.set_tracker(application.tracker)
        yield
        # Shutdown
        if sim_instance:
            await sim_instance.stop()
        await application.stop()

    fastapi_app = FastAPI(
        title="Unified Inbox API",
        description="Conversations, realtime message log and outbound dispatch",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Enable CORS
    origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5174")
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    fastapi_app.add_exception_handler(InboxError, inbox_error_handler)

    # Include routers
    fastapi_app.include_router(conversations.create_conversations_router(application))
    fastapi_app.include_router(messaging.create_messaging_router(application))
    fastapi_app.include_router(webhooks.create_webhooks_router(application))
    fastapi_app.include_router(observability.create_observability_router(application))
    fastapi_app.include_router(control.create_control_router(application))

    return fastapi_app
