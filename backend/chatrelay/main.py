import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatrelay.config import Settings, get_settings
from chatrelay.database import create_engine, create_sessionmaker, init_db
from chatrelay.providers.base import BaseProvider
from chatrelay.providers.openai_compatible import OpenAICompatibleProvider
from chatrelay.routes import chat, health, messages
from chatrelay.utils.exceptions import RelayError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle events"""
    settings: Settings = app.state.settings

    # Database pool, handed to every HistoryStore through dependencies
    engine = create_engine(settings.database_url, echo=settings.debug)
    await init_db(engine)
    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)

    # Upstream provider with its pooled HTTP client
    if app.state.provider is None:
        app.state.provider = OpenAICompatibleProvider.from_settings(settings)
    logger.info(f"Relaying chat to {app.state.provider.base_url} (model: {app.state.provider.model})")

    yield

    # Shutdown: Cleanup resources
    await app.state.provider.cleanup()
    await engine.dispose()


# ============================================================================
# Error rendering: every pre-stream error body is {"error": "..."}
# ============================================================================


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report schema failures as 400, naming the offending fields."""
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse({"error": "Invalid request: " + "; ".join(problems)}, status_code=400)


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[BaseProvider] = None,
) -> FastAPI:
    """Build the application. Tests pass their own settings and provider."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Chat Relay API",
        description="Chat backend that relays streamed completions over SSE",
        version="1.0.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.provider = provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include routers
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(chat.router, prefix="/api", tags=["chat"])
    app.include_router(messages.router, prefix="/api", tags=["messages"])

    return app


app = create_app()
