"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from src.constants import APP_VERSION, AUTH_COOKIE_NAME, IDEMPOTENCY_HEADER
from src.db.connection import db
from src.utils.env_utils import parse_bool_env, parse_list_env

from .middleware import add_middleware, register_exception_handlers
from .routers import (
    ai_router,
    auth_router,
    bug_detect_router,
    chat_router,
    health_router,
    models_router,
    posts_router,
    refactor_router,
    subscription_router,
)

logger = logging.getLogger(__name__)

# =============================================================================
# OpenAPI Configuration
# =============================================================================

OPENAPI_TAGS = [
    {"name": "Health", "description": "Service health checks"},
    {"name": "Auth", "description": "Signup, login and the session cookie"},
    {"name": "Posts", "description": "Posts authored by signed-in users"},
    {"name": "AI", "description": "Metered chat, code generation, quick refactor, documentation and optimization"},
    {"name": "Models", "description": "Provider model catalogue and account usage"},
    {"name": "Refactor", "description": "Metered single-file and multi-file refactoring"},
    {"name": "Bug Detection", "description": "Metered bug, security and performance analysis"},
    {"name": "Subscription", "description": "Plans, token allowances and payment webhooks"},
    {"name": "Chat", "description": "Web-development assistant for signed-in users"},
]

API_DESCRIPTION = f"""
AI-assisted coding operations metered in tokens against a per-user subscription.

## Billing
Every metered endpoint estimates the request at one token per four characters,
reserves that estimate against the user's allowance, and settles to the
provider-reported usage once the model answers. A request whose estimate does
not fit the remaining allowance is rejected with **429** and nothing is charged.
Failed calls are refunded and logged with `success=false`.

## Identity
- Signed-in users carry the `{AUTH_COOKIE_NAME}` cookie from `/api/auth/login`.
- Metered endpoints also accept `userId` in the body; it must match the
  cookie user when both are present.

## Idempotency
Send an `{IDEMPOTENCY_HEADER}` header on metered requests to make retries safe:
a key that already completed, or is still being processed, is rejected with
**409**. A key whose request failed can be reused.
"""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    logger.info("Starting IMPECKS-AI API...")

    if db.config.enabled:
        try:
            await db.get_engine_async()
            if db.config.create_tables:
                await db.create_tables()
            logger.info("Database ready")
        except Exception as e:
            logger.error(f"Database initialization failed: {type(e).__name__}: {e}")
    else:
        logger.warning("Database disabled - data endpoints will return 503")

    yield

    logger.info("Shutting down IMPECKS-AI API...")
    try:
        await db.close_all()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Database cleanup error: {e}")

    logger.info("Shutdown complete")


def custom_openapi(app: FastAPI) -> Dict[str, Any]:
    """OpenAPI schema with the session cookie security scheme."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=OPENAPI_TAGS,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "SessionCookie": {
            "type": "apiKey",
            "in": "cookie",
            "name": AUTH_COOKIE_NAME,
            "description": "Session token issued by /api/auth/login",
        },
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    debug = parse_bool_env("DEBUG", False)

    app = FastAPI(
        title="IMPECKS-AI",
        description=API_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
        debug=debug,
    )

    app.openapi = lambda: custom_openapi(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_list_env("CORS_ORIGINS", ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom middleware (logging, error handling)
    add_middleware(app)

    register_exception_handlers(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(posts_router, prefix="/api/posts", tags=["Posts"])
    app.include_router(models_router, prefix="/api/ai/models", tags=["Models"])
    app.include_router(ai_router, prefix="/api/ai", tags=["AI"])
    app.include_router(refactor_router, prefix="/api/refactor", tags=["Refactor"])
    app.include_router(bug_detect_router, prefix="/api/bug-detect", tags=["Bug Detection"])
    app.include_router(subscription_router, prefix="/api/subscription", tags=["Subscription"])
    app.include_router(chat_router, prefix="/api/chat", tags=["Chat"])

    return app
