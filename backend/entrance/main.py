"""
Main FastAPI application.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from entrance.api.v1.api import api_router
from entrance.core.config import settings
from entrance.core.logging_config import setup_logging
from entrance.middleware import RequestLoggingMiddleware
from entrance.models import Base, engine

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    Creates missing tables on startup; there are no background resources to
    release on shutdown.
    """
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started (env={settings.ENV})")
    yield
    logger.info("Application shutting down")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoint for monitoring application status",
    },
    {
        "name": "tests",
        "description": "Adaptive entrance test delivery: start, next question, "
        "answer submission, heartbeat and finalization",
    },
    {
        "name": "admin",
        "description": "Test assignment, cancellation and review (X-Admin-Token)",
    },
]


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Entrance Test API** - adaptive placement testing.\n\n"
            "Each test serves grammar, reading, listening and dialog sections. "
            "Section difficulty adapts to answer streaks, and the finalized "
            "test reports a weighted level, a total score and narrative "
            "feedback.\n\n"
            "## Authentication\n\n"
            "Student endpoints require a JWT Bearer token issued by the "
            "identity service. Admin endpoints require the `X-Admin-Token` "
            "header."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Admin-Token"],
    )

    # Added last so it wraps every other middleware
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": f"{settings.API_V1_PREFIX}/docs",
        }

    return app


app = create_application()
