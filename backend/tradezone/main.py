"""
FastAPI Application Entry Point

This module initializes the FastAPI application with:
- Centralized logging configuration
- Trace ID middleware for request tracking
- CORS middleware
- API routers
"""

# IMPORTANT: Initialize logging BEFORE importing other app modules
# This ensures all loggers inherit the correct configuration
from tradezone.core.config import get_settings
from tradezone.core.logging_config import setup_logging, get_logger

_settings = get_settings()
setup_logging(log_level=_settings.LOG_LEVEL, log_dir=_settings.log_dir)

logger = get_logger(__name__)

# Now import other modules (after logging is configured)
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from tradezone.api.v1.routers import api_v1_router
from tradezone.core.trace_middleware import TraceIDMiddleware


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Middleware order matters: TraceIDMiddleware is added first so every
    later middleware and route sees the trace_id.
    """
    logger.info("Creating FastAPI application...")

    settings = get_settings()
    app = FastAPI(title="TradeZone Dashboard API", version="v1")

    app.add_middleware(TraceIDMiddleware)

    # Credentials cannot be combined with a wildcard origin
    allow_all = settings.CORS_ORIGINS == ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_v1_router, prefix="/api/v1")

    logger.info("FastAPI application created successfully")
    return app


app = create_app()
