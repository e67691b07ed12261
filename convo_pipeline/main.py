"""Conversation Processing Pipeline - FastAPI Application."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from convo_pipeline import __version__
from convo_pipeline.config import get_settings
from convo_pipeline.core.lifespan import lifespan
from convo_pipeline.core.middleware import setup_middleware
from convo_pipeline.core.sentry import init_sentry
from convo_pipeline.errors import NotFoundError, PersistenceError, ValidationError
from convo_pipeline.routers import health, metrics, pipeline

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

settings = get_settings()
init_sentry(settings)

# Conditionally disable docs in production (set DOCS_ENABLED=false)
app = FastAPI(
    title="Conversation Processing Pipeline",
    description="Job queue, dispatcher and batch sentiment analysis for conversations",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
)

setup_middleware(app, settings)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc), "retryable": False})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc), "retryable": False})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("persistence_error", error=str(exc))
    return JSONResponse(status_code=503, content={"detail": str(exc), "retryable": True})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(pipeline.router)
app.include_router(metrics.router)  # Metrics endpoint (excluded from OpenAPI)


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "Conversation Processing Pipeline",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
