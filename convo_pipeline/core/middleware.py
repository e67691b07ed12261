"""HTTP middleware: request context, API key guard, body limit, timing, rate limits."""

import hmac
import os
import time
import uuid
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from convo_pipeline import __version__
from convo_pipeline.config import Settings
from convo_pipeline.deps.security import TENANT_HEADER
from convo_pipeline.routers import metrics

logger = structlog.get_logger(__name__)

# Reachable without an API key
PUBLIC_PATHS = frozenset({"/", "/health", "/metrics", "/docs", "/openapi.json", "/redoc"})

REQUEST_ID_HEADER = "X-Request-ID"


def setup_rate_limiter(app: FastAPI, settings: Settings) -> Limiter:
    """Per-client-IP limiter on app.state; 429 on excess."""
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit_requests_per_minute}/minute"],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(
        RateLimitExceeded, _rate_limit_exceeded_handler  # type: ignore[arg-type]
    )
    return limiter


def cors_origins_from_env() -> list[str]:
    """CORS_ORIGINS is a comma-separated allowlist; unset means any origin."""
    raw = os.environ.get("CORS_ORIGINS", "*").strip()
    if raw == "*":
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def setup_cors(app: FastAPI) -> None:
    origins = cors_origins_from_env()
    if origins == ["*"]:
        logger.warning("cors_allow_all", hint="set CORS_ORIGINS in production")
    else:
        logger.info("cors_configured", origins=origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )


def _error_response(status_code: int, detail: str, request_id: str, retryable: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "retryable": retryable},
        headers={REQUEST_ID_HEADER: request_id, "X-API-Version": __version__},
    )


def check_api_key(request: Request, settings: Settings, request_id: str) -> Optional[JSONResponse]:
    """401 without a key, 403 with a wrong one, None when allowed."""
    if not settings.api_key or request.url.path in PUBLIC_PATHS:
        return None

    header = settings.api_key_header_name
    provided = request.headers.get(header)
    if not provided:
        logger.warning("api_key_missing")
        return _error_response(
            401, f"API key required. Provide key in {header} header", request_id
        )
    if not hmac.compare_digest(provided.encode(), settings.api_key.encode()):
        logger.warning("api_key_invalid")
        return _error_response(403, "Invalid API key", request_id)
    return None


def check_body_size(request: Request, settings: Settings, request_id: str) -> Optional[JSONResponse]:
    """413 when Content-Length exceeds max_request_body_size."""
    declared = request.headers.get("content-length", "")
    if not declared.isdigit() or int(declared) <= settings.max_request_body_size:
        return None

    logger.warning(
        "request_body_too_large",
        content_length=int(declared),
        max_size=settings.max_request_body_size,
    )
    return _error_response(
        413,
        f"Request body too large. Maximum size is {settings.max_request_body_size} bytes",
        request_id,
    )


def bind_request_context(request: Request) -> str:
    """Fresh structlog context per request; returns the request id."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    tenant = request.headers.get(TENANT_HEADER)
    if tenant:
        structlog.contextvars.bind_contextvars(tenant_id=tenant)
    return request_id


def create_request_middleware(settings: Settings):
    """Build the http middleware bound to ``settings``."""

    async def request_middleware(request: Request, call_next):
        request_id = bind_request_context(request)

        rejection = check_api_key(request, settings, request_id) or check_body_size(
            request, settings, request_id
        )
        if rejection is not None:
            return rejection

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("request_failed", error=str(e))
            return _error_response(500, "Internal server error", request_id, retryable=True)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
        response.headers["X-API-Version"] = __version__

        # Scrapes are not counted
        if request.url.path != "/metrics":
            metrics.record_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=elapsed_ms / 1000,
            )

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(elapsed_ms, 2),
        )
        return response

    return request_middleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    setup_rate_limiter(app, settings)
    setup_cors(app)
    app.middleware("http")(create_request_middleware(settings))
