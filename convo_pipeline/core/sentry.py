"""Optional Sentry error tracking for the pipeline service."""

import os
from typing import Any, Optional

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from convo_pipeline import __version__
from convo_pipeline.config import Settings
from convo_pipeline.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

# Caller mistakes, answered with 400/404; never worth an event
_IGNORED_ERRORS = (ValidationError, NotFoundError)


def _is_client_status(status_code: Any) -> bool:
    return isinstance(status_code, int) and 400 <= status_code < 500


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    """Only server-side failures become events."""
    exc_info = hint.get("exc_info")
    if exc_info:
        exc = exc_info[1]
        if isinstance(exc, _IGNORED_ERRORS):
            return None
        if _is_client_status(getattr(exc, "status_code", None)):
            return None

    response_status = event.get("contexts", {}).get("response", {}).get("status_code")
    if _is_client_status(response_status):
        return None
    return event


def init_sentry(settings: Settings) -> bool:
    """Start the SDK when SENTRY_DSN is set. Returns whether it was started."""
    if not settings.sentry_dsn:
        return False

    release = os.environ.get("GIT_SHA") or f"convo-pipeline@{__version__}"
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=release,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
            LoggingIntegration(level=None, event_level="ERROR"),
        ],
        before_send=_before_send,
        send_default_pii=False,
        attach_stacktrace=True,
    )
    sentry_sdk.set_tag("service", "convo-pipeline")
    logger.info(
        "sentry_enabled",
        environment=settings.sentry_environment,
        release=release,
    )
    return True
