"""Prometheus metrics endpoint for the conversation processing pipeline."""

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

router = APIRouter()

# Request metrics
REQUEST_COUNT = Counter(
    "convo_pipeline_requests_total",
    "Total number of requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "convo_pipeline_request_latency_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Job metrics
JOBS_CREATED = Counter(
    "convo_pipeline_jobs_created_total",
    "Total number of processing jobs created",
    ["type", "priority"],
)

JOBS_PROCESSED = Counter(
    "convo_pipeline_jobs_processed_total",
    "Total number of jobs run by the dispatcher",
    ["type", "status"],
)

JOB_DURATION = Histogram(
    "convo_pipeline_job_duration_ms",
    "Handler execution time in milliseconds",
    ["type"],
    buckets=[10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000],
)

# Sentiment metrics
SENTIMENT_ITEMS = Counter(
    "convo_pipeline_sentiment_items_total",
    "Conversations analyzed by the batch sentiment coordinator",
    ["provider", "status"],
)

# Service health metrics
SERVICE_UP = Gauge(
    "convo_pipeline_service_up",
    "Service availability (1=up, 0=down)",
    ["component"],
)

# Connection pool metrics
DB_POOL_SIZE = Gauge(
    "convo_pipeline_db_pool_size",
    "Current database connection pool size",
)

DB_POOL_AVAILABLE = Gauge(
    "convo_pipeline_db_pool_available",
    "Available connections in database pool",
)


def record_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record request metrics."""
    REQUEST_COUNT.labels(
        method=method, endpoint=endpoint, status_code=status_code
    ).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)


def record_jobs_created(job_type: str, priority: str, count: int = 1):
    JOBS_CREATED.labels(type=job_type, priority=priority).inc(count)


def record_job_processed(job_type: str, status: str, duration_ms: int):
    """Record one dispatcher outcome."""
    JOBS_PROCESSED.labels(type=job_type, status=status).inc()
    JOB_DURATION.labels(type=job_type).observe(duration_ms)


def record_sentiment_items(provider: str, successful: int, failed: int):
    if successful:
        SENTIMENT_ITEMS.labels(provider=provider, status="success").inc(successful)
    if failed:
        SENTIMENT_ITEMS.labels(provider=provider, status="error").inc(failed)


def set_service_health(component: str, is_up: bool):
    """Set service component health status."""
    SERVICE_UP.labels(component=component).set(1 if is_up else 0)


def set_db_pool_metrics(pool_size: int, available: int):
    """Set database pool metrics."""
    DB_POOL_SIZE.set(pool_size)
    DB_POOL_AVAILABLE.set(available)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint, excluded from OpenAPI docs."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
