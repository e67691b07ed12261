"""Application lifespan management - startup and shutdown logic."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import asyncpg
import structlog
from fastapi import FastAPI

from convo_pipeline import __version__
from convo_pipeline.config import Settings, get_settings
from convo_pipeline.routers import health, pipeline
from convo_pipeline.routers.metrics import set_db_pool_metrics, set_service_health
from convo_pipeline.services.pipeline import PipelineService
from convo_pipeline.services.sentiment import SentimentProviders, build_sentiment_providers
from convo_pipeline.services.trends import HttpTrendAnalyzer, TrendAnalyzer

logger = structlog.get_logger(__name__)

_db_pool: Optional[asyncpg.Pool] = None


async def create_db_pool(settings: Settings) -> Optional[asyncpg.Pool]:
    """Open the asyncpg pool. Returns None when DATABASE_URL is unset or unreachable."""
    if not settings.database_url:
        logger.warning("Database connection not configured. Set DATABASE_URL in .env")
        return None

    try:
        pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            ssl="require" if settings.db_ssl else None,
            timeout=10,
            command_timeout=settings.db_command_timeout,
        )
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error(
            "Failed to initialize database pool - pipeline endpoints will be unavailable",
            error=str(e),
        )
        return None

    logger.info(
        "Database pool initialized",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    return pool


def build_trend_analyzer(settings: Settings) -> TrendAnalyzer:
    return HttpTrendAnalyzer(
        base_url=settings.trend_service_url,
        api_key=settings.trend_service_api_key,
        timeout=settings.trend_service_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global _db_pool

    settings = get_settings()
    logger.info(
        "Starting conversation processing pipeline",
        version=__version__,
        host=settings.service_host,
        port=settings.service_port,
    )

    _db_pool = await create_db_pool(settings)
    set_service_health("database", _db_pool is not None)
    health.set_db_pool(_db_pool)

    providers: SentimentProviders = build_sentiment_providers(settings)
    trend_analyzer = build_trend_analyzer(settings)

    if _db_pool is not None:
        set_db_pool_metrics(_db_pool.get_size(), _db_pool.get_idle_size())
        pipeline.set_pipeline_service(
            PipelineService.from_pool(_db_pool, providers, trend_analyzer, settings)
        )

    yield

    logger.info("Shutting down conversation processing pipeline")
    pipeline.set_pipeline_service(None)
    health.set_db_pool(None)

    await providers.aclose()
    await trend_analyzer.aclose()

    if _db_pool:
        await _db_pool.close()
        _db_pool = None
        logger.info("Database pool closed")
