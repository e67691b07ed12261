"""Health check endpoint."""

import structlog
from fastapi import APIRouter

from convo_pipeline import __version__
from convo_pipeline.routers.metrics import set_service_health
from convo_pipeline.schemas import HealthResponse

router = APIRouter()
logger = structlog.get_logger(__name__)

_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


async def check_database() -> str:
    """ok, unavailable (no pool) or error (query failed)."""
    if _db_pool is None:
        return "unavailable"
    try:
        async with _db_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except Exception as e:
        logger.warning("health_database_failed", error=str(e))
        return "error"
    return "ok"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness plus database reachability. Always 200; status says degraded."""
    database = await check_database()
    set_service_health("database", database == "ok")
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        database=database,
        version=__version__,
    )
