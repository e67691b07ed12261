"""Repository for append-only processing metrics."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

import structlog

from convo_pipeline.jobs.models import ProcessingMetrics
from convo_pipeline.repositories.utils import ensure_json, to_jsonb, translate_db_errors

logger = structlog.get_logger(__name__)

TIME_RANGE_WINDOWS: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}
DEFAULT_TIME_RANGE = "24h"


def resolve_time_range(time_range: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Lower bound for a metrics window. Unknown ranges fall back to 24h."""
    now = now or datetime.now(timezone.utc)
    window = TIME_RANGE_WINDOWS.get(time_range or DEFAULT_TIME_RANGE)
    if window is None:
        window = TIME_RANGE_WINDOWS[DEFAULT_TIME_RANGE]
    return now - window


class ProcessingMetricsRepository:
    """Insert-only store of batch run snapshots."""

    def __init__(self, pool):
        self._pool = pool

    async def record(
        self,
        metrics_type: str,
        metrics: dict[str, Any],
        tenant_id: Optional[UUID] = None,
    ) -> ProcessingMetrics:
        """Append one metrics row. Rows are never updated."""
        query = """
            INSERT INTO processing_metrics (type, metrics, tenant_id)
            VALUES ($1, $2::jsonb, $3)
            RETURNING *
        """
        async with translate_db_errors("record processing metrics"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, metrics_type, to_jsonb(metrics), tenant_id)
        logger.debug("processing_metrics_recorded", metrics_type=metrics_type)
        return self._row_to_metrics(row)

    async def list_since(
        self, time_range: Optional[str] = DEFAULT_TIME_RANGE
    ) -> list[ProcessingMetrics]:
        """List metrics rows newer than the time range, newest first."""
        since = resolve_time_range(time_range)
        query = """
            SELECT * FROM processing_metrics
            WHERE created_at >= $1
            ORDER BY created_at DESC
        """
        async with translate_db_errors("fetch processing metrics"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, since)
        return [self._row_to_metrics(row) for row in rows]

    def _row_to_metrics(self, row) -> ProcessingMetrics:
        return ProcessingMetrics(
            id=row["id"],
            type=row["type"],
            metrics=ensure_json(row["metrics"]) or {},
            tenant_id=row["tenant_id"],
            created_at=row["created_at"],
        )
