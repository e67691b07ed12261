"""Repository for scheduled task definitions."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from convo_pipeline.errors import NotFoundError, ValidationError
from convo_pipeline.jobs.models import ScheduledTask
from convo_pipeline.jobs.types import ScheduledTaskType, TaskSchedule
from convo_pipeline.repositories.utils import ensure_json, to_jsonb, translate_db_errors

logger = structlog.get_logger(__name__)

# Columns a caller may change through update()
UPDATABLE_FIELDS = {"name", "schedule", "enabled", "config", "next_run", "tenant_id"}
_JSONB_FIELDS = {"config"}


class ScheduledTaskRepository:
    """Repository for scheduled_tasks rows."""

    def __init__(self, pool):
        self._pool = pool

    async def list_tasks(self) -> list[ScheduledTask]:
        """List all scheduled tasks, newest first."""
        query = "SELECT * FROM scheduled_tasks ORDER BY created_at DESC"
        async with translate_db_errors("fetch scheduled tasks"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query)
        return [self._row_to_task(row) for row in rows]

    async def get(self, task_id: UUID) -> Optional[ScheduledTask]:
        query = "SELECT * FROM scheduled_tasks WHERE id = $1"
        async with translate_db_errors("fetch scheduled task"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, task_id)
        return self._row_to_task(row) if row else None

    async def create(
        self,
        name: str,
        task_type: ScheduledTaskType,
        schedule: TaskSchedule,
        enabled: bool = True,
        config: Optional[dict[str, Any]] = None,
        tenant_id: Optional[UUID] = None,
        next_run: Optional[datetime] = None,
    ) -> ScheduledTask:
        """Create a scheduled task definition."""
        query = """
            INSERT INTO scheduled_tasks
                (name, type, schedule, enabled, config, tenant_id, next_run)
            VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7)
            RETURNING *
        """
        async with translate_db_errors("create scheduled task"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    query,
                    name,
                    task_type.value,
                    schedule.value,
                    enabled,
                    to_jsonb(config or {}),
                    tenant_id,
                    next_run,
                )
        task = self._row_to_task(row)
        logger.info("scheduled_task_created", task_id=str(task.id), task_type=task_type.value)
        return task

    async def update(self, task_id: UUID, updates: dict[str, Any]) -> ScheduledTask:
        """Apply a partial update.

        Raises:
            ValidationError: unknown or empty update fields
            NotFoundError: task does not exist
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update scheduled task fields: {', '.join(sorted(unknown))}"
            )
        if not updates:
            raise ValidationError("No scheduled task fields to update")

        assignments = []
        params: list[Any] = [task_id]
        for idx, (column, value) in enumerate(sorted(updates.items()), start=2):
            if column in _JSONB_FIELDS:
                assignments.append(f"{column} = ${idx}::jsonb")
                params.append(to_jsonb(value))
            else:
                assignments.append(f"{column} = ${idx}")
                params.append(value.value if hasattr(value, "value") else value)

        query = f"""
            UPDATE scheduled_tasks SET
                {", ".join(assignments)},
                updated_at = now()
            WHERE id = $1
            RETURNING *
        """
        async with translate_db_errors("update scheduled task"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        if not row:
            raise NotFoundError("Scheduled task", task_id)
        return self._row_to_task(row)

    async def list_due(self, now: datetime, limit: int = 10) -> list[ScheduledTask]:
        """Enabled tasks never run or whose next_run has passed."""
        query = """
            SELECT * FROM scheduled_tasks
            WHERE enabled = true
              AND (next_run IS NULL OR next_run <= $1)
            ORDER BY next_run ASC NULLS FIRST
            LIMIT $2
        """
        async with translate_db_errors("fetch due scheduled tasks"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, now, limit)
        return [self._row_to_task(row) for row in rows]

    async def record_run(
        self,
        task_id: UUID,
        status: str,
        ran_at: datetime,
        next_run: datetime,
        error: Optional[str] = None,
    ) -> None:
        """Store the outcome of a task run and its next due time."""
        query = """
            UPDATE scheduled_tasks SET
                last_run = $2,
                next_run = $3,
                last_status = $4,
                last_error = $5,
                updated_at = now()
            WHERE id = $1
        """
        async with translate_db_errors("record scheduled task run"):
            async with self._pool.acquire() as conn:
                await conn.execute(query, task_id, ran_at, next_run, status, error)

    def _row_to_task(self, row) -> ScheduledTask:
        return ScheduledTask(
            id=row["id"],
            name=row["name"],
            type=ScheduledTaskType(row["type"]),
            schedule=TaskSchedule(row["schedule"]),
            enabled=row["enabled"],
            config=ensure_json(row["config"]) or {},
            tenant_id=row["tenant_id"],
            last_run=row["last_run"],
            next_run=row["next_run"],
            last_status=row["last_status"],
            last_error=row["last_error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
