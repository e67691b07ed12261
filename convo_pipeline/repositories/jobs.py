"""Repository for processing job queue operations."""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

import structlog

from convo_pipeline.errors import InvalidTransitionError, NotFoundError
from convo_pipeline.jobs.models import NewJob, ProcessingJob
from convo_pipeline.jobs.types import JobPriority, JobStatus, JobType
from convo_pipeline.repositories.utils import ensure_json, to_jsonb, translate_db_errors

logger = structlog.get_logger(__name__)

# Claim ordering: priority descending (high > medium > low), oldest first.
PRIORITY_RANK_SQL = "CASE priority " + " ".join(
    f"WHEN '{p.value}' THEN {p.rank}" for p in JobPriority
) + " ELSE 0 END"

CLAIM_ORDER_SQL = f"{PRIORITY_RANK_SQL} DESC, created_at ASC"

_UNSET: Any = object()


@dataclass
class JobFilters:
    """Filters for listing jobs."""

    status: Optional[JobStatus] = None
    type: Optional[JobType] = None
    tenant_id: Optional[UUID] = None
    priority: Optional[JobPriority] = None
    limit: int = 50
    offset: int = 0


class JobRepository:
    """Repository for processing job queue operations.

    The single point of truth for job state: every status change goes
    through ``update_status`` or ``claim_next``.
    """

    def __init__(self, pool):
        self._pool = pool

    async def create(self, job: NewJob) -> ProcessingJob:
        """Insert a new job with status pending."""
        query = """
            INSERT INTO processing_jobs (type, data, priority, tenant_id, status)
            VALUES ($1, $2::jsonb, $3, $4, 'pending')
            RETURNING *
        """
        async with translate_db_errors("create processing job"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    query,
                    job.type.value,
                    to_jsonb(job.data),
                    job.priority.value,
                    job.tenant_id,
                )
        created = self._row_to_job(row)
        logger.info(
            "job_created",
            job_id=str(created.id),
            job_type=created.type.value,
            priority=created.priority.value,
        )
        return created

    async def create_batch(self, jobs: list[NewJob]) -> list[ProcessingJob]:
        """Insert several jobs atomically; any failure rolls back the whole batch."""
        if not jobs:
            return []

        query = """
            INSERT INTO processing_jobs (type, data, priority, tenant_id, status)
            VALUES ($1, $2::jsonb, $3, $4, 'pending')
            RETURNING *
        """
        created: list[ProcessingJob] = []
        async with translate_db_errors("create batch jobs"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    for job in jobs:
                        row = await conn.fetchrow(
                            query,
                            job.type.value,
                            to_jsonb(job.data),
                            job.priority.value,
                            job.tenant_id,
                        )
                        created.append(self._row_to_job(row))

        logger.info("jobs_batch_created", count=len(created))
        return created

    async def get(self, job_id: UUID) -> Optional[ProcessingJob]:
        """Get a job by ID. Returns None if absent."""
        query = "SELECT * FROM processing_jobs WHERE id = $1"
        async with translate_db_errors("fetch processing job"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, job_id)
        return self._row_to_job(row) if row else None

    async def list_jobs(self, filters: Optional[JobFilters] = None) -> list[ProcessingJob]:
        """List jobs newest first. Returns an empty list when nothing matches."""
        filters = filters or JobFilters()

        # Build WHERE clause dynamically
        conditions = []
        params: list[Any] = []
        param_idx = 1

        if filters.status:
            conditions.append(f"status = ${param_idx}")
            params.append(filters.status.value)
            param_idx += 1

        if filters.type:
            conditions.append(f"type = ${param_idx}")
            params.append(filters.type.value)
            param_idx += 1

        if filters.tenant_id:
            conditions.append(f"tenant_id = ${param_idx}")
            params.append(filters.tenant_id)
            param_idx += 1

        if filters.priority:
            conditions.append(f"priority = ${param_idx}")
            params.append(filters.priority.value)
            param_idx += 1

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = f"""
            SELECT * FROM processing_jobs
            {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([filters.limit, filters.offset])

        async with translate_db_errors("fetch processing jobs"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params)

        return [self._row_to_job(row) for row in rows]

    async def claim_next(self) -> Optional[ProcessingJob]:
        """Atomically claim the next pending job.

        The pending -> processing flip happens in a single conditional
        UPDATE over a row locked with SKIP LOCKED, so concurrent
        dispatchers never claim the same job.

        Returns None if no jobs are pending.
        """
        query = f"""
            WITH cte AS (
                SELECT id FROM processing_jobs
                WHERE status = 'pending'
                ORDER BY {CLAIM_ORDER_SQL}
                LIMIT 1
                FOR UPDATE SKIP LOCKED
            )
            UPDATE processing_jobs j SET
                status = 'processing',
                started_at = now(),
                updated_at = now()
            FROM cte
            WHERE j.id = cte.id AND j.status = 'pending'
            RETURNING j.*
        """
        async with translate_db_errors("claim processing job"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query)

        if row:
            logger.info(
                "job_claimed",
                job_id=str(row["id"]),
                job_type=row["type"],
                priority=row["priority"],
            )
            return self._row_to_job(row)
        return None

    async def update_status(
        self,
        job_id: UUID,
        status: JobStatus,
        result: Any = _UNSET,
        error: Any = _UNSET,
        processing_time_ms: Optional[int] = None,
    ) -> ProcessingJob:
        """Partially update a job's status and outcome.

        Only forward transitions are accepted. Re-applying the current
        status is a no-op: the stored job is returned as is and any
        outcome passed with it is ignored.

        Raises:
            NotFoundError: job does not exist
            InvalidTransitionError: transition would move the job backwards
            PersistenceError: the write failed
        """
        query = """
            UPDATE processing_jobs SET
                status = $2,
                result = CASE
                    WHEN $2 = 'failed' THEN NULL
                    WHEN $3::boolean THEN $4::jsonb
                    ELSE result END,
                error = CASE
                    WHEN $2 = 'completed' THEN NULL
                    WHEN $5::boolean THEN $6
                    ELSE error END,
                processing_time_ms = COALESCE($7, processing_time_ms),
                started_at = CASE
                    WHEN $2 = 'processing' AND started_at IS NULL THEN now()
                    ELSE started_at END,
                completed_at = CASE
                    WHEN $2 IN ('completed', 'failed') AND completed_at IS NULL THEN now()
                    ELSE completed_at END,
                updated_at = now()
            WHERE id = $1
            RETURNING *
        """
        async with translate_db_errors("update processing job"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchrow(
                        "SELECT * FROM processing_jobs WHERE id = $1 FOR UPDATE",
                        job_id,
                    )
                    if not current:
                        raise NotFoundError("Processing job", job_id)

                    current_status = JobStatus(current["status"])
                    if current_status == status:
                        logger.info(
                            "job_status_unchanged",
                            job_id=str(job_id),
                            status=status.value,
                        )
                        return self._row_to_job(current)
                    if not current_status.can_transition_to(status):
                        raise InvalidTransitionError(
                            job_id, current_status.value, status.value
                        )

                    row = await conn.fetchrow(
                        query,
                        job_id,
                        status.value,
                        result is not _UNSET,
                        to_jsonb(None if result is _UNSET else result),
                        error is not _UNSET,
                        None if error is _UNSET else error,
                        processing_time_ms,
                    )

        logger.info(
            "job_status_updated",
            job_id=str(job_id),
            from_status=current_status.value,
            to_status=status.value,
        )
        return self._row_to_job(row)

    async def complete(
        self, job_id: UUID, result: Any, processing_time_ms: int
    ) -> ProcessingJob:
        """Mark a job as completed."""
        return await self.update_status(
            job_id,
            JobStatus.COMPLETED,
            result=result,
            processing_time_ms=processing_time_ms,
        )

    async def fail(
        self, job_id: UUID, error: str, processing_time_ms: int
    ) -> ProcessingJob:
        """Mark a job as failed. There is no automatic retry."""
        job = await self.update_status(
            job_id,
            JobStatus.FAILED,
            error=error,
            processing_time_ms=processing_time_ms,
        )
        logger.warning("job_failed", job_id=str(job_id), error=error)
        return job

    async def delete(self, job_id: UUID) -> None:
        """Delete a job. Raises NotFoundError if absent."""
        query = "DELETE FROM processing_jobs WHERE id = $1 RETURNING id"
        async with translate_db_errors("delete processing job"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, job_id)
        if not row:
            raise NotFoundError("Processing job", job_id)
        logger.info("job_deleted", job_id=str(job_id))

    async def list_stale(self, older_than_minutes: int = 30) -> list[ProcessingJob]:
        """List jobs stuck in processing longer than the given age.

        Read-only: stuck jobs are reported for reconciliation, never requeued.
        """
        query = """
            SELECT * FROM processing_jobs
            WHERE status = 'processing'
              AND started_at < now() - make_interval(mins => $1)
            ORDER BY started_at
        """
        async with translate_db_errors("fetch stale processing jobs"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, older_than_minutes)
        return [self._row_to_job(row) for row in rows]

    async def cleanup_old_jobs(
        self, completed_days: int = 7, failed_days: int = 30
    ) -> dict[str, int]:
        """Delete terminal jobs older than the retention windows."""
        completed_query = """
            DELETE FROM processing_jobs
            WHERE status = 'completed'
              AND completed_at < now() - make_interval(days => $1)
            RETURNING id
        """
        failed_query = """
            DELETE FROM processing_jobs
            WHERE status = 'failed'
              AND completed_at < now() - make_interval(days => $1)
            RETURNING id
        """
        async with translate_db_errors("clean up processing jobs"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    completed_rows = await conn.fetch(completed_query, completed_days)
                    failed_rows = await conn.fetch(failed_query, failed_days)

        counts = {
            "completed_deleted": len(completed_rows),
            "failed_deleted": len(failed_rows),
        }
        logger.info("jobs_cleaned_up", **counts)
        return counts

    async def queue_stat_rows(self, tenant_id: Optional[UUID] = None) -> list[dict[str, Any]]:
        """Grouped counts per (status, type, priority) with average completed time."""
        query = """
            SELECT
                status,
                type,
                priority,
                COUNT(*) AS count,
                COUNT(processing_time_ms) FILTER (WHERE status = 'completed')
                    AS timed_count,
                AVG(processing_time_ms) FILTER (WHERE status = 'completed')
                    AS avg_processing_time_ms
            FROM processing_jobs
            WHERE ($1::uuid IS NULL OR tenant_id = $1)
            GROUP BY status, type, priority
            ORDER BY status, type, priority
        """
        async with translate_db_errors("fetch queue stats"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, tenant_id)
        return [dict(row) for row in rows]

    async def latest_status_by_conversation(
        self, conversation_ids: list[str]
    ) -> dict[str, JobStatus]:
        """Status of the most recent job touching each conversation id."""
        if not conversation_ids:
            return {}

        query = """
            SELECT data, status FROM processing_jobs
            WHERE data->'conversation_ids' ?| $1::text[]
            ORDER BY created_at ASC
        """
        async with translate_db_errors("fetch conversation processing status"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, conversation_ids)

        wanted = set(conversation_ids)
        status_map: dict[str, JobStatus] = {}
        for row in rows:
            data = ensure_json(row["data"]) or {}
            for conversation_id in data.get("conversation_ids", []):
                if conversation_id in wanted:
                    status_map[conversation_id] = JobStatus(row["status"])
        return status_map

    def _row_to_job(self, row) -> ProcessingJob:
        """Convert a database row to a ProcessingJob model."""
        return ProcessingJob(
            id=row["id"],
            type=JobType(row["type"]),
            status=JobStatus(row["status"]),
            data=ensure_json(row["data"]) or {},
            priority=JobPriority(row["priority"]),
            tenant_id=row["tenant_id"],
            result=ensure_json(row["result"]) if isinstance(row["result"], str) else row["result"],
            error=row["error"],
            processing_time_ms=row["processing_time_ms"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )
