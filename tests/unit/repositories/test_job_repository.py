"""Tests for JobRepository against a mocked asyncpg pool."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from asyncpg.exceptions import UniqueViolationError

from convo_pipeline.errors import InvalidTransitionError, NotFoundError, PersistenceError
from convo_pipeline.jobs.models import NewJob
from convo_pipeline.jobs.types import JobPriority, JobStatus, JobType
from convo_pipeline.repositories.jobs import CLAIM_ORDER_SQL, JobFilters, JobRepository

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def job_row(status: str = "pending", **overrides) -> dict:
    row = {
        "id": uuid4(),
        "type": "sentiment_analysis",
        "status": status,
        "data": '{"conversation_ids": ["c1"], "provider": "local"}',
        "priority": "medium",
        "tenant_id": None,
        "result": None,
        "error": None,
        "processing_time_ms": None,
        "created_at": NOW,
        "updated_at": NOW,
        "started_at": None,
        "completed_at": None,
    }
    row.update(overrides)
    return row


class TestCreate:
    @pytest.mark.asyncio
    async def test_new_job_is_pending_without_outcome(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = job_row()
        repo = JobRepository(pool)

        job = await repo.create(
            NewJob(
                type=JobType.SENTIMENT_ANALYSIS,
                data={"conversation_ids": ["c1"], "provider": "local"},
                priority=JobPriority.MEDIUM,
            )
        )

        assert job.status == JobStatus.PENDING
        assert job.result is None
        assert job.error is None
        assert job.data["conversation_ids"] == ["c1"]

        sql, *args = conn.fetchrow.await_args.args
        assert "'pending'" in sql
        assert args[0] == "sentiment_analysis"
        assert args[2] == "medium"

    @pytest.mark.asyncio
    async def test_create_batch_uses_transaction(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.side_effect = [job_row(), job_row()]
        repo = JobRepository(pool)
        new = NewJob(type=JobType.CONTENT_NORMALIZATION, data={"conversation_ids": ["c1"]})

        jobs = await repo.create_batch([new, new])

        assert len(jobs) == 2
        conn.transaction.assert_called_once()
        assert conn.fetchrow.await_count == 2

    @pytest.mark.asyncio
    async def test_create_batch_empty(self, mock_pool):
        pool, conn = mock_pool
        repo = JobRepository(pool)

        assert await repo.create_batch([]) == []
        pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_driver_error_becomes_persistence_error(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.side_effect = UniqueViolationError("duplicate key")
        repo = JobRepository(pool)

        with pytest.raises(PersistenceError, match="Failed to create processing job"):
            await repo.create(
                NewJob(type=JobType.TREND_ANALYSIS, data={})
            )

    @pytest.mark.asyncio
    async def test_connection_error_becomes_persistence_error(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = OSError("connection refused")
        repo = JobRepository(pool)

        with pytest.raises(PersistenceError, match="connection refused"):
            await repo.list_jobs()


class TestClaimNext:
    @pytest.mark.asyncio
    async def test_claim_is_single_locked_statement(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = job_row(status="processing", started_at=NOW)
        repo = JobRepository(pool)

        job = await repo.claim_next()

        assert job.status == JobStatus.PROCESSING
        sql = conn.fetchrow.await_args.args[0]
        assert "FOR UPDATE SKIP LOCKED" in sql
        assert CLAIM_ORDER_SQL in sql
        assert "status = 'processing'" in sql

    @pytest.mark.asyncio
    async def test_no_pending_jobs(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None
        repo = JobRepository(pool)

        assert await repo.claim_next() is None

    def test_claim_order_ranks_high_first(self):
        assert "WHEN 'high' THEN 3" in CLAIM_ORDER_SQL
        assert "WHEN 'low' THEN 1" in CLAIM_ORDER_SQL
        assert CLAIM_ORDER_SQL.endswith("DESC, created_at ASC")


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_missing_job(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None
        repo = JobRepository(pool)

        with pytest.raises(NotFoundError):
            await repo.update_status(uuid4(), JobStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_backward_transition_rejected(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = {"status": "completed"}
        repo = JobRepository(pool)
        job_id = uuid4()

        with pytest.raises(InvalidTransitionError) as exc_info:
            await repo.update_status(job_id, JobStatus.PENDING)

        assert exc_info.value.current == "completed"
        assert exc_info.value.target == "pending"
        assert conn.fetchrow.await_count == 1

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, mock_pool):
        pool, conn = mock_pool
        stored = job_row(status="completed", result='{"ok": true}', processing_time_ms=12)
        conn.fetchrow.return_value = stored
        repo = JobRepository(pool)

        job = await repo.update_status(
            stored["id"], JobStatus.COMPLETED, result={"tampered": 1}, processing_time_ms=99
        )

        assert job.result == {"ok": True}
        assert job.processing_time_ms == 12
        assert job.updated_at == NOW
        assert conn.fetchrow.await_count == 1
        sql = conn.fetchrow.await_args.args[0]
        assert sql.startswith("SELECT")
        assert "UPDATE processing_jobs" not in sql

    @pytest.mark.asyncio
    async def test_repeated_failure_keeps_first_error(self, mock_pool):
        pool, conn = mock_pool
        stored = job_row(status="failed", error="first", processing_time_ms=3)
        conn.fetchrow.return_value = stored
        repo = JobRepository(pool)

        job = await repo.fail(stored["id"], "second", 8)

        assert job.error == "first"
        assert conn.fetchrow.await_count == 1
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_sent_fields_are_written(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.side_effect = [{"status": "pending"}, job_row(status="processing")]
        repo = JobRepository(pool)

        await repo.update_status(uuid4(), JobStatus.PROCESSING)

        args = conn.fetchrow.await_args.args
        # result_set, result, error_set, error, processing_time_ms
        assert args[3:] == (False, None, False, None, None)

    @pytest.mark.asyncio
    async def test_fail_records_error(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.side_effect = [
            {"status": "processing"},
            job_row(status="failed", error="boom", processing_time_ms=5),
        ]
        repo = JobRepository(pool)

        job = await repo.fail(uuid4(), "boom", 5)

        assert job.status == JobStatus.FAILED
        assert job.error == "boom"
        args = conn.fetchrow.await_args.args
        assert args[2] == "failed"
        assert args[5:] == (True, "boom", 5)


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_jobs_filters(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.return_value = []
        repo = JobRepository(pool)

        jobs = await repo.list_jobs(
            JobFilters(status=JobStatus.FAILED, type=JobType.TREND_ANALYSIS, limit=5, offset=10)
        )

        assert jobs == []
        sql, *params = conn.fetch.await_args.args
        assert "status = $1" in sql
        assert "type = $2" in sql
        assert "LIMIT $3 OFFSET $4" in sql
        assert params == ["failed", "trend_analysis", 5, 10]

    @pytest.mark.asyncio
    async def test_list_stale_is_read_only(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.return_value = [job_row(status="processing", started_at=NOW)]
        repo = JobRepository(pool)

        jobs = await repo.list_stale(older_than_minutes=45)

        assert [j.status for j in jobs] == [JobStatus.PROCESSING]
        sql, minutes = conn.fetch.await_args.args
        assert sql.lstrip().startswith("SELECT")
        assert "status = 'processing'" in sql
        assert minutes == 45
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_missing(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None
        repo = JobRepository(pool)

        with pytest.raises(NotFoundError):
            await repo.delete(uuid4())

    @pytest.mark.asyncio
    async def test_cleanup_counts(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.side_effect = [[{"id": 1}, {"id": 2}], [{"id": 3}]]
        repo = JobRepository(pool)

        counts = await repo.cleanup_old_jobs(completed_days=7, failed_days=30)

        assert counts == {"completed_deleted": 2, "failed_deleted": 1}

    @pytest.mark.asyncio
    async def test_latest_status_by_conversation(self, mock_pool):
        pool, conn = mock_pool
        conn.fetch.return_value = [
            {"data": '{"conversation_ids": ["c1", "c2"]}', "status": "failed"},
            {"data": '{"conversation_ids": ["c1"]}', "status": "completed"},
        ]
        repo = JobRepository(pool)

        statuses = await repo.latest_status_by_conversation(["c1", "c2"])

        assert statuses == {"c1": JobStatus.COMPLETED, "c2": JobStatus.FAILED}
