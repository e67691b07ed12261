"""Tests for job models."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from convo_pipeline.jobs.models import (
    BatchProcessingResult,
    JobOutcome,
    ProcessingJob,
    claim_order_key,
)
from convo_pipeline.jobs.types import JobPriority, JobStatus, JobType


def make_job(priority: JobPriority, created_at: datetime) -> ProcessingJob:
    return ProcessingJob(
        id=uuid4(),
        type=JobType.CONTENT_NORMALIZATION,
        status=JobStatus.PENDING,
        data={"conversation_ids": ["c1"]},
        priority=priority,
        created_at=created_at,
    )


class TestProcessingJob:
    def test_defaults(self):
        job = ProcessingJob(
            id=uuid4(),
            type=JobType.SENTIMENT_ANALYSIS,
            status=JobStatus.PENDING,
            data={"conversation_ids": ["c1"]},
        )
        assert job.priority == JobPriority.MEDIUM
        assert job.result is None
        assert job.error is None
        assert job.started_at is None

    def test_to_dict_uses_enum_values(self):
        job = make_job(JobPriority.HIGH, datetime.now(timezone.utc))
        data = job.to_dict()
        assert data["type"] == "content_normalization"
        assert data["status"] == "pending"
        assert data["priority"] == "high"


class TestClaimOrder:
    def test_priority_then_age(self):
        t1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        t2 = t1 + timedelta(seconds=1)
        a = make_job(JobPriority.LOW, t1)
        b = make_job(JobPriority.HIGH, t2)
        c = make_job(JobPriority.HIGH, t1)

        ordered = sorted([a, b, c], key=claim_order_key)

        assert [j.id for j in ordered] == [c.id, b.id, a.id]


class TestBatchProcessingResult:
    def test_empty(self):
        batch = BatchProcessingResult()
        assert batch.to_dict() == {
            "processed": 0,
            "successful": 0,
            "failed": 0,
            "results": [],
        }

    def test_counts_and_exclusive_outcome(self):
        ok = JobOutcome(job_id=uuid4(), processing_time_ms=5, result={"n": 1})
        bad = JobOutcome(job_id=uuid4(), processing_time_ms=3, error="boom")
        batch = BatchProcessingResult(results=[ok, bad])

        assert batch.processed == 2
        assert batch.successful == 1
        assert batch.failed == 1

        ok_dict, bad_dict = batch.to_dict()["results"]
        assert ok_dict["result"] == {"n": 1}
        assert "error" not in ok_dict
        assert bad_dict["error"] == "boom"
        assert "result" not in bad_dict
