"""Tests for /pipeline endpoints with a mocked PipelineService."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from convo_pipeline.config import Settings
from convo_pipeline.errors import (
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from convo_pipeline.jobs.models import BatchProcessingResult, JobOutcome, ProcessingJob
from convo_pipeline.jobs.types import JobPriority, JobStatus, JobType
from convo_pipeline.routers import pipeline
from convo_pipeline.services.pipeline import PipelineService, QueueStats, aggregate_queue_stats

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_job(status: JobStatus = JobStatus.PENDING, **overrides) -> ProcessingJob:
    fields = dict(
        id=uuid4(),
        type=JobType.SENTIMENT_ANALYSIS,
        status=status,
        data={"conversation_ids": ["c1"], "provider": "local"},
        priority=JobPriority.MEDIUM,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return ProcessingJob(**fields)


@pytest.fixture
def service():
    mock = AsyncMock()
    pipeline.set_pipeline_service(mock)
    yield mock
    pipeline.set_pipeline_service(None)


@pytest.fixture
def client():
    """Create test client."""
    from convo_pipeline.main import app

    return TestClient(app)


class TestJobsEndpoints:
    def test_create_job(self, client, service):
        service.create_job.return_value = make_job()
        tenant = uuid4()

        response = client.post(
            "/pipeline/jobs",
            json={"type": "sentiment_analysis", "data": {"conversation_ids": ["c1"]}},
            headers={"X-Tenant-ID": str(tenant)},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["result"] is None
        spec = service.create_job.await_args.args[0]
        assert spec.tenant_id == tenant
        assert spec.priority == JobPriority.MEDIUM

    def test_create_job_invalid_payload_is_400(self, client, service):
        service.create_job.side_effect = ValidationError(
            "Invalid sentiment_analysis payload: conversation_ids: Field required"
        )

        response = client.post("/pipeline/jobs", json={"type": "sentiment_analysis", "data": {}})

        assert response.status_code == 400
        assert "conversation_ids" in response.json()["detail"]

    def test_unknown_job_type_is_422(self, client, service):
        response = client.post("/pipeline/jobs", json={"type": "reindex", "data": {}})

        assert response.status_code == 422
        service.create_job.assert_not_called()

    def test_invalid_tenant_header(self, client, service):
        response = client.post(
            "/pipeline/jobs",
            json={"type": "trend_analysis"},
            headers={"X-Tenant-ID": "acme"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "X-Tenant-ID must be a UUID"

    def test_get_job_not_found(self, client, service):
        service.get_job.return_value = None

        response = client.get(f"/pipeline/jobs/{uuid4()}")

        assert response.status_code == 404

    def test_list_jobs_passes_filters(self, client, service):
        service.list_jobs.return_value = []

        response = client.get("/pipeline/jobs?status=failed&type=trend_analysis&limit=5")

        assert response.status_code == 200
        assert response.json() == []
        filters = service.list_jobs.await_args.args[0]
        assert filters.status == JobStatus.FAILED
        assert filters.type == JobType.TREND_ANALYSIS
        assert filters.limit == 5

    def test_patch_only_sends_present_fields(self, client, service):
        job_id = uuid4()
        service.update_job_status.return_value = make_job(
            JobStatus.COMPLETED, id=job_id, result={"ok": True}
        )

        response = client.patch(
            f"/pipeline/jobs/{job_id}", json={"status": "completed", "result": {"ok": True}}
        )

        assert response.status_code == 200
        args = service.update_job_status.await_args
        assert args.args == (job_id, JobStatus.COMPLETED)
        assert args.kwargs == {"result": {"ok": True}}

    def test_backward_transition_is_400(self, client, service):
        job_id = uuid4()
        service.update_job_status.side_effect = InvalidTransitionError(
            job_id, "completed", "pending"
        )

        response = client.patch(f"/pipeline/jobs/{job_id}", json={"status": "pending"})

        assert response.status_code == 400
        assert "cannot transition" in response.json()["detail"]

    def test_delete_missing_is_404(self, client, service):
        job_id = uuid4()
        service.delete_job.side_effect = NotFoundError("Processing job", job_id)

        response = client.delete(f"/pipeline/jobs/{job_id}")

        assert response.status_code == 404

    def test_delete(self, client, service):
        response = client.delete(f"/pipeline/jobs/{uuid4()}")
        assert response.status_code == 204

    def test_store_failure_is_503(self, client, service):
        service.list_jobs.side_effect = PersistenceError(
            "Failed to fetch processing jobs", cause=OSError("connection refused")
        )

        response = client.get("/pipeline/jobs")

        assert response.status_code == 503
        assert response.json()["retryable"] is True


class TestBatchEndpoints:
    def test_process_batch(self, client, service):
        ok = JobOutcome(job_id=uuid4(), processing_time_ms=4, result={"n": 1})
        bad = JobOutcome(job_id=uuid4(), processing_time_ms=2, error="boom")
        service.process_batch.return_value = BatchProcessingResult(results=[ok, bad])

        response = client.post("/pipeline/batch", json={"batch_size": 5})

        assert response.status_code == 200
        body = response.json()
        assert (body["processed"], body["successful"], body["failed"]) == (2, 1, 1)
        assert body["results"][1]["error"] == "boom"
        service.process_batch.assert_awaited_once_with(5)

    def test_process_batch_out_of_range(self, client, service):
        service.process_batch.side_effect = ValidationError("batch_size must be between 1 and 100")

        response = client.post("/pipeline/batch", json={"batch_size": 500})

        assert response.status_code == 400

    def test_sentiment_batch(self, client, service):
        service.trigger_sentiment_batch.return_value = {
            "total_processed": 1,
            "successful": 1,
            "failed": 0,
            "provider": "local",
            "chunks": [1],
            "results": [
                {"conversation_id": "c1", "sentiment": "positive", "confidence": 0.7}
            ],
        }

        response = client.post(
            "/pipeline/sentiment/batch",
            json={"conversation_ids": ["c1"], "batch_size": 10},
        )

        assert response.status_code == 200
        assert response.json()["results"][0]["sentiment"] == "positive"
        service.trigger_sentiment_batch.assert_awaited_once_with(
            ["c1"], provider=None, batch_size=10, tenant_id=None
        )

    def test_stats_for_empty_store(self, client, service):
        service.get_queue_stats.return_value = aggregate_queue_stats([])

        response = client.get("/pipeline/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 0
        assert body["avg_processing_time_ms"] == 0.0
        assert body["by_priority"] == {"low": 0, "medium": 0, "high": 0}

    def test_stats_defaults(self, client, service):
        service.get_queue_stats.return_value = QueueStats(pending=2)
        assert client.get("/pipeline/stats").json()["total"] == 2


class TestTriggerEndpoint:
    def test_extra_fields_become_params(self, client, service):
        service.trigger.return_value = {
            "message": "data_cleanup triggered successfully",
            "type": "data_cleanup",
            "tenant_id": None,
            "output": {"completed_deleted": 0},
        }

        response = client.post("/pipeline/trigger", json={"type": "data_cleanup", "dry": True})

        assert response.status_code == 200
        service.trigger.assert_awaited_once_with("data_cleanup", {"dry": True}, None)

    def test_unknown_type_is_400(self, client, service):
        service.trigger.side_effect = ValidationError("Unknown trigger type: reindex")

        response = client.post("/pipeline/trigger", json={"type": "reindex"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown trigger type: reindex"

    @pytest.mark.parametrize(
        "body",
        [
            {"type": "sentiment_batch", "conversation_ids": ["c1"], "batch_size": "5"},
            {"type": "sentiment_batch", "conversation_ids": ["c1"], "provider": ["local"]},
            {"type": "sentiment_batch", "conversation_ids": [1]},
        ],
    )
    def test_mistyped_params_are_400(self, client, body):
        coordinator = AsyncMock()
        pipeline.set_pipeline_service(
            PipelineService(
                jobs=AsyncMock(),
                conversations=AsyncMock(),
                metrics=AsyncMock(),
                tasks=AsyncMock(),
                processor=AsyncMock(),
                coordinator=coordinator,
                runner=AsyncMock(),
                trend_analyzer=AsyncMock(),
                settings=Settings(),
            )
        )
        try:
            response = client.post("/pipeline/trigger", json=body)
        finally:
            pipeline.set_pipeline_service(None)

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid sentiment_batch params")
        coordinator.trigger.assert_not_awaited()


def test_service_unavailable_without_database(client):
    pipeline.set_pipeline_service(None)

    response = client.get("/pipeline/stats")

    assert response.status_code == 503
