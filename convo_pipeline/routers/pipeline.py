"""Processing pipeline endpoints: jobs, dispatch, sentiment batches, stats, scheduled tasks.

Pipeline errors map onto HTTP through the app exception handlers
(ValidationError 400, NotFoundError 404, PersistenceError 503).
Batch endpoints return 200 with per-item successes and failures.
"""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from convo_pipeline.deps.security import get_tenant_id
from convo_pipeline.jobs.types import JobPriority, JobStatus, JobType
from convo_pipeline.repositories.jobs import JobFilters
from convo_pipeline.schemas import (
    BatchProcessingResponse,
    CreateBatchJobsRequest,
    CreateJobRequest,
    JobResponse,
    ProcessBatchRequest,
    ProcessingMetricsResponse,
    QueueStatsResponse,
    ScheduledTaskCreateRequest,
    ScheduledTaskResponse,
    ScheduledTaskUpdateRequest,
    SentimentBatchRequest,
    SentimentBatchResponse,
    TriggerRequest,
    TriggerResponse,
    UpdateJobRequest,
)
from convo_pipeline.services.pipeline import JobSpec, PipelineService

router = APIRouter(prefix="/pipeline", tags=["pipeline"])
logger = structlog.get_logger(__name__)

# Global state (set during app startup)
_service: Optional[PipelineService] = None


def set_pipeline_service(service: Optional[PipelineService]) -> None:
    """Set the pipeline service for this router."""
    global _service
    _service = service


def get_pipeline_service() -> PipelineService:
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available",
        )
    return _service


def _spec(req: CreateJobRequest, tenant_id: Optional[UUID]) -> JobSpec:
    return JobSpec(
        type=req.type,
        data=req.data,
        priority=req.priority,
        tenant_id=req.tenant_id or tenant_id,
    )


# =============================================================================
# Jobs
# =============================================================================


@router.post("/jobs", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    req: CreateJobRequest,
    tenant_id: Optional[UUID] = Depends(get_tenant_id),
    service: PipelineService = Depends(get_pipeline_service),
) -> JobResponse:
    """Enqueue a job. The payload is validated against its job type."""
    job = await service.create_job(_spec(req, tenant_id))
    return JobResponse.from_job(job)


@router.post(
    "/jobs/batch",
    response_model=list[JobResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_batch_jobs(
    req: CreateBatchJobsRequest,
    tenant_id: Optional[UUID] = Depends(get_tenant_id),
    service: PipelineService = Depends(get_pipeline_service),
) -> list[JobResponse]:
    """Enqueue several jobs; either all are inserted or none."""
    jobs = await service.create_batch_jobs([_spec(j, tenant_id) for j in req.jobs])
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/jobs", response_model=list[JobResponse])
async def list_jobs(
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    job_type: Optional[JobType] = Query(None, alias="type"),
    priority: Optional[JobPriority] = Query(None),
    tenant_id_param: Optional[UUID] = Query(None, alias="tenant_id"),
    limit: int = Query(50),
    offset: int = Query(0),
    tenant_id: Optional[UUID] = Depends(get_tenant_id),
    service: PipelineService = Depends(get_pipeline_service),
) -> list[JobResponse]:
    """List jobs newest first. An empty match is an empty list."""
    filters = JobFilters(
        status=job_status,
        type=job_type,
        priority=priority,
        tenant_id=tenant_id_param or tenant_id,
        limit=limit,
        offset=offset,
    )
    jobs = await service.list_jobs(filters)
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/jobs/stale", response_model=list[JobResponse])
async def list_stale_jobs(
    older_than_minutes: int = Query(30),
    service: PipelineService = Depends(get_pipeline_service),
) -> list[JobResponse]:
    """Jobs stuck in processing, for manual reconciliation."""
    jobs = await service.list_stale_jobs(older_than_minutes)
    return [JobResponse.from_job(job) for job in jobs]


@router.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    responses={404: {"description": "Job not found"}},
)
async def get_job(
    job_id: UUID,
    service: PipelineService = Depends(get_pipeline_service),
) -> JobResponse:
    job = await service.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return JobResponse.from_job(job)


@router.patch("/jobs/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: UUID,
    req: UpdateJobRequest,
    service: PipelineService = Depends(get_pipeline_service),
) -> JobResponse:
    """Move a job forward. Only fields present in the body are written."""
    outcome = req.model_dump(include=req.model_fields_set - {"status"})
    job = await service.update_job_status(job_id, req.status, **outcome)
    return JobResponse.from_job(job)


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(
    job_id: UUID,
    service: PipelineService = Depends(get_pipeline_service),
) -> Response:
    await service.delete_job(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/jobs/{job_id}/resubmit",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def resubmit_job(
    job_id: UUID,
    service: PipelineService = Depends(get_pipeline_service),
) -> JobResponse:
    """Queue a fresh copy of a failed job."""
    job = await service.resubmit_job(job_id)
    return JobResponse.from_job(job)


# =============================================================================
# Dispatch and sentiment batches
# =============================================================================


@router.post("/batch", response_model=BatchProcessingResponse)
async def process_batch(
    req: ProcessBatchRequest,
    service: PipelineService = Depends(get_pipeline_service),
) -> BatchProcessingResponse:
    """Run the dispatcher once. Individual job failures are reported, not raised."""
    result = await service.process_batch(req.batch_size)
    return BatchProcessingResponse(**result.to_dict())


@router.post("/sentiment/batch", response_model=SentimentBatchResponse)
async def trigger_sentiment_batch(
    req: SentimentBatchRequest,
    tenant_id: Optional[UUID] = Depends(get_tenant_id),
    service: PipelineService = Depends(get_pipeline_service),
) -> SentimentBatchResponse:
    """Chunked sentiment analysis over explicit conversation ids."""
    result = await service.trigger_sentiment_batch(
        req.conversation_ids,
        provider=req.provider,
        batch_size=req.batch_size,
        tenant_id=tenant_id,
    )
    return SentimentBatchResponse(**result)


# =============================================================================
# Stats and metrics
# =============================================================================


@router.get("/stats", response_model=QueueStatsResponse)
async def get_queue_stats(
    tenant_id: Optional[UUID] = Depends(get_tenant_id),
    service: PipelineService = Depends(get_pipeline_service),
) -> QueueStatsResponse:
    stats = await service.get_queue_stats(tenant_id)
    return QueueStatsResponse(**stats.to_dict())


@router.get("/metrics", response_model=list[ProcessingMetricsResponse])
async def get_processing_metrics(
    time_range: str = Query("24h", description="1h, 24h or 7d"),
    service: PipelineService = Depends(get_pipeline_service),
) -> list[ProcessingMetricsResponse]:
    rows = await service.get_processing_metrics(time_range)
    return [ProcessingMetricsResponse.from_metrics(row) for row in rows]


# =============================================================================
# Scheduled tasks
# =============================================================================


@router.get("/scheduled-tasks", response_model=list[ScheduledTaskResponse])
async def list_scheduled_tasks(
    service: PipelineService = Depends(get_pipeline_service),
) -> list[ScheduledTaskResponse]:
    tasks = await service.list_scheduled_tasks()
    return [ScheduledTaskResponse.from_task(task) for task in tasks]


@router.post(
    "/scheduled-tasks",
    response_model=ScheduledTaskResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_scheduled_task(
    req: ScheduledTaskCreateRequest,
    tenant_id: Optional[UUID] = Depends(get_tenant_id),
    service: PipelineService = Depends(get_pipeline_service),
) -> ScheduledTaskResponse:
    task = await service.create_scheduled_task(
        name=req.name,
        task_type=req.type,
        schedule=req.schedule,
        enabled=req.enabled,
        config=req.config,
        tenant_id=req.tenant_id or tenant_id,
    )
    return ScheduledTaskResponse.from_task(task)


@router.post("/scheduled-tasks/run-due")
async def run_due_tasks(
    limit: int = Query(10, ge=1, le=100),
    service: PipelineService = Depends(get_pipeline_service),
) -> dict:
    """Cron hook: run every enabled task whose next_run has passed."""
    return await service.run_due_tasks(limit=limit)


@router.patch("/scheduled-tasks/{task_id}", response_model=ScheduledTaskResponse)
async def update_scheduled_task(
    task_id: UUID,
    req: ScheduledTaskUpdateRequest,
    service: PipelineService = Depends(get_pipeline_service),
) -> ScheduledTaskResponse:
    task = await service.update_scheduled_task(task_id, req.model_dump(exclude_unset=True))
    return ScheduledTaskResponse.from_task(task)


@router.post("/trigger", response_model=TriggerResponse)
async def trigger(
    req: TriggerRequest,
    tenant_id: Optional[UUID] = Depends(get_tenant_id),
    service: PipelineService = Depends(get_pipeline_service),
) -> TriggerResponse:
    """Run sentiment_batch, trend_analysis or data_cleanup on demand."""
    params = dict(req.model_extra or {})
    result = await service.trigger(req.type, params, tenant_id)
    return TriggerResponse(**result)
