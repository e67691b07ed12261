"""Pydantic models for request/response validation."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from convo_pipeline.jobs.models import ProcessingJob, ProcessingMetrics, ScheduledTask
from convo_pipeline.jobs.types import (
    JobPriority,
    JobStatus,
    JobType,
    ScheduledTaskType,
    TaskSchedule,
)


# Request Models
class CreateJobRequest(BaseModel):
    """Request to enqueue one processing job. ``data`` is validated per type."""

    type: JobType = Field(..., description="Job type")
    data: dict[str, Any] = Field(default_factory=dict, description="Job payload")
    priority: JobPriority = Field(default=JobPriority.MEDIUM, description="Job priority")
    tenant_id: Optional[UUID] = Field(
        None, description="Owning tenant (defaults to the X-Tenant-ID header)"
    )


class CreateBatchJobsRequest(BaseModel):
    """Request to enqueue several jobs atomically."""

    jobs: list[CreateJobRequest] = Field(..., min_length=1, max_length=1000)


class UpdateJobRequest(BaseModel):
    """Caller-driven status update. Only fields that are sent are written."""

    status: JobStatus
    result: Optional[Any] = None
    error: Optional[str] = None
    processing_time_ms: Optional[int] = Field(None, ge=0)


class ProcessBatchRequest(BaseModel):
    """Dispatcher trigger. Range is checked by the dispatcher (1..100)."""

    batch_size: Optional[int] = Field(None, description="Jobs to process, 1-100")


class SentimentBatchRequest(BaseModel):
    """Batch sentiment trigger over explicit conversation ids."""

    conversation_ids: list[str] = Field(..., description="Conversations to analyze")
    provider: Optional[str] = Field(None, description="Sentiment provider name")
    batch_size: Optional[int] = Field(None, description="Conversations per sub-batch")


class ScheduledTaskCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: ScheduledTaskType
    schedule: TaskSchedule
    enabled: bool = True
    config: dict[str, Any] = Field(default_factory=dict)
    tenant_id: Optional[UUID] = None


class ScheduledTaskUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    schedule: Optional[TaskSchedule] = None
    enabled: Optional[bool] = None
    config: Optional[dict[str, Any]] = None
    next_run: Optional[datetime] = None


class TriggerRequest(BaseModel):
    """On-demand trigger; extra fields are passed to the task kind."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1, description="sentiment_batch, trend_analysis or data_cleanup")


# Response Models
class JobResponse(BaseModel):
    """A processing job."""

    id: UUID
    type: JobType
    status: JobStatus
    data: dict[str, Any]
    priority: JobPriority
    tenant_id: Optional[UUID] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    processing_time_ms: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: ProcessingJob) -> "JobResponse":
        return cls(**job.to_dict())


class JobOutcomeResponse(BaseModel):
    job_id: UUID
    processing_time_ms: int
    result: Optional[Any] = None
    error: Optional[str] = None


class BatchProcessingResponse(BaseModel):
    """Aggregate result of one dispatcher run."""

    processed: int
    successful: int
    failed: int
    results: list[JobOutcomeResponse]


class SentimentItemResponse(BaseModel):
    conversation_id: str
    sentiment: str
    confidence: float
    keywords: Optional[list[str]] = None
    emotions: Optional[dict[str, float]] = None
    error: Optional[str] = None


class SentimentBatchResponse(BaseModel):
    total_processed: int
    successful: int
    failed: int
    provider: str
    chunks: list[int]
    results: list[SentimentItemResponse]


class QueueStatsResponse(BaseModel):
    """Job counts by status, type and priority."""

    pending: int
    processing: int
    completed: int
    failed: int
    total: int
    by_type: dict[str, int]
    by_priority: dict[str, int]
    avg_processing_time_ms: float


class ProcessingMetricsResponse(BaseModel):
    id: UUID
    type: str
    metrics: dict[str, Any]
    tenant_id: Optional[UUID] = None
    created_at: datetime

    @classmethod
    def from_metrics(cls, metrics: ProcessingMetrics) -> "ProcessingMetricsResponse":
        return cls(**metrics.to_dict())


class ScheduledTaskResponse(BaseModel):
    id: UUID
    name: str
    type: ScheduledTaskType
    schedule: TaskSchedule
    enabled: bool
    config: dict[str, Any]
    tenant_id: Optional[UUID] = None
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    last_status: Optional[str] = None
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: ScheduledTask) -> "ScheduledTaskResponse":
        return cls(**task.to_dict())


class TriggerResponse(BaseModel):
    message: str
    type: str
    tenant_id: Optional[UUID] = None
    output: Optional[Any] = None


class HealthResponse(BaseModel):
    """Response for health endpoint."""

    status: str = Field(..., description="Overall service status")
    database: str = Field(..., description="Database status (ok/unavailable/error)")
    version: str = Field(..., description="Service version")
