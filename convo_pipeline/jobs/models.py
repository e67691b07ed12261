"""Job system data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from convo_pipeline.jobs.types import (
    JobPriority,
    JobStatus,
    JobType,
    ScheduledTaskType,
    TaskSchedule,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProcessingJob:
    """A job in the processing queue."""

    id: UUID
    type: JobType
    status: JobStatus
    data: dict[str, Any]
    priority: JobPriority = JobPriority.MEDIUM
    tenant_id: Optional[UUID] = None

    # Outcome (result and error are mutually exclusive)
    result: Optional[Any] = None
    error: Optional[str] = None
    processing_time_ms: Optional[int] = None

    # Lifecycle timestamps
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "data": self.data,
            "priority": self.priority.value,
            "tenant_id": self.tenant_id,
            "result": self.result,
            "error": self.error,
            "processing_time_ms": self.processing_time_ms,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


def claim_order_key(job: ProcessingJob) -> tuple[int, datetime]:
    """Sort key for claiming: priority descending, then oldest first."""
    return (-job.priority.rank, job.created_at)


@dataclass
class NewJob:
    """A validated job awaiting insertion."""

    type: JobType
    data: dict[str, Any]
    priority: JobPriority = JobPriority.MEDIUM
    tenant_id: Optional[UUID] = None


@dataclass
class JobOutcome:
    """Per-job entry in a batch processing result."""

    job_id: UUID
    processing_time_ms: int
    result: Optional[Any] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "job_id": str(self.job_id),
            "processing_time_ms": self.processing_time_ms,
        }
        if self.error is None:
            out["result"] = self.result
        else:
            out["error"] = self.error
        return out


@dataclass
class BatchProcessingResult:
    """Aggregate outcome of one dispatcher run."""

    results: list[JobOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.succeeded)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class ScheduledTask:
    """A recurring trigger definition that periodically enqueues work."""

    id: UUID
    name: str
    type: ScheduledTaskType
    schedule: TaskSchedule
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)
    tenant_id: Optional[UUID] = None
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    last_status: Optional[str] = None
    last_error: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "schedule": self.schedule.value,
            "enabled": self.enabled,
            "config": self.config,
            "tenant_id": self.tenant_id,
            "last_run": self.last_run,
            "next_run": self.next_run,
            "last_status": self.last_status,
            "last_error": self.last_error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ProcessingMetrics:
    """Append-only snapshot of one batch run."""

    id: UUID
    type: str
    metrics: dict[str, Any]
    tenant_id: Optional[UUID] = None
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "metrics": self.metrics,
            "tenant_id": self.tenant_id,
            "created_at": self.created_at,
        }
