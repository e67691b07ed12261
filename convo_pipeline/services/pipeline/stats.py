"""Read-only aggregations over processing jobs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from convo_pipeline.jobs.models import ProcessingJob
from convo_pipeline.jobs.types import JobPriority, JobStatus, JobType


@dataclass
class QueueStats:
    """Job counts by status, type and priority. Derived, never persisted."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    avg_processing_time_ms: float = 0.0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
            "by_type": dict(self.by_type),
            "by_priority": dict(self.by_priority),
            "avg_processing_time_ms": self.avg_processing_time_ms,
        }


def aggregate_queue_stats(rows: Iterable[Mapping[str, Any]]) -> QueueStats:
    """Fold grouped (status, type, priority) rows into QueueStats.

    Each row carries ``count`` plus, for completed jobs, ``timed_count`` and
    ``avg_processing_time_ms``. The overall average is weighted by
    ``timed_count`` so groups with more jobs count for more. No rows means
    all-zero stats.
    """
    stats = QueueStats(
        by_type={t.value: 0 for t in JobType},
        by_priority={p.value: 0 for p in JobPriority},
    )
    weighted_sum = 0.0
    weight = 0

    for row in rows:
        count = int(row["count"] or 0)
        status = str(row["status"])
        if status in {s.value for s in JobStatus}:
            setattr(stats, status, getattr(stats, status) + count)

        job_type = str(row["type"])
        stats.by_type[job_type] = stats.by_type.get(job_type, 0) + count
        priority = str(row["priority"])
        stats.by_priority[priority] = stats.by_priority.get(priority, 0) + count

        timed = int(row.get("timed_count") or 0)
        avg = row.get("avg_processing_time_ms")
        if status == JobStatus.COMPLETED.value and timed and avg is not None:
            weighted_sum += float(avg) * timed
            weight += timed

    if weight:
        stats.avg_processing_time_ms = round(weighted_sum / weight, 2)
    return stats


def calculate_metrics(jobs: list[ProcessingJob]) -> dict[str, Any]:
    """Summary of an in-memory job list, e.g. the result of a filtered listing."""
    counts = {s.value: 0 for s in JobStatus}
    for job in jobs:
        counts[job.status.value] += 1

    times = [
        job.processing_time_ms
        for job in jobs
        if job.status == JobStatus.COMPLETED and job.processing_time_ms is not None
    ]
    pending_created = [j.created_at for j in jobs if j.status == JobStatus.PENDING]
    oldest_pending: Optional[datetime] = min(pending_created) if pending_created else None

    return {
        "total": len(jobs),
        **counts,
        "avg_processing_time_ms": round(sum(times) / len(times), 2) if times else 0.0,
        "oldest_pending_at": oldest_pending.isoformat() if oldest_pending else None,
    }
