"""Job system package."""

from convo_pipeline.jobs.types import JobPriority, JobStatus, JobType
from convo_pipeline.jobs.models import BatchProcessingResult, JobOutcome, ProcessingJob
from convo_pipeline.jobs.registry import JobRegistry, default_registry

__all__ = [
    "JobType",
    "JobStatus",
    "JobPriority",
    "ProcessingJob",
    "JobOutcome",
    "BatchProcessingResult",
    "JobRegistry",
    "default_registry",
]
