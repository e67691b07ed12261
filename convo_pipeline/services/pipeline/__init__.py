"""Pipeline orchestration: sentiment batches, queue stats, scheduled tasks."""

from convo_pipeline.services.pipeline.coordinator import BatchSentimentCoordinator, chunk_ids
from convo_pipeline.services.pipeline.scheduler import ScheduledTaskRunner, compute_next_run
from convo_pipeline.services.pipeline.service import JobSpec, PipelineService
from convo_pipeline.services.pipeline.stats import QueueStats, aggregate_queue_stats

__all__ = [
    "BatchSentimentCoordinator",
    "JobSpec",
    "PipelineService",
    "QueueStats",
    "ScheduledTaskRunner",
    "aggregate_queue_stats",
    "chunk_ids",
    "compute_next_run",
]
