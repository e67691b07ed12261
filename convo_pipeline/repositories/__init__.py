"""Database repositories for the processing pipeline."""

from convo_pipeline.repositories import conversations, jobs, metrics, scheduled_tasks

__all__ = ["conversations", "jobs", "metrics", "scheduled_tasks"]
