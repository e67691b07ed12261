"""Scheduled task runner - the cron entry point for recurring pipeline work."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import UUID

import structlog

from convo_pipeline.jobs.dispatcher import BatchProcessor
from convo_pipeline.jobs.models import NewJob, ScheduledTask
from convo_pipeline.jobs.payloads import normalize_payload
from convo_pipeline.jobs.types import JobPriority, JobType, ScheduledTaskType, TaskSchedule
from convo_pipeline.repositories.conversations import ConversationRepository
from convo_pipeline.repositories.jobs import JobRepository
from convo_pipeline.repositories.metrics import ProcessingMetricsRepository
from convo_pipeline.repositories.scheduled_tasks import ScheduledTaskRepository

logger = structlog.get_logger(__name__)

CLEANUP_METRICS_TYPE = "cleanup"
DEFAULT_SENTIMENT_SCAN_LIMIT = 100
DEFAULT_PROCESS_BATCH_SIZE = 20

SCHEDULE_INTERVALS: dict[TaskSchedule, timedelta] = {
    TaskSchedule.HOURLY: timedelta(hours=1),
    TaskSchedule.DAILY: timedelta(days=1),
    TaskSchedule.WEEKLY: timedelta(weeks=1),
}


def compute_next_run(schedule: TaskSchedule, from_time: datetime) -> datetime:
    """Next due time for a schedule, counted from the given run time."""
    return from_time + SCHEDULE_INTERVALS[schedule]


async def run_cleanup(
    jobs: JobRepository,
    metrics: ProcessingMetricsRepository,
    completed_days: int,
    failed_days: int,
    tenant_id: Optional[UUID] = None,
) -> dict[str, Any]:
    """Delete expired terminal jobs and append a cleanup metrics row."""
    deleted = await jobs.cleanup_old_jobs(completed_days, failed_days)
    summary = {
        **deleted,
        "completed_retention_days": completed_days,
        "failed_retention_days": failed_days,
        "cleaned_at": datetime.now(timezone.utc).isoformat(),
    }
    await metrics.record(CLEANUP_METRICS_TYPE, summary, tenant_id)
    return summary


class ScheduledTaskRunner:
    """Runs enabled scheduled tasks whose next_run has passed.

    Each task runs in isolation: a failure is recorded on that task
    (last_status/last_error) and the remaining due tasks still run.
    """

    def __init__(
        self,
        tasks: ScheduledTaskRepository,
        jobs: JobRepository,
        conversations: ConversationRepository,
        metrics: ProcessingMetricsRepository,
        processor: BatchProcessor,
        retention_completed_days: int = 7,
        retention_failed_days: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._tasks = tasks
        self._jobs = jobs
        self._conversations = conversations
        self._metrics = metrics
        self._processor = processor
        self._retention_completed_days = retention_completed_days
        self._retention_failed_days = retention_failed_days
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run_due(self, limit: int = 10) -> dict[str, Any]:
        """Run every due task once and reschedule it."""
        now = self._clock()
        due = await self._tasks.list_due(now, limit=limit)

        outcomes = []
        for task in due:
            outcomes.append(await self._run_and_record(task, now))

        succeeded = sum(1 for o in outcomes if o["status"] == "success")
        logger.info(
            "scheduled_tasks_ran",
            due=len(due),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
        )
        return {
            "ran": len(outcomes),
            "succeeded": succeeded,
            "failed": len(outcomes) - succeeded,
            "results": outcomes,
        }

    async def _run_and_record(self, task: ScheduledTask, now: datetime) -> dict[str, Any]:
        log = logger.bind(task_id=str(task.id), task_type=task.type.value)
        outcome: dict[str, Any] = {
            "task_id": str(task.id),
            "name": task.name,
            "type": task.type.value,
        }
        try:
            outcome["output"] = await self.run_task(task)
            outcome["status"] = "success"
            error = None
        except Exception as e:
            error = str(e) or e.__class__.__name__
            log.error("scheduled_task_failed", error=error)
            outcome["status"] = "error"
            outcome["error"] = error

        await self._tasks.record_run(
            task.id,
            outcome["status"],
            ran_at=now,
            next_run=compute_next_run(task.schedule, now),
            error=error,
        )
        return outcome

    async def run_task(self, task: ScheduledTask) -> dict[str, Any]:
        """Execute one task regardless of its due time."""
        if task.type == ScheduledTaskType.SENTIMENT_BATCH:
            return await self._run_sentiment_batch(task)
        if task.type == ScheduledTaskType.TREND_ANALYSIS:
            return await self._run_trend_analysis(task)
        if task.type == ScheduledTaskType.DATA_CLEANUP:
            return await run_cleanup(
                self._jobs,
                self._metrics,
                int(task.config.get("completed_days", self._retention_completed_days)),
                int(task.config.get("failed_days", self._retention_failed_days)),
                task.tenant_id,
            )
        raise ValueError(f"Unknown scheduled task type: {task.type}")

    async def _run_sentiment_batch(self, task: ScheduledTask) -> dict[str, Any]:
        limit = int(task.config.get("batch_size", DEFAULT_SENTIMENT_SCAN_LIMIT))
        provider = task.config.get("provider", "local")
        conversation_ids = await self._conversations.list_unanalyzed_ids(
            task.tenant_id, limit=limit
        )
        if not conversation_ids:
            return {"jobs_created": 0, "processed": 0}

        new_jobs = [
            NewJob(
                type=JobType.SENTIMENT_ANALYSIS,
                data=normalize_payload(
                    JobType.SENTIMENT_ANALYSIS,
                    {"conversation_ids": [cid], "provider": provider},
                ),
                priority=JobPriority.MEDIUM,
                tenant_id=task.tenant_id,
            )
            for cid in conversation_ids
        ]
        created = await self._jobs.create_batch(new_jobs)

        process_size = int(task.config.get("process_batch_size", DEFAULT_PROCESS_BATCH_SIZE))
        batch = await self._processor.process_batch(process_size)
        return {
            "jobs_created": len(created),
            "processed": batch.processed,
            "successful": batch.successful,
            "failed": batch.failed,
        }

    async def _run_trend_analysis(self, task: ScheduledTask) -> dict[str, Any]:
        data: dict[str, Any] = {"time_range": task.config.get("time_range", "24h")}
        if task.tenant_id is not None:
            data["tenant_id"] = str(task.tenant_id)
        if task.config.get("keywords"):
            data["keywords"] = task.config["keywords"]

        job = await self._jobs.create(
            NewJob(
                type=JobType.TREND_ANALYSIS,
                data=normalize_payload(JobType.TREND_ANALYSIS, data),
                priority=JobPriority.MEDIUM,
                tenant_id=task.tenant_id,
            )
        )
        return {"job_id": str(job.id)}
