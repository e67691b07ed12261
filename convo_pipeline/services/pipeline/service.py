"""Pipeline service - the single entry point used by routers and scripts."""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

import structlog

from convo_pipeline.config import Settings, get_settings
from convo_pipeline.errors import NotFoundError, ValidationError
from convo_pipeline.jobs.dispatcher import BatchProcessor
from convo_pipeline.jobs.models import (
    BatchProcessingResult,
    NewJob,
    ProcessingJob,
    ProcessingMetrics,
    ScheduledTask,
)
from convo_pipeline.jobs.payloads import (
    SentimentBatchParams,
    TrendTriggerParams,
    normalize_payload,
    validate_model,
)
from convo_pipeline.jobs.types import (
    JobPriority,
    JobStatus,
    JobType,
    ScheduledTaskType,
    TaskSchedule,
)
from convo_pipeline.repositories.conversations import ConversationRepository
from convo_pipeline.repositories.jobs import JobFilters, JobRepository
from convo_pipeline.repositories.metrics import ProcessingMetricsRepository
from convo_pipeline.repositories.scheduled_tasks import ScheduledTaskRepository
from convo_pipeline.routers.metrics import record_jobs_created
from convo_pipeline.services.pipeline.coordinator import BatchSentimentCoordinator
from convo_pipeline.services.pipeline.scheduler import ScheduledTaskRunner, run_cleanup
from convo_pipeline.services.pipeline.stats import (
    QueueStats,
    aggregate_queue_stats,
    calculate_metrics,
)
from convo_pipeline.services.sentiment.factory import SentimentProviders
from convo_pipeline.services.trends import TrendAnalyzer

logger = structlog.get_logger(__name__)

MAX_LIST_LIMIT = 500


@dataclass
class JobSpec:
    """Caller-supplied job before payload validation."""

    type: JobType
    data: Any
    priority: JobPriority = JobPriority.MEDIUM
    tenant_id: Optional[UUID] = None


class PipelineService:
    """Job lifecycle, dispatch, sentiment batches, stats and scheduled tasks."""

    def __init__(
        self,
        jobs: JobRepository,
        conversations: ConversationRepository,
        metrics: ProcessingMetricsRepository,
        tasks: ScheduledTaskRepository,
        processor: BatchProcessor,
        coordinator: BatchSentimentCoordinator,
        runner: ScheduledTaskRunner,
        trend_analyzer: TrendAnalyzer,
        settings: Settings,
    ):
        self.jobs = jobs
        self.conversations = conversations
        self.metrics = metrics
        self.tasks = tasks
        self.processor = processor
        self.coordinator = coordinator
        self.runner = runner
        self.trend_analyzer = trend_analyzer
        self.settings = settings

    @classmethod
    def from_pool(
        cls,
        pool,
        providers: SentimentProviders,
        trend_analyzer: TrendAnalyzer,
        settings: Optional[Settings] = None,
    ) -> "PipelineService":
        """Wire repositories, dispatcher, coordinator and runner over one pool."""
        settings = settings or get_settings()
        jobs = JobRepository(pool)
        conversations = ConversationRepository(pool)
        metrics = ProcessingMetricsRepository(pool)
        tasks = ScheduledTaskRepository(pool)

        processor = BatchProcessor(
            jobs,
            context={
                "conversations": conversations,
                "sentiment_providers": providers,
                "trend_analyzer": trend_analyzer,
            },
            max_batch_size=settings.dispatch_max_batch_size,
        )
        coordinator = BatchSentimentCoordinator(
            conversations,
            metrics,
            providers,
            default_batch_size=settings.sentiment_batch_size,
            max_batch_size=settings.sentiment_max_batch_size,
            max_conversation_ids=settings.sentiment_max_conversation_ids,
            chunk_delay_s=settings.sentiment_chunk_delay_s,
            write_batch_size=settings.sentiment_write_batch_size,
        )
        runner = ScheduledTaskRunner(
            tasks,
            jobs,
            conversations,
            metrics,
            processor,
            retention_completed_days=settings.job_retention_completed_days,
            retention_failed_days=settings.job_retention_failed_days,
        )
        return cls(
            jobs=jobs,
            conversations=conversations,
            metrics=metrics,
            tasks=tasks,
            processor=processor,
            coordinator=coordinator,
            runner=runner,
            trend_analyzer=trend_analyzer,
            settings=settings,
        )

    # ------------------------------------------------------------------
    # Job store
    # ------------------------------------------------------------------

    def _validate(self, spec: JobSpec) -> NewJob:
        return NewJob(
            type=spec.type,
            data=normalize_payload(spec.type, spec.data),
            priority=spec.priority,
            tenant_id=spec.tenant_id,
        )

    async def create_job(self, spec: JobSpec) -> ProcessingJob:
        """Validate the payload for its type and insert a pending job."""
        job = await self.jobs.create(self._validate(spec))
        record_jobs_created(job.type.value, job.priority.value)
        return job

    async def create_batch_jobs(self, specs: list[JobSpec]) -> list[ProcessingJob]:
        """Validate every payload first, then insert all jobs atomically."""
        if not specs:
            raise ValidationError("At least one job is required")
        new_jobs = [self._validate(spec) for spec in specs]
        created = await self.jobs.create_batch(new_jobs)
        for job in created:
            record_jobs_created(job.type.value, job.priority.value)
        return created

    async def list_jobs(self, filters: JobFilters) -> list[ProcessingJob]:
        if filters.limit < 1 or filters.limit > MAX_LIST_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}")
        if filters.offset < 0:
            raise ValidationError("offset must not be negative")
        return await self.jobs.list_jobs(filters)

    async def get_job(self, job_id: UUID) -> Optional[ProcessingJob]:
        return await self.jobs.get(job_id)

    async def update_job_status(
        self, job_id: UUID, status: JobStatus, **outcome: Any
    ) -> ProcessingJob:
        """Caller-driven status update; ``outcome`` may carry result and/or error."""
        unknown = set(outcome) - {"result", "error", "processing_time_ms"}
        if unknown:
            raise ValidationError(f"Unknown job fields: {', '.join(sorted(unknown))}")
        return await self.jobs.update_status(job_id, status, **outcome)

    async def delete_job(self, job_id: UUID) -> None:
        await self.jobs.delete(job_id)

    async def resubmit_job(self, job_id: UUID) -> ProcessingJob:
        """Create a new pending copy of a failed job. The original is untouched."""
        original = await self.jobs.get(job_id)
        if original is None:
            raise NotFoundError("Processing job", job_id)
        if original.status != JobStatus.FAILED:
            raise ValidationError(
                f"Only failed jobs can be resubmitted (job {job_id} is {original.status.value})"
            )
        job = await self.create_job(
            JobSpec(
                type=original.type,
                data=original.data,
                priority=original.priority,
                tenant_id=original.tenant_id,
            )
        )
        logger.info("job_resubmitted", original_job_id=str(job_id), job_id=str(job.id))
        return job

    async def list_stale_jobs(self, older_than_minutes: int = 30) -> list[ProcessingJob]:
        if older_than_minutes < 1:
            raise ValidationError("older_than_minutes must be at least 1")
        return await self.jobs.list_stale(older_than_minutes)

    # ------------------------------------------------------------------
    # Dispatch and sentiment batches
    # ------------------------------------------------------------------

    async def process_batch(self, batch_size: Optional[int] = None) -> BatchProcessingResult:
        if batch_size is None:
            batch_size = self.settings.dispatch_default_batch_size
        return await self.processor.process_batch(batch_size)

    async def trigger_sentiment_batch(
        self,
        conversation_ids: list[str],
        provider: Optional[str] = None,
        batch_size: Optional[int] = None,
        tenant_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        return await self.coordinator.trigger(
            conversation_ids,
            provider=provider or self.settings.sentiment_default_provider,
            batch_size=batch_size,
            tenant_id=tenant_id,
        )

    # ------------------------------------------------------------------
    # Stats and metrics
    # ------------------------------------------------------------------

    async def get_queue_stats(self, tenant_id: Optional[UUID] = None) -> QueueStats:
        rows = await self.jobs.queue_stat_rows(tenant_id)
        return aggregate_queue_stats(rows)

    async def get_processing_metrics(
        self, time_range: Optional[str] = None
    ) -> list[ProcessingMetrics]:
        return await self.metrics.list_since(time_range)

    @staticmethod
    def calculate_metrics(jobs: list[ProcessingJob]) -> dict[str, Any]:
        return calculate_metrics(jobs)

    # ------------------------------------------------------------------
    # Scheduled tasks
    # ------------------------------------------------------------------

    async def list_scheduled_tasks(self) -> list[ScheduledTask]:
        return await self.tasks.list_tasks()

    async def create_scheduled_task(
        self,
        name: str,
        task_type: ScheduledTaskType,
        schedule: TaskSchedule,
        enabled: bool = True,
        config: Optional[dict[str, Any]] = None,
        tenant_id: Optional[UUID] = None,
    ) -> ScheduledTask:
        if not name.strip():
            raise ValidationError("Scheduled task name is required")
        return await self.tasks.create(
            name.strip(), task_type, schedule, enabled, config, tenant_id
        )

    async def update_scheduled_task(
        self, task_id: UUID, updates: dict[str, Any]
    ) -> ScheduledTask:
        return await self.tasks.update(task_id, updates)

    async def run_due_tasks(self, limit: int = 10) -> dict[str, Any]:
        return await self.runner.run_due(limit=limit)

    async def trigger(
        self, trigger_type: str, params: dict[str, Any], tenant_id: Optional[UUID] = None
    ) -> dict[str, Any]:
        """Run one task kind on demand."""
        try:
            kind = ScheduledTaskType(trigger_type)
        except ValueError:
            raise ValidationError(f"Unknown trigger type: {trigger_type}") from None

        label = f"{kind.value} params"
        if kind == ScheduledTaskType.SENTIMENT_BATCH:
            batch = validate_model(SentimentBatchParams, params, label)
            output = await self.trigger_sentiment_batch(
                batch.conversation_ids,
                provider=batch.provider,
                batch_size=batch.batch_size,
                tenant_id=tenant_id,
            )
        elif kind == ScheduledTaskType.TREND_ANALYSIS:
            trend = validate_model(TrendTriggerParams, params, label)
            output = await self.trend_analyzer.analyze(
                str(tenant_id) if tenant_id else None,
                trend.time_range,
                trend.keywords,
            )
        else:
            output = await run_cleanup(
                self.jobs,
                self.metrics,
                self.settings.job_retention_completed_days,
                self.settings.job_retention_failed_days,
                tenant_id,
            )

        logger.info("pipeline_triggered", trigger_type=kind.value)
        return {
            "message": f"{kind.value} triggered successfully",
            "type": kind.value,
            "tenant_id": tenant_id,
            "output": output,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def create_sentiment_jobs(
        self,
        conversation_ids: list[str],
        tenant_id: Optional[UUID] = None,
        priority: JobPriority = JobPriority.MEDIUM,
        provider: str = "local",
    ) -> list[ProcessingJob]:
        """One sentiment_analysis job per conversation."""
        return await self.create_batch_jobs(
            [
                JobSpec(
                    type=JobType.SENTIMENT_ANALYSIS,
                    data={"conversation_ids": [cid], "provider": provider},
                    priority=priority,
                    tenant_id=tenant_id,
                )
                for cid in conversation_ids
            ]
        )

    async def create_normalization_jobs(
        self, conversation_ids: list[str], tenant_id: Optional[UUID] = None
    ) -> list[ProcessingJob]:
        """One low-priority content_normalization job per conversation."""
        return await self.create_batch_jobs(
            [
                JobSpec(
                    type=JobType.CONTENT_NORMALIZATION,
                    data={"conversation_ids": [cid]},
                    priority=JobPriority.LOW,
                    tenant_id=tenant_id,
                )
                for cid in conversation_ids
            ]
        )

    async def get_conversation_processing_status(
        self, conversation_ids: list[str]
    ) -> dict[str, str]:
        """Latest job status per conversation id; ids never queued are omitted."""
        statuses = await self.jobs.latest_status_by_conversation(conversation_ids)
        return {cid: status.value for cid, status in statuses.items()}
