"""Job dispatcher - claims pending jobs and runs them through their handlers."""

import time
import traceback
from typing import Any, Optional

import structlog

from convo_pipeline.errors import ValidationError
from convo_pipeline.jobs import handlers  # noqa: F401  (registers handlers)
from convo_pipeline.jobs.models import BatchProcessingResult, JobOutcome, ProcessingJob
from convo_pipeline.jobs.registry import JobRegistry, default_registry
from convo_pipeline.jobs.types import JobStatus
from convo_pipeline.repositories.jobs import JobRepository
from convo_pipeline.routers.metrics import record_job_processed

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 10
MAX_BATCH_SIZE = 100


class BatchProcessor:
    """Processes up to ``batch_size`` pending jobs, highest priority first.

    Each job is claimed atomically (pending -> processing) so concurrent
    processors never run the same job. A handler failure marks only that
    job failed; the rest of the batch continues.
    """

    def __init__(
        self,
        job_repo: JobRepository,
        context: Optional[dict[str, Any]] = None,
        registry: JobRegistry = default_registry,
        max_batch_size: int = MAX_BATCH_SIZE,
    ):
        self._job_repo = job_repo
        self._context = dict(context or {})
        self._registry = registry
        self._max_batch_size = max_batch_size

    def _validate_batch_size(self, batch_size: int) -> None:
        if not isinstance(batch_size, int) or isinstance(batch_size, bool):
            raise ValidationError("batch_size must be an integer")
        if batch_size < 1 or batch_size > self._max_batch_size:
            raise ValidationError(
                f"batch_size must be between 1 and {self._max_batch_size}"
            )

    async def process_batch(self, batch_size: int = DEFAULT_BATCH_SIZE) -> BatchProcessingResult:
        """Claim and run pending jobs.

        Raises:
            ValidationError: batch_size out of range
            PersistenceError: the job store failed while claiming or recording
        """
        self._validate_batch_size(batch_size)

        batch = BatchProcessingResult()
        while batch.processed < batch_size:
            job = await self._job_repo.claim_next()
            if job is None:
                break
            batch.results.append(await self.run_job(job))

        logger.info(
            "batch_processed",
            processed=batch.processed,
            successful=batch.successful,
            failed=batch.failed,
        )
        return batch

    async def run_job(self, job: ProcessingJob) -> JobOutcome:
        """Run one claimed job and record its terminal state."""
        log = logger.bind(job_id=str(job.id), job_type=job.type.value)
        log.info("job_executing", priority=job.priority.value)

        started = time.perf_counter()
        try:
            handler = self._registry.get_handler(job.type)
            result = await handler(job, self._context)
        except Exception as e:
            elapsed_ms = _elapsed_ms(started)
            error = str(e) or e.__class__.__name__
            log.error(
                "job_handler_failed",
                error=error,
                processing_time_ms=elapsed_ms,
                traceback=traceback.format_exc(),
            )
            await self._job_repo.fail(job.id, error, elapsed_ms)
            record_job_processed(job.type.value, JobStatus.FAILED.value, elapsed_ms)
            return JobOutcome(job_id=job.id, processing_time_ms=elapsed_ms, error=error)

        elapsed_ms = _elapsed_ms(started)
        await self._job_repo.complete(job.id, result, elapsed_ms)
        record_job_processed(job.type.value, JobStatus.COMPLETED.value, elapsed_ms)
        log.info("job_succeeded", processing_time_ms=elapsed_ms)
        return JobOutcome(job_id=job.id, processing_time_ms=elapsed_ms, result=result)


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))
