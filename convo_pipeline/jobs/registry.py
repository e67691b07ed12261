"""Job handler registry."""

from typing import Any, Callable, Coroutine

from convo_pipeline.errors import HandlerError
from convo_pipeline.jobs.models import ProcessingJob
from convo_pipeline.jobs.types import JobType

# Handler signature: async def handler(job: ProcessingJob, ctx: dict) -> Any
JobHandler = Callable[[ProcessingJob, dict[str, Any]], Coroutine[Any, Any, Any]]


class JobRegistry:
    """Registry mapping job types to their handlers."""

    def __init__(self):
        self._handlers: dict[JobType, JobHandler] = {}

    def register(self, job_type: JobType, handler: JobHandler) -> None:
        """Register a handler for a job type."""
        self._handlers[job_type] = handler

    def get_handler(self, job_type: JobType) -> JobHandler:
        """Get the handler for a job type. Raises HandlerError if not found."""
        if job_type not in self._handlers:
            value = job_type.value if isinstance(job_type, JobType) else job_type
            raise HandlerError(f"Unsupported job type: {value}")
        return self._handlers[job_type]

    def handler(self, job_type: JobType) -> Callable[[JobHandler], JobHandler]:
        """Decorator to register a handler."""

        def decorator(fn: JobHandler) -> JobHandler:
            self.register(job_type, fn)
            return fn

        return decorator

    @property
    def job_types(self) -> list[JobType]:
        return list(self._handlers)


# Global registry instance
default_registry = JobRegistry()
