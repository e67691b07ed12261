"""Pipeline exception hierarchy.

Validation and not-found errors surface to callers. Handler and provider
errors are caught by the dispatcher and the sentiment coordinator and
recorded as data. Persistence errors propagate.
"""

from typing import Optional


class PipelineError(Exception):
    """Base error for the processing pipeline."""


class ValidationError(PipelineError):
    """Input rejected before anything touches the store."""


class InvalidTransitionError(ValidationError):
    """Requested job status change would move the job backwards."""

    def __init__(self, job_id, current: str, target: str):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(
            f"Job {job_id} cannot transition from '{current}' to '{target}'"
        )


class NotFoundError(PipelineError):
    """Operation referenced a record that does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class PersistenceError(PipelineError):
    """Store read/write failure."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class HandlerError(PipelineError):
    """A job type handler could not complete its work."""


class ProviderError(PipelineError):
    """External sentiment or trend provider failure."""

    def __init__(self, message: str, provider: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)
