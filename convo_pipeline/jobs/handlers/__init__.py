"""Job handlers package.

Handlers are registered with the default_registry on import and called
by the dispatcher.

Handler contract:
    async def handle_<job_type>(job: ProcessingJob, ctx: dict) -> Any:
        - job: The claimed job; its data is re-validated with parse_payload
        - ctx: conversations, sentiment_providers, trend_analyzer
        - Returns: JSON-serializable result stored in job.result on success
        - Raises: any exception marks the job failed with str(exc)
"""

# Import handlers to trigger registration
from convo_pipeline.jobs.handlers import content_normalization  # noqa: F401
from convo_pipeline.jobs.handlers import sentiment_analysis  # noqa: F401
from convo_pipeline.jobs.handlers import trend_analysis  # noqa: F401

__all__ = ["content_normalization", "sentiment_analysis", "trend_analysis"]
