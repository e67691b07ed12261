"""TREND_ANALYSIS handler - pass-through to the trend analysis service."""

from typing import Any

import structlog

from convo_pipeline.jobs.models import ProcessingJob
from convo_pipeline.jobs.payloads import TrendAnalysisPayload, parse_payload
from convo_pipeline.jobs.registry import default_registry
from convo_pipeline.jobs.types import JobType
from convo_pipeline.services.trends import TrendAnalyzer

logger = structlog.get_logger(__name__)


@default_registry.handler(JobType.TREND_ANALYSIS)
async def handle_trend_analysis(job: ProcessingJob, ctx: dict[str, Any]) -> Any:
    """Handle a TREND_ANALYSIS job.

    The payload tenant wins; otherwise the job's owning tenant is used.
    The service output is returned verbatim as the job result.
    """
    payload: TrendAnalysisPayload = parse_payload(job.type, job.data)
    analyzer: TrendAnalyzer = ctx["trend_analyzer"]

    tenant_id = payload.tenant_id
    if tenant_id is None and job.tenant_id is not None:
        tenant_id = str(job.tenant_id)

    logger.info(
        "trend_analysis_started",
        job_id=str(job.id),
        tenant_id=tenant_id,
        time_range=payload.time_range,
    )
    return await analyzer.analyze(tenant_id, payload.time_range, payload.keywords)
