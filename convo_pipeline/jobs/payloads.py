"""Typed job payloads, one variant per job type.

Payloads are validated when a job is created and re-parsed by the
handler, so handlers never see an unchecked dict.
"""

from typing import Any, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from convo_pipeline.errors import ValidationError
from convo_pipeline.jobs.types import JobType

TimeRange = Literal["1h", "24h", "7d", "30d"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


class SentimentAnalysisPayload(_Payload):
    conversation_ids: list[str] = Field(..., min_length=1)
    provider: str = "local"

    @field_validator("conversation_ids")
    @classmethod
    def _no_blank_ids(cls, v: list[str]) -> list[str]:
        if any(not cid.strip() for cid in v):
            raise ValueError("conversation_ids must not contain blank ids")
        return v


class ContentNormalizationPayload(_Payload):
    conversation_ids: list[str] = Field(..., min_length=1)

    @field_validator("conversation_ids")
    @classmethod
    def _no_blank_ids(cls, v: list[str]) -> list[str]:
        if any(not cid.strip() for cid in v):
            raise ValueError("conversation_ids must not contain blank ids")
        return v


class TrendAnalysisPayload(_Payload):
    tenant_id: Optional[str] = None
    time_range: TimeRange = "24h"
    keywords: Optional[list[str]] = None


JobPayload = Union[
    SentimentAnalysisPayload, ContentNormalizationPayload, TrendAnalysisPayload
]

PAYLOAD_MODELS: dict[JobType, type[_Payload]] = {
    JobType.SENTIMENT_ANALYSIS: SentimentAnalysisPayload,
    JobType.CONTENT_NORMALIZATION: ContentNormalizationPayload,
    JobType.TREND_ANALYSIS: TrendAnalysisPayload,
}


class SentimentBatchParams(BaseModel):
    """Parameters of an on-demand sentiment_batch trigger."""

    model_config = ConfigDict(extra="ignore")

    conversation_ids: list[StrictStr]
    provider: Optional[StrictStr] = None
    batch_size: Optional[StrictInt] = None


class TrendTriggerParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time_range: TimeRange = "24h"
    keywords: Optional[list[StrictStr]] = None


ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_model(model: type[ModelT], data: Any, label: str) -> ModelT:
    """``model.model_validate`` with pydantic errors raised as ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'data'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {label}: {details}") from e


def parse_payload(job_type: JobType, data: Any) -> JobPayload:
    """Validate raw job data against the variant for ``job_type``.

    Raises:
        ValidationError: unknown job type or data not matching the variant
    """
    model = PAYLOAD_MODELS.get(job_type)
    if model is None:
        raise ValidationError(f"Unsupported job type: {job_type}")
    if not isinstance(data, dict):
        raise ValidationError(f"Job data for {job_type.value} must be an object")
    return validate_model(model, data, f"{job_type.value} payload")


def normalize_payload(job_type: JobType, data: Any) -> dict[str, Any]:
    """Validate and return the canonical dict form stored in ``processing_jobs.data``."""
    return parse_payload(job_type, data).model_dump(exclude_none=True)
