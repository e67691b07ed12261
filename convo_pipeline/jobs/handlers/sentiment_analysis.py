"""SENTIMENT_ANALYSIS handler - classifies conversations and stores the sentiment.

The per-conversation step (``classify_conversation``) is shared with the
batch sentiment coordinator so both paths score content identically.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from convo_pipeline.errors import HandlerError, ValidationError
from convo_pipeline.jobs.models import ProcessingJob
from convo_pipeline.jobs.payloads import SentimentAnalysisPayload, parse_payload
from convo_pipeline.jobs.registry import default_registry
from convo_pipeline.jobs.types import JobType, Sentiment
from convo_pipeline.repositories.conversations import (
    Conversation,
    ConversationRepository,
    ConversationSentiment,
)
from convo_pipeline.services.sentiment.base import SentimentProvider, is_blank
from convo_pipeline.services.sentiment.factory import SentimentProviders

logger = structlog.get_logger(__name__)


@dataclass
class SentimentItemResult:
    """Sentiment for one conversation, or the neutral default plus an error."""

    conversation_id: str
    sentiment: Sentiment
    confidence: float
    keywords: list[str] = field(default_factory=list)
    emotions: dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, conversation_id: str, error: str) -> "SentimentItemResult":
        return cls(
            conversation_id=conversation_id,
            sentiment=Sentiment.NEUTRAL,
            confidence=0.0,
            error=error,
        )

    def to_update(self) -> ConversationSentiment:
        return ConversationSentiment(
            conversation_id=self.conversation_id,
            sentiment=self.sentiment.value,
            score=self.confidence,
            keywords=self.keywords,
            emotions=self.emotions,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "conversation_id": self.conversation_id,
            "sentiment": self.sentiment.value,
            "confidence": self.confidence,
        }
        if self.keywords:
            out["keywords"] = self.keywords
        if self.emotions:
            out["emotions"] = self.emotions
        if self.error is not None:
            out["error"] = self.error
        return out


CONVERSATION_NOT_FOUND = "Conversation not found"


async def classify_conversation(
    provider: SentimentProvider, conversation: Conversation
) -> SentimentItemResult:
    """Classify one conversation. Provider failures become an error result."""
    if is_blank(conversation.content):
        return SentimentItemResult(
            conversation_id=conversation.id,
            sentiment=Sentiment.NEUTRAL,
            confidence=0.0,
        )

    try:
        result = await provider.analyze(conversation.content or "")
    except Exception as e:
        logger.warning(
            "sentiment_item_failed",
            conversation_id=conversation.id,
            provider=provider.name,
            error=str(e),
        )
        return SentimentItemResult.failed(conversation.id, str(e) or "Analysis failed")

    return SentimentItemResult(
        conversation_id=conversation.id,
        sentiment=result.sentiment,
        confidence=result.confidence,
        keywords=list(result.keywords),
        emotions=dict(result.emotions),
    )


def resolve_provider(providers: SentimentProviders, name: str) -> SentimentProvider:
    try:
        return providers.get(name)
    except ValidationError as e:
        raise HandlerError(str(e)) from e


@default_registry.handler(JobType.SENTIMENT_ANALYSIS)
async def handle_sentiment_analysis(job: ProcessingJob, ctx: dict[str, Any]) -> dict[str, Any]:
    """Handle a SENTIMENT_ANALYSIS job.

    Job Payload:
        conversation_ids: list[str] - Conversations to classify
        provider: str - Sentiment provider name (default "local")

    Context:
        conversations: ConversationRepository
        sentiment_providers: SentimentProviders

    Returns:
        dict with provider, total, successful, failed and per-conversation results.
        A provider error for one conversation is recorded on that result only.
    """
    payload: SentimentAnalysisPayload = parse_payload(job.type, job.data)
    conversations_repo: ConversationRepository = ctx["conversations"]
    provider = resolve_provider(ctx["sentiment_providers"], payload.provider)

    log = logger.bind(job_id=str(job.id), provider=provider.name)
    log.info("sentiment_analysis_started", conversations=len(payload.conversation_ids))

    conversations = await conversations_repo.fetch_by_ids(payload.conversation_ids)
    if not conversations:
        raise HandlerError("No conversations found for the provided IDs")

    by_id = {c.id: c for c in conversations}
    results: list[SentimentItemResult] = []
    for conversation_id in payload.conversation_ids:
        conversation = by_id.get(conversation_id)
        if conversation is None:
            results.append(SentimentItemResult.failed(conversation_id, CONVERSATION_NOT_FOUND))
            continue
        results.append(await classify_conversation(provider, conversation))

    successful = [r for r in results if r.succeeded]
    if successful:
        await conversations_repo.update_sentiment([r.to_update() for r in successful])

    log.info(
        "sentiment_analysis_completed",
        successful=len(successful),
        failed=len(results) - len(successful),
    )

    return {
        "provider": provider.name,
        "total": len(results),
        "successful": len(successful),
        "failed": len(results) - len(successful),
        "results": [r.to_dict() for r in results],
    }
