"""Batch sentiment coordinator.

Runs sentiment analysis over an explicit list of conversation ids, outside
the job queue. Ids are split into positional chunks that are processed one
after another with a pause in between, so external providers are not
flooded. A failing chunk only affects its own ids.
"""

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog

from convo_pipeline.errors import ValidationError
from convo_pipeline.jobs.handlers.sentiment_analysis import (
    CONVERSATION_NOT_FOUND,
    SentimentItemResult,
    classify_conversation,
)
from convo_pipeline.repositories.conversations import ConversationRepository
from convo_pipeline.repositories.metrics import ProcessingMetricsRepository
from convo_pipeline.routers.metrics import record_sentiment_items
from convo_pipeline.services.sentiment.factory import SentimentProviders

logger = structlog.get_logger(__name__)

BATCH_SENTIMENT_METRICS_TYPE = "batch_sentiment"

Sleep = Callable[[float], Awaitable[Any]]


def chunk_ids(ids: list[str], size: int) -> list[list[str]]:
    """Split ids into consecutive chunks of ``size``; the last may be shorter."""
    if size < 1:
        raise ValidationError("batch_size must be at least 1")
    return [ids[i : i + size] for i in range(0, len(ids), size)]


def summarize_results(
    results: list[SentimentItemResult], provider: str
) -> dict[str, Any]:
    """Metrics snapshot for one coordinator run.

    Average confidence covers successful items only. The sentiment
    distribution covers every item, so failed items count as neutral.
    """
    successful = [r for r in results if r.succeeded]
    avg_confidence = (
        sum(r.confidence for r in successful) / len(successful) if successful else 0.0
    )
    distribution = Counter(r.sentiment.value for r in results)
    return {
        "total_processed": len(results),
        "successful": len(successful),
        "failed": len(results) - len(successful),
        "provider": provider,
        "avg_confidence": round(avg_confidence, 4),
        "sentiment_distribution": {
            "positive": distribution.get("positive", 0),
            "negative": distribution.get("negative", 0),
            "neutral": distribution.get("neutral", 0),
        },
        "processed_at": datetime.now(timezone.utc).isoformat(),
    }


class BatchSentimentCoordinator:
    """Chunked, paced sentiment analysis over a list of conversation ids."""

    def __init__(
        self,
        conversations: ConversationRepository,
        metrics: ProcessingMetricsRepository,
        providers: SentimentProviders,
        default_batch_size: int = 50,
        max_batch_size: int = 100,
        max_conversation_ids: int = 1000,
        chunk_delay_s: float = 1.0,
        write_batch_size: int = 100,
        sleep: Optional[Sleep] = None,
    ):
        self._conversations = conversations
        self._metrics = metrics
        self._providers = providers
        self._default_batch_size = default_batch_size
        self._max_batch_size = max_batch_size
        self._max_conversation_ids = max_conversation_ids
        self._chunk_delay_s = chunk_delay_s
        self._write_batch_size = write_batch_size
        self._sleep = sleep or asyncio.sleep

    def _resolve_batch_size(self, batch_size: Optional[int]) -> int:
        if batch_size is None:
            batch_size = self._default_batch_size
        if batch_size < 1:
            raise ValidationError("batch_size must be at least 1")
        return min(batch_size, self._max_batch_size)

    def _validate_ids(self, conversation_ids: list[str]) -> None:
        if not conversation_ids:
            raise ValidationError("conversation_ids is required")
        if len(conversation_ids) > self._max_conversation_ids:
            raise ValidationError(
                f"Too many conversation_ids: {len(conversation_ids)} "
                f"(maximum {self._max_conversation_ids})"
            )

    async def trigger(
        self,
        conversation_ids: list[str],
        provider: str = "local",
        batch_size: Optional[int] = None,
        tenant_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        """Analyze sentiment for the given conversations.

        Returns one result per input id, in input order. Failed items carry
        a neutral, zero-confidence result with an ``error``.

        Raises:
            ValidationError: empty or oversized id list, bad batch size, unknown provider
        """
        self._validate_ids(conversation_ids)
        size = self._resolve_batch_size(batch_size)
        sentiment_provider = self._providers.get(provider)
        chunks = chunk_ids(conversation_ids, size)

        log = logger.bind(provider=sentiment_provider.name, chunk_size=size)
        log.info(
            "sentiment_batch_started",
            conversations=len(conversation_ids),
            chunks=len(chunks),
        )

        results: list[SentimentItemResult] = []
        for index, chunk in enumerate(chunks):
            results.extend(await self._process_chunk(sentiment_provider, chunk, index))
            if index < len(chunks) - 1 and self._chunk_delay_s > 0:
                await self._sleep(self._chunk_delay_s)

        await self._write_results([r for r in results if r.succeeded])

        summary = summarize_results(results, sentiment_provider.name)
        await self._record_metrics(summary, tenant_id)
        record_sentiment_items(
            sentiment_provider.name, summary["successful"], summary["failed"]
        )

        log.info(
            "sentiment_batch_completed",
            successful=summary["successful"],
            failed=summary["failed"],
        )
        return {
            "total_processed": summary["total_processed"],
            "successful": summary["successful"],
            "failed": summary["failed"],
            "provider": sentiment_provider.name,
            "chunks": [len(c) for c in chunks],
            "results": [r.to_dict() for r in results],
        }

    async def _process_chunk(
        self, provider, chunk: list[str], index: int
    ) -> list[SentimentItemResult]:
        log = logger.bind(chunk_index=index, chunk_size=len(chunk))
        resolved: dict[str, SentimentItemResult] = {}
        try:
            conversations = await self._conversations.fetch_by_ids(chunk)
            by_id = {c.id: c for c in conversations}
            for conversation_id in chunk:
                conversation = by_id.get(conversation_id)
                if conversation is None:
                    resolved[conversation_id] = SentimentItemResult.failed(
                        conversation_id, CONVERSATION_NOT_FOUND
                    )
                    continue
                resolved[conversation_id] = await classify_conversation(
                    provider, conversation
                )
        except Exception as e:
            error = str(e) or e.__class__.__name__
            log.error(
                "sentiment_chunk_failed",
                error=error,
                unresolved=len(chunk) - len(resolved),
            )
            for conversation_id in chunk:
                if conversation_id not in resolved:
                    resolved[conversation_id] = SentimentItemResult.failed(
                        conversation_id, error
                    )

        return [resolved[conversation_id] for conversation_id in chunk]

    async def _write_results(self, successful: list[SentimentItemResult]) -> int:
        """Write sentiment back in groups. A failed group is logged and skipped."""
        written = 0
        for start in range(0, len(successful), self._write_batch_size):
            group = successful[start : start + self._write_batch_size]
            try:
                written += await self._conversations.update_sentiment(
                    [r.to_update() for r in group]
                )
            except Exception as e:
                logger.error(
                    "sentiment_write_failed",
                    group_start=start,
                    group_size=len(group),
                    error=str(e),
                )
        return written

    async def _record_metrics(
        self, summary: dict[str, Any], tenant_id: Optional[UUID]
    ) -> None:
        try:
            await self._metrics.record(BATCH_SENTIMENT_METRICS_TYPE, summary, tenant_id)
        except Exception as e:
            logger.error("sentiment_metrics_record_failed", error=str(e))
