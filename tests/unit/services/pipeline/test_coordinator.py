"""Tests for the batch sentiment coordinator."""

from unittest.mock import AsyncMock

import pytest

from convo_pipeline.errors import PersistenceError, ValidationError
from convo_pipeline.jobs.handlers.sentiment_analysis import SentimentItemResult
from convo_pipeline.jobs.types import Sentiment
from convo_pipeline.repositories.conversations import Conversation
from convo_pipeline.services.pipeline.coordinator import (
    BATCH_SENTIMENT_METRICS_TYPE,
    BatchSentimentCoordinator,
    chunk_ids,
    summarize_results,
)
from convo_pipeline.services.sentiment import SentimentProviders


def conversations_repo(failing_ids: frozenset = frozenset()):
    repo = AsyncMock()

    async def fetch_by_ids(ids):
        if failing_ids & set(ids):
            raise PersistenceError("Failed to fetch conversations", cause=OSError("reset"))
        return [Conversation(id=cid, content=f"{cid} is great") for cid in ids]

    async def update_sentiment(updates):
        return len(updates)

    repo.fetch_by_ids.side_effect = fetch_by_ids
    repo.update_sentiment.side_effect = update_sentiment
    return repo


def make_coordinator(repo, sleep=None, **kwargs):
    return BatchSentimentCoordinator(
        repo,
        AsyncMock(),
        SentimentProviders(),
        sleep=sleep or AsyncMock(),
        **kwargs,
    )


class TestChunkIds:
    def test_uneven_split(self):
        ids = [str(i) for i in range(120)]
        assert [len(c) for c in chunk_ids(ids, 50)] == [50, 50, 20]

    def test_invalid_size(self):
        with pytest.raises(ValidationError):
            chunk_ids(["a"], 0)


class TestTrigger:
    @pytest.mark.asyncio
    async def test_chunks_and_pacing(self):
        ids = [f"c{i}" for i in range(120)]
        sleep = AsyncMock()
        coordinator = make_coordinator(conversations_repo(), sleep=sleep, chunk_delay_s=1.0)

        result = await coordinator.trigger(ids, batch_size=50)

        assert result["chunks"] == [50, 50, 20]
        assert result["total_processed"] == 120
        assert result["successful"] == 120
        assert [r["conversation_id"] for r in result["results"]] == ids
        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_failed_chunk_only_affects_its_ids(self):
        ids = [f"c{i}" for i in range(120)]
        repo = conversations_repo(failing_ids=frozenset({"c60"}))
        coordinator = make_coordinator(repo)

        result = await coordinator.trigger(ids, batch_size=50)

        assert result["total_processed"] == 120
        assert result["successful"] == 70
        assert result["failed"] == 50
        failed_ids = [r["conversation_id"] for r in result["results"] if "error" in r]
        assert failed_ids == ids[50:100]
        failed = result["results"][50]
        assert failed["sentiment"] == "neutral"
        assert failed["confidence"] == 0.0
        assert "Failed to fetch conversations" in failed["error"]

    @pytest.mark.asyncio
    async def test_batch_size_is_capped(self):
        ids = [f"c{i}" for i in range(150)]
        coordinator = make_coordinator(conversations_repo(), max_batch_size=100)

        result = await coordinator.trigger(ids, batch_size=500)

        assert result["chunks"] == [100, 50]

    @pytest.mark.asyncio
    async def test_records_metrics_snapshot(self):
        metrics = AsyncMock()
        coordinator = BatchSentimentCoordinator(
            conversations_repo(), metrics, SentimentProviders(), sleep=AsyncMock()
        )

        await coordinator.trigger(["c1", "c2"])

        metrics_type, summary, tenant_id = metrics.record.await_args.args
        assert metrics_type == BATCH_SENTIMENT_METRICS_TYPE
        assert summary["total_processed"] == 2
        assert summary["sentiment_distribution"]["positive"] == 2
        assert tenant_id is None

    @pytest.mark.asyncio
    async def test_write_failure_is_skipped(self):
        repo = conversations_repo()
        repo.update_sentiment.side_effect = PersistenceError("Failed to update conversation sentiment")
        coordinator = make_coordinator(repo)

        result = await coordinator.trigger(["c1"])

        assert result["successful"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ids,kwargs",
        [
            ([], {}),
            ([f"c{i}" for i in range(1001)], {}),
            (["c1"], {"batch_size": 0}),
            (["c1"], {"provider": "unknown"}),
        ],
    )
    async def test_invalid_requests(self, ids, kwargs):
        repo = conversations_repo()
        coordinator = make_coordinator(repo)

        with pytest.raises(ValidationError):
            await coordinator.trigger(ids, **kwargs)
        repo.fetch_by_ids.assert_not_called()


def test_summarize_results():
    results = [
        SentimentItemResult("a", Sentiment.POSITIVE, 0.7),
        SentimentItemResult("b", Sentiment.NEGATIVE, 0.9),
        SentimentItemResult.failed("c", "boom"),
    ]

    summary = summarize_results(results, "local")

    assert summary["total_processed"] == 3
    assert summary["successful"] == 2
    assert summary["failed"] == 1
    assert summary["avg_confidence"] == 0.8
    assert summary["sentiment_distribution"] == {"positive": 1, "negative": 1, "neutral": 1}


def test_distribution_counts_failed_items_as_neutral():
    results = [SentimentItemResult.failed(cid, "timeout") for cid in ("a", "b")]

    summary = summarize_results(results, "google")

    assert summary["avg_confidence"] == 0.0
    assert summary["sentiment_distribution"] == {"positive": 0, "negative": 0, "neutral": 2}
    assert sum(summary["sentiment_distribution"].values()) == summary["total_processed"]
