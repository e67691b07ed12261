"""Tests for the SENTIMENT_ANALYSIS job handler."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from convo_pipeline.errors import HandlerError, ProviderError
from convo_pipeline.jobs.handlers.sentiment_analysis import (
    CONVERSATION_NOT_FOUND,
    classify_conversation,
    handle_sentiment_analysis,
)
from convo_pipeline.jobs.models import ProcessingJob
from convo_pipeline.jobs.types import JobStatus, JobType, Sentiment
from convo_pipeline.repositories.conversations import Conversation
from convo_pipeline.services.sentiment import SentimentProviders
from convo_pipeline.services.sentiment.base import SentimentProvider
from convo_pipeline.services.sentiment.local import LocalSentimentProvider


def make_job(data: dict) -> ProcessingJob:
    return ProcessingJob(
        id=uuid4(),
        type=JobType.SENTIMENT_ANALYSIS,
        status=JobStatus.PROCESSING,
        data=data,
    )


class ExplodingProvider(SentimentProvider):
    name = "exploding"

    def __init__(self, bad_content: str):
        self.bad_content = bad_content

    async def analyze(self, content):
        if content == self.bad_content:
            raise ProviderError("Google API error: 500", provider=self.name)
        return await LocalSentimentProvider().analyze(content)


@pytest.fixture
def conversations():
    repo = AsyncMock()
    repo.update_sentiment.return_value = 0
    return repo


def ctx_for(repo, *providers):
    return {
        "conversations": repo,
        "sentiment_providers": SentimentProviders({p.name: p for p in providers}),
    }


class TestHandleSentimentAnalysis:
    @pytest.mark.asyncio
    async def test_classifies_and_stores(self, conversations):
        conversations.fetch_by_ids.return_value = [
            Conversation(id="c1", content="This is great and amazing"),
            Conversation(id="c2", content="terrible, awful support"),
        ]
        job = make_job({"conversation_ids": ["c1", "c2"]})

        result = await handle_sentiment_analysis(job, ctx_for(conversations))

        assert result["provider"] == "local"
        assert result["total"] == 2
        assert result["successful"] == 2
        assert [r["sentiment"] for r in result["results"]] == ["positive", "negative"]

        updates = conversations.update_sentiment.await_args.args[0]
        assert [u.conversation_id for u in updates] == ["c1", "c2"]
        assert updates[0].sentiment == "positive"

    @pytest.mark.asyncio
    async def test_missing_conversation_is_item_failure(self, conversations):
        conversations.fetch_by_ids.return_value = [
            Conversation(id="c1", content="great"),
        ]
        job = make_job({"conversation_ids": ["c1", "ghost"]})

        result = await handle_sentiment_analysis(job, ctx_for(conversations))

        assert result["successful"] == 1
        assert result["failed"] == 1
        ghost = result["results"][1]
        assert ghost["conversation_id"] == "ghost"
        assert ghost["error"] == CONVERSATION_NOT_FOUND
        assert ghost["sentiment"] == "neutral"
        assert ghost["confidence"] == 0.0

    @pytest.mark.asyncio
    async def test_provider_error_isolated_to_item(self, conversations):
        conversations.fetch_by_ids.return_value = [
            Conversation(id="c1", content="boom"),
            Conversation(id="c2", content="love it"),
        ]
        job = make_job({"conversation_ids": ["c1", "c2"], "provider": "exploding"})

        result = await handle_sentiment_analysis(
            job, ctx_for(conversations, ExplodingProvider("boom"))
        )

        assert result["provider"] == "exploding"
        assert result["failed"] == 1
        assert result["results"][0]["error"] == "Google API error: 500"
        updates = conversations.update_sentiment.await_args.args[0]
        assert [u.conversation_id for u in updates] == ["c2"]

    @pytest.mark.asyncio
    async def test_no_conversations_found_fails_job(self, conversations):
        conversations.fetch_by_ids.return_value = []
        job = make_job({"conversation_ids": ["ghost"]})

        with pytest.raises(HandlerError, match="No conversations found"):
            await handle_sentiment_analysis(job, ctx_for(conversations))
        conversations.update_sentiment.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_provider_fails_job(self, conversations):
        job = make_job({"conversation_ids": ["c1"], "provider": "nope"})

        with pytest.raises(HandlerError, match="Unknown sentiment provider: nope"):
            await handle_sentiment_analysis(job, ctx_for(conversations))
        conversations.fetch_by_ids.assert_not_called()


class TestClassifyConversation:
    @pytest.mark.asyncio
    async def test_blank_content_is_neutral_zero(self):
        provider = AsyncMock(spec=SentimentProvider)
        result = await classify_conversation(provider, Conversation(id="c1", content="   "))

        assert result.sentiment == Sentiment.NEUTRAL
        assert result.confidence == 0.0
        assert result.succeeded
        provider.analyze.assert_not_called()
