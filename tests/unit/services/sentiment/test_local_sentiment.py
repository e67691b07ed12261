"""Tests for the local rule-based sentiment scorer."""

import pytest

from convo_pipeline.jobs.types import Sentiment
from convo_pipeline.services.sentiment.local import (
    LocalSentimentProvider,
    analyze_local_sentiment,
    tokenize,
)


class TestAnalyzeLocalSentiment:
    def test_positive(self):
        result = analyze_local_sentiment("This is great and amazing")
        assert result.sentiment == Sentiment.POSITIVE
        assert result.confidence >= 0.5
        assert result.confidence == 0.7

    def test_negative(self):
        result = analyze_local_sentiment("Terrible. Just awful, the worst.")
        assert result.sentiment == Sentiment.NEGATIVE
        assert result.confidence == 0.8

    def test_tie_is_neutral(self):
        result = analyze_local_sentiment("good but bad")
        assert result.sentiment == Sentiment.NEUTRAL
        assert result.confidence == 0.5

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_is_neutral_zero(self, content):
        result = analyze_local_sentiment(content)
        assert result.sentiment == Sentiment.NEUTRAL
        assert result.confidence == 0.0

    def test_confidence_capped(self):
        result = analyze_local_sentiment("great " * 20)
        assert result.confidence == 0.9

    def test_keywords(self):
        result = analyze_local_sentiment("The delivery was great, delivery fast")
        assert result.keywords == ["delivery", "great", "fast"]

    def test_deterministic(self):
        text = "I love this, it's perfect but the app is useless"
        assert analyze_local_sentiment(text) == analyze_local_sentiment(text)


def test_tokenize_drops_punctuation():
    assert tokenize("Hello, WORLD!!") == ["hello", "world"]


@pytest.mark.asyncio
async def test_provider_wraps_scorer():
    result = await LocalSentimentProvider().analyze("awesome")
    assert result.sentiment == Sentiment.POSITIVE
    assert result.provider == "local"
