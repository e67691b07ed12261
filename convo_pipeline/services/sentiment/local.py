"""Deterministic rule-based sentiment scorer used when no external provider is set."""

import re

from convo_pipeline.jobs.types import Sentiment
from convo_pipeline.services.sentiment.base import (
    SentimentProvider,
    SentimentResult,
    is_blank,
)

POSITIVE_WORDS = frozenset(
    {"good", "great", "excellent", "amazing", "love", "perfect", "awesome", "fantastic"}
)
NEGATIVE_WORDS = frozenset(
    {"bad", "terrible", "awful", "hate", "horrible", "worst", "disappointing", "useless"}
)

MAX_KEYWORDS = 5
_TOKEN_SPLIT = re.compile(r"\W+")


def tokenize(content: str) -> list[str]:
    """Lowercase and split on non-word boundaries, dropping empty tokens."""
    return [w for w in _TOKEN_SPLIT.split(content.lower()) if w]


def analyze_local_sentiment(content: str) -> SentimentResult:
    """Score content by counting fixed positive and negative words.

    confidence = min(0.9, 0.5 + 0.1 * |positive - negative|); a tie is
    neutral at 0.5. Blank content is neutral with confidence 0.
    """
    if is_blank(content):
        return SentimentResult(
            sentiment=Sentiment.NEUTRAL, confidence=0.0, provider=LocalSentimentProvider.name
        )

    words = tokenize(content)
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)

    if positive > negative:
        sentiment = Sentiment.POSITIVE
    elif negative > positive:
        sentiment = Sentiment.NEGATIVE
    else:
        sentiment = Sentiment.NEUTRAL

    if sentiment is Sentiment.NEUTRAL:
        confidence = 0.5
    else:
        confidence = round(min(0.9, 0.5 + 0.1 * abs(positive - negative)), 2)

    keywords: list[str] = []
    for word in words:
        if len(word) > 3 and word not in keywords:
            keywords.append(word)
            if len(keywords) == MAX_KEYWORDS:
                break

    return SentimentResult(
        sentiment=sentiment,
        confidence=confidence,
        keywords=keywords,
        provider=LocalSentimentProvider.name,
    )


class LocalSentimentProvider(SentimentProvider):
    """Always-available provider backed by analyze_local_sentiment."""

    name = "local"

    async def analyze(self, content: str) -> SentimentResult:
        return analyze_local_sentiment(content)
