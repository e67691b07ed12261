"""Sentiment classification providers."""

from convo_pipeline.services.sentiment.base import SentimentProvider, SentimentResult
from convo_pipeline.services.sentiment.factory import (
    SentimentProviders,
    build_sentiment_providers,
)
from convo_pipeline.services.sentiment.local import (
    LocalSentimentProvider,
    analyze_local_sentiment,
)

__all__ = [
    "SentimentProvider",
    "SentimentResult",
    "SentimentProviders",
    "build_sentiment_providers",
    "LocalSentimentProvider",
    "analyze_local_sentiment",
]
