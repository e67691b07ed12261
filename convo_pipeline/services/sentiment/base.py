"""Sentiment provider interface and shared types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from convo_pipeline.jobs.types import Sentiment


@dataclass
class SentimentResult:
    """Classification of one piece of content."""

    sentiment: Sentiment
    confidence: float
    keywords: list[str] = field(default_factory=list)
    emotions: dict[str, float] = field(default_factory=dict)
    provider: Optional[str] = None


def is_blank(content: Optional[str]) -> bool:
    return not content or not content.strip()


class SentimentProvider(ABC):
    """Content in, sentiment out, or ProviderError."""

    name: str = "base"

    @abstractmethod
    async def analyze(self, content: str) -> SentimentResult:
        """
        Classify a single piece of content.

        Raises:
            ProviderError: the provider could not classify the content
        """
        ...

    async def is_available(self) -> bool:
        return True

    async def aclose(self) -> None:
        """Release provider resources (HTTP clients)."""
        return None
