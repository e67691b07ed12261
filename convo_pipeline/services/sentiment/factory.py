"""Sentiment provider lookup by name."""

from typing import Optional

import structlog

from convo_pipeline.config import Settings, get_settings
from convo_pipeline.errors import ValidationError
from convo_pipeline.services.sentiment.base import SentimentProvider
from convo_pipeline.services.sentiment.google import GoogleSentimentProvider
from convo_pipeline.services.sentiment.local import LocalSentimentProvider

logger = structlog.get_logger(__name__)


class SentimentProviders:
    """Named set of sentiment providers available to handlers and the coordinator."""

    def __init__(self, providers: Optional[dict[str, SentimentProvider]] = None):
        self._providers: dict[str, SentimentProvider] = dict(providers or {})
        self._providers.setdefault(LocalSentimentProvider.name, LocalSentimentProvider())

    def register(self, provider: SentimentProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> SentimentProvider:
        """Resolve a provider. Raises ValidationError for unknown names."""
        provider = self._providers.get(name)
        if provider is None:
            raise ValidationError(
                f"Unknown sentiment provider: {name}. "
                f"Available: {', '.join(sorted(self._providers))}"
            )
        return provider

    @property
    def names(self) -> list[str]:
        return sorted(self._providers)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()


def build_sentiment_providers(settings: Optional[Settings] = None) -> SentimentProviders:
    """Build the provider set from settings. The local provider is always present."""
    settings = settings or get_settings()
    providers = SentimentProviders()

    providers.register(
        GoogleSentimentProvider(
            api_key=settings.google_language_api_key,
            endpoint=settings.google_language_endpoint,
            timeout=settings.sentiment_provider_timeout,
        )
    )
    logger.info(
        "sentiment_providers_configured",
        providers=providers.names,
        google_configured=bool(settings.google_language_api_key),
    )
    return providers
