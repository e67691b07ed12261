"""Google Cloud Natural Language sentiment provider."""

from typing import Any, Optional

import httpx
import structlog

from convo_pipeline.errors import ProviderError
from convo_pipeline.jobs.types import Sentiment
from convo_pipeline.services.sentiment.base import (
    SentimentProvider,
    SentimentResult,
    is_blank,
)

logger = structlog.get_logger(__name__)

# Google rejects very long documents on the free tier
MAX_CONTENT_CHARS = 1000
SCORE_THRESHOLD = 0.1


def parse_google_response(data: dict[str, Any]) -> SentimentResult:
    """Map a documentSentiment {score, magnitude} onto our labels.

    score is in [-1, 1]; magnitude is unbounded (typically 0-4) and is
    halved and capped at 1 to give a confidence.
    """
    document = data.get("documentSentiment")
    if not isinstance(document, dict) or "score" not in document:
        raise ProviderError("Malformed Google sentiment response", provider="google")

    score = float(document.get("score", 0.0))
    magnitude = float(document.get("magnitude", 0.0))

    if score > SCORE_THRESHOLD:
        sentiment = Sentiment.POSITIVE
    elif score < -SCORE_THRESHOLD:
        sentiment = Sentiment.NEGATIVE
    else:
        sentiment = Sentiment.NEUTRAL

    confidence = round(min(magnitude / 2, 1.0), 2)
    return SentimentResult(sentiment=sentiment, confidence=confidence, provider="google")


class GoogleSentimentProvider(SentimentProvider):
    """Calls documents:analyzeSentiment over HTTP."""

    name = "google"

    def __init__(
        self,
        api_key: Optional[str],
        endpoint: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def analyze(self, content: str) -> SentimentResult:
        if not self.api_key:
            raise ProviderError("Google Cloud API key not configured", provider=self.name)

        if is_blank(content):
            return SentimentResult(
                sentiment=Sentiment.NEUTRAL, confidence=0.0, provider=self.name
            )

        body = {
            "document": {"type": "PLAIN_TEXT", "content": content[:MAX_CONTENT_CHARS]},
            "encodingType": "UTF8",
        }
        try:
            response = await self._get_client().post(
                self.endpoint, params={"key": self.api_key}, json=body
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Google sentiment request failed: {e}", provider=self.name
            ) from e

        if response.status_code != 200:
            logger.warning(
                "google_sentiment_http_error",
                status_code=response.status_code,
            )
            raise ProviderError(
                f"Google API error: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Google API returned invalid JSON", provider=self.name) from e

        return parse_google_response(data)

    async def is_available(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
