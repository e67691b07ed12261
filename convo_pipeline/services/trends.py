"""Client for the external trend-analysis service."""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import structlog

from convo_pipeline.errors import ProviderError

logger = structlog.get_logger(__name__)


class TrendAnalyzer(ABC):
    """Tenant and time range in, trend result out."""

    @abstractmethod
    async def analyze(
        self,
        tenant_id: Optional[str],
        time_range: str,
        keywords: Optional[list[str]] = None,
    ) -> Any:
        """
        Run trend analysis.

        Raises:
            ProviderError: the service failed or is not configured
        """
        ...

    async def aclose(self) -> None:
        return None


class HttpTrendAnalyzer(TrendAnalyzer):
    """POSTs to ``{base_url}/analyze-trends`` and returns the JSON body verbatim."""

    provider_name = "trend_service"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def analyze(
        self,
        tenant_id: Optional[str],
        time_range: str,
        keywords: Optional[list[str]] = None,
    ) -> Any:
        if not self.base_url:
            raise ProviderError(
                "Trend analysis service not configured", provider=self.provider_name
            )

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        body: dict[str, Any] = {"tenant_id": tenant_id, "time_range": time_range}
        if keywords:
            body["keywords"] = keywords

        try:
            response = await self._get_client().post(
                f"{self.base_url}/analyze-trends", json=body, headers=headers
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Trend analysis failed: {e}", provider=self.provider_name
            ) from e

        if response.status_code >= 400:
            logger.warning(
                "trend_analysis_http_error",
                status_code=response.status_code,
                tenant_id=tenant_id,
            )
            raise ProviderError(
                f"Trend analysis failed: HTTP {response.status_code}",
                provider=self.provider_name,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                "Trend analysis returned invalid JSON", provider=self.provider_name
            ) from e

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
