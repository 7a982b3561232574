"""CoinGecko market data source."""

import logging
from typing import Any, Optional

import httpx

from ..config import CoinGeckoConfig
from ..models import Asset
from .base import FetchError, MarketDataSource

logger = logging.getLogger(__name__)


class CoinGeckoSource(MarketDataSource):
    """Fetches the top coins by market cap from the CoinGecko markets endpoint."""

    def __init__(
        self,
        config: Optional[CoinGeckoConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or CoinGeckoConfig()
        self._client = client
        self._owns_client = client is None
        if not self.config.API_KEY:
            logger.warning(
                "No CoinGecko API key configured, requests go out without the %s header",
                self.config.API_KEY_HEADER,
            )

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.BASE_URL,
                timeout=self.config.REQUEST_TIMEOUT_S,
            )
        return self._client

    @property
    def url(self) -> str:
        return f"{self.config.BASE_URL}{self.config.MARKETS_PATH}"

    def _params(self) -> dict[str, str | int]:
        return {
            "vs_currency": self.config.VS_CURRENCY,
            "order": self.config.ORDER,
            "per_page": self.config.PER_PAGE,
            "page": self.config.PAGE,
            "sparkline": "false",
            "price_change_percentage": self.config.PRICE_CHANGE_WINDOW,
        }

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.API_KEY:
            headers[self.config.API_KEY_HEADER] = self.config.API_KEY
        return headers

    async def fetch_assets(self) -> list[Asset]:
        client = self._ensure_client()

        try:
            response = await client.get(
                self.url, params=self._params(), headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {self.url} failed: {e}") from e

        if not response.is_success:
            raise FetchError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchError("Market data response is not valid JSON") from e

        return self._parse_assets(payload)

    def _parse_assets(self, payload: Any) -> list[Asset]:
        if not isinstance(payload, list):
            raise FetchError(
                f"Expected a list of assets, got {type(payload).__name__}"
            )

        assets: list[Asset] = []
        for record in payload:
            try:
                assets.append(Asset.from_api(record))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed asset record %r: %s", record, e)

        return assets

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
