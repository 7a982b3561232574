"""Configuration constants for the crypto portfolio tracker."""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class SortKey(Enum):
    """Orderings available for valued holdings."""

    VALUE = "value"
    PERFORMANCE = "performance"
    NAME = "name"
    AMOUNT = "amount"


class FetchPhase(Enum):
    """Temporal phase of the price catalog."""

    INITIAL_LOAD = "initial_load"
    REFRESHING = "refreshing"
    IDLE = "idle"


@dataclass(frozen=True)
class CoinGeckoConfig:
    """Configuration for the CoinGecko market data source."""

    BASE_URL: str = "https://api.coingecko.com/api/v3"
    MARKETS_PATH: str = "/coins/markets"
    VS_CURRENCY: str = "usd"
    ORDER: str = "market_cap_desc"
    PER_PAGE: int = 100
    PAGE: int = 1
    PRICE_CHANGE_WINDOW: str = "24h"
    API_KEY_HEADER: str = "x-cg-demo-api-key"
    API_KEY: Optional[str] = None
    REQUEST_TIMEOUT_S: float = 10.0

    @classmethod
    def from_env(cls) -> "CoinGeckoConfig":
        return cls(API_KEY=os.environ.get("COINGECKO_API_KEY") or None)


@dataclass(frozen=True)
class CatalogConfig:
    """Polling behaviour of the price catalog fetcher."""

    REFRESH_INTERVAL_S: float = 30.0
    # Applied to background refreshes only, never to the initial load.
    MIN_REFRESH_DELAY_S: float = 0.5


@dataclass(frozen=True)
class StorageConfig:
    """Keys and lifetime of the persisted holdings envelope."""

    HOLDINGS_KEY: str = "crypto-portfolio-holdings"
    TIMESTAMP_KEY: str = "crypto-portfolio-timestamp"
    EXPIRY_HOURS: int = 48
    DEFAULT_PATH: Path = Path.home() / ".cryptofolio" / "storage.json"

    @property
    def expiry_ms(self) -> int:
        return self.EXPIRY_HOURS * 60 * 60 * 1000

    @classmethod
    def from_env(cls) -> "StorageConfig":
        path = os.environ.get("CRYPTOFOLIO_STORAGE")
        if path:
            return cls(DEFAULT_PATH=Path(path).expanduser())
        return cls()
