"""Market data sources for the price catalog."""

from .base import FetchError, MarketDataSource
from .coingecko import CoinGeckoSource

__all__ = [
    "FetchError",
    "MarketDataSource",
    "CoinGeckoSource",
]
