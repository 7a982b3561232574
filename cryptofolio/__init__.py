"""
Crypto Portfolio Tracker - values user holdings against a live market price feed.

Exports:
    Asset: Market data record for one coin
    Holding: A user's recorded position in one asset
    ValuedHolding: Holding joined with its asset's current price
    Portfolio: Aggregate valuation of all resolvable holdings
    MarketSummary: Overview statistics across a price snapshot
    CoinGeckoSource: Market data source for the CoinGecko markets endpoint
    PriceCatalogFetcher: Polls a source and keeps the latest snapshot
    HoldingsStore: Expiring persisted record of holdings
    JsonFileStore / MemoryStore: Key-value persistence backends
    PortfolioTracker: Mutation API that keeps the portfolio current
    value_portfolio / sort_holdings: Valuation and ordering helpers
"""

from .config import CatalogConfig, CoinGeckoConfig, FetchPhase, SortKey, StorageConfig
from .models import Asset, Holding, ValuedHolding, Portfolio, MarketSummary
from .sources import CoinGeckoSource, FetchError, MarketDataSource
from .fetcher import PriceCatalogFetcher
from .storage import KeyValueStore, JsonFileStore, MemoryStore
from .holdings import HoldingsStore
from .valuation import filter_assets, sort_holdings, summarize_market, value_portfolio
from .tracker import PortfolioTracker

__all__ = [
    "Asset",
    "Holding",
    "ValuedHolding",
    "Portfolio",
    "MarketSummary",
    "CatalogConfig",
    "CoinGeckoConfig",
    "StorageConfig",
    "FetchPhase",
    "SortKey",
    "MarketDataSource",
    "CoinGeckoSource",
    "FetchError",
    "PriceCatalogFetcher",
    "KeyValueStore",
    "JsonFileStore",
    "MemoryStore",
    "HoldingsStore",
    "PortfolioTracker",
    "value_portfolio",
    "sort_holdings",
    "summarize_market",
    "filter_assets",
]
