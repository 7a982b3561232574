from decimal import Decimal

import pytest

from cryptofolio.models import Asset
from cryptofolio.sources.base import MarketDataSource


class StaticSource(MarketDataSource):
    """Returns queued results in order; exceptions in the queue are raised."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0
        self.closed = False

    async def fetch_assets(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_asset():
    def _make(asset_id="bitcoin", price="50000", symbol=None, name=None, **kwargs):
        return Asset(
            id=asset_id,
            symbol=symbol or asset_id[:3],
            name=name or asset_id.title(),
            image=f"https://img.example/{asset_id}.png",
            current_price=Decimal(price),
            **kwargs,
        )

    return _make


@pytest.fixture
def static_source():
    return StaticSource
