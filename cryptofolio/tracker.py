import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable, Optional

from .config import SortKey
from .fetcher import PriceCatalogFetcher
from .holdings import HoldingsStore
from .models import Asset, Holding, MarketSummary, Portfolio, ValuedHolding, to_decimal
from .valuation import filter_assets, sort_holdings, summarize_market, value_portfolio

logger = logging.getLogger(__name__)

PortfolioListener = Callable[[Portfolio], None]


def parse_quantity(value: Any) -> Optional[Decimal]:
    """Parse a user-entered amount or price.

    Returns None for anything that is not a finite, non-negative number.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    try:
        number = to_decimal(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return None

    if not number.is_finite() or number < 0:
        return None
    return number


class PortfolioTracker:
    """Owns the price catalog and holdings, and keeps the portfolio current.

    Every committed holdings mutation and every applied price snapshot is
    followed by a full revaluation, so ``portfolio`` never reflects a state
    the store has not finished writing.
    """

    def __init__(self, fetcher: PriceCatalogFetcher, store: HoldingsStore) -> None:
        self.fetcher = fetcher
        self.store = store
        self.portfolio: Portfolio = Portfolio.empty()
        self._listeners: list[PortfolioListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def assets(self) -> tuple[Asset, ...]:
        return self.fetcher.assets

    @property
    def holdings(self) -> list[Holding]:
        return self.store.holdings

    @property
    def loading(self) -> bool:
        return self.fetcher.loading

    @property
    def refreshing(self) -> bool:
        return self.fetcher.refreshing

    @property
    def error(self) -> Optional[str]:
        return self.fetcher.error

    def subscribe(self, listener: PortfolioListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def revalue(self) -> Portfolio:
        self.portfolio = value_portfolio(self.fetcher.assets, self.store.holdings)
        for listener in list(self._listeners):
            listener(self.portfolio)
        return self.portfolio

    def _on_snapshot(self, assets: tuple[Asset, ...]) -> None:
        self.revalue()

    async def start(self) -> None:
        """Load saved holdings, then start polling prices."""
        self.store.load()
        self.revalue()
        if self._unsubscribe is None:
            self._unsubscribe = self.fetcher.subscribe(self._on_snapshot)
        await self.fetcher.start()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.fetcher.stop()

    async def __aenter__(self) -> "PortfolioTracker":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def add_holding(
        self, asset_id: str, amount: Any, purchase_price: Any
    ) -> Optional[Holding]:
        """Add a holding of ``asset_id`` and revalue.

        Returns:
            The new holding, or None if the input was rejected.
        """
        parsed_amount = parse_quantity(amount)
        parsed_price = parse_quantity(purchase_price)
        if not asset_id or parsed_amount is None or parsed_price is None:
            logger.warning(
                "Rejected holding for %r: amount=%r purchase_price=%r",
                asset_id,
                amount,
                purchase_price,
            )
            return None

        holding = self.store.add(asset_id, parsed_amount, parsed_price, self.assets)
        if holding is None:
            logger.warning("Rejected holding for unknown asset %r", asset_id)
            return None

        self.revalue()
        return holding

    def update_holding(
        self, holding_id: str, amount: Any, purchase_price: Any
    ) -> Optional[Holding]:
        """Change the amount and purchase price of an existing holding."""
        current = self.store.get(holding_id)
        parsed_amount = parse_quantity(amount)
        parsed_price = parse_quantity(purchase_price)
        if current is None or parsed_amount is None or parsed_price is None:
            logger.warning(
                "Rejected update of holding %r: amount=%r purchase_price=%r",
                holding_id,
                amount,
                purchase_price,
            )
            return None

        updated = replace(current, amount=parsed_amount, purchase_price=parsed_price)
        self.store.update(updated)
        self.revalue()
        return updated

    def replace_holding(self, holding: Holding) -> bool:
        """Store ``holding`` over the record with the same id and revalue."""
        if parse_quantity(holding.amount) is None or parse_quantity(
            holding.purchase_price
        ) is None:
            logger.warning("Rejected replacement of holding %r", holding.id)
            return False

        if not self.store.update(holding):
            return False

        self.revalue()
        return True

    def remove_holding(self, holding_id: str) -> bool:
        if not self.store.remove(holding_id):
            return False

        self.revalue()
        return True

    def sorted_holdings(self, key: SortKey | str = SortKey.VALUE) -> list[ValuedHolding]:
        return sort_holdings(self.portfolio.holdings, key)

    def market_summary(self) -> MarketSummary:
        return summarize_market(self.assets)

    def search_assets(self, term: str) -> list[Asset]:
        return filter_assets(self.assets, term)

    def __repr__(self) -> str:
        return (
            f"PortfolioTracker(holdings={len(self.store)}, "
            f"assets={len(self.assets)}, "
            f"total_value={self.portfolio.total_value})"
        )
