"""Portfolio valuation against a price snapshot."""

from typing import Iterable, Sequence

from .config import SortKey
from .models import (
    ZERO,
    Asset,
    Holding,
    MarketSummary,
    Portfolio,
    ValuedHolding,
    percentage,
)


def value_holding(holding: Holding, asset: Asset) -> ValuedHolding:
    current_value = holding.amount * asset.current_price
    purchase_value = holding.purchase_value
    profit_loss = current_value - purchase_value

    return ValuedHolding(
        holding_id=holding.id,
        asset_id=asset.id,
        symbol=holding.symbol,
        name=holding.name,
        image=holding.image,
        amount=holding.amount,
        purchase_price=holding.purchase_price,
        current_price=asset.current_price,
        price_change_percentage_24h=asset.price_change_percentage_24h,
        value=current_value,
        profit_loss=profit_loss,
        profit_loss_percentage=percentage(profit_loss, purchase_value),
    )


def value_portfolio(assets: Iterable[Asset], holdings: Iterable[Holding]) -> Portfolio:
    """Value every holding whose asset is present in ``assets``.

    Holdings referring to assets missing from the snapshot are left out of
    both the holding list and the totals. The result depends only on the
    inputs, so calling this twice with the same arguments gives equal output.

    Args:
        assets: Current price snapshot.
        holdings: Holdings in store order.

    Returns:
        Portfolio with holdings in the same order as ``holdings``.
    """
    prices = {asset.id: asset for asset in assets}
    if not prices:
        return Portfolio.empty()

    valued = tuple(
        value_holding(holding, prices[holding.asset_id])
        for holding in holdings
        if holding.asset_id in prices
    )
    if not valued:
        return Portfolio.empty()

    total_value = sum((h.value for h in valued), start=ZERO)
    total_profit_loss = sum((h.profit_loss for h in valued), start=ZERO)

    return Portfolio(
        holdings=valued,
        total_value=total_value,
        total_profit_loss=total_profit_loss,
        total_profit_loss_percentage=percentage(
            total_profit_loss, total_value - total_profit_loss
        ),
    )


def sort_holdings(
    holdings: Sequence[ValuedHolding], key: SortKey | str = SortKey.VALUE
) -> list[ValuedHolding]:
    """Return a sorted copy of ``holdings``; the input is left untouched.

    Name sorts ascending, everything else descending. Ties keep their
    original relative order.
    """
    key = SortKey(key)

    if key is SortKey.NAME:
        return sorted(holdings, key=lambda h: h.name.casefold())
    if key is SortKey.PERFORMANCE:
        return sorted(holdings, key=lambda h: h.profit_loss_percentage, reverse=True)
    if key is SortKey.AMOUNT:
        return sorted(holdings, key=lambda h: h.amount, reverse=True)
    return sorted(holdings, key=lambda h: h.value, reverse=True)


def summarize_market(assets: Sequence[Asset]) -> MarketSummary:
    if not assets:
        return MarketSummary()

    total_change = sum((a.price_change_percentage_24h for a in assets), start=ZERO)
    return MarketSummary(
        total_market_cap=sum((a.market_cap for a in assets), start=ZERO),
        average_change_24h=total_change / len(assets),
        gainers=sum(1 for a in assets if a.price_change_percentage_24h > 0),
        losers=sum(1 for a in assets if a.price_change_percentage_24h < 0),
    )


def filter_assets(assets: Iterable[Asset], term: str) -> list[Asset]:
    """Assets whose name or symbol contains ``term``, ignoring case."""
    needle = term.strip().casefold()
    if not needle:
        return list(assets)

    return [
        a for a in assets
        if needle in a.name.casefold() or needle in a.symbol.casefold()
    ]
