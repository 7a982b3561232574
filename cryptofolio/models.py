"""Data models for the crypto portfolio tracker."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Convert a JSON scalar to Decimal, treating null as zero.

    Floats go through ``str`` so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        value = str(value)
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Not a decimal value: {value!r}") from e


def finite_decimal(value: Any) -> Decimal:
    """Like ``to_decimal`` but rejects NaN and infinities."""
    number = to_decimal(value)
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, or zero when whole is not positive."""
    if whole <= 0:
        return ZERO
    return part / whole * HUNDRED


@dataclass(frozen=True)
class Asset:
    """A market data record for one tradable coin, as supplied by the source."""

    id: str
    symbol: str
    name: str
    image: str
    current_price: Decimal
    price_change_percentage_24h: Decimal = ZERO
    market_cap: Decimal = ZERO
    total_volume: Decimal = ZERO
    market_cap_rank: Optional[int] = None

    @classmethod
    def from_api(cls, record: dict[str, Any]) -> "Asset":
        rank = record.get("market_cap_rank")
        return cls(
            id=str(record["id"]),
            symbol=str(record["symbol"]),
            name=str(record["name"]),
            image=str(record.get("image") or ""),
            current_price=finite_decimal(record.get("current_price")),
            price_change_percentage_24h=finite_decimal(
                record.get("price_change_percentage_24h")
            ),
            market_cap=finite_decimal(record.get("market_cap")),
            total_volume=finite_decimal(record.get("total_volume")),
            market_cap_rank=int(rank) if rank is not None else None,
        )


@dataclass
class Holding:
    """A user's recorded position in one asset.

    ``symbol``, ``name`` and ``image`` are copied from the asset when the
    holding is created and are not refreshed afterwards.
    """

    id: str
    asset_id: str
    symbol: str
    name: str
    image: str
    amount: Decimal
    purchase_price: Decimal

    @property
    def purchase_value(self) -> Decimal:
        return self.amount * self.purchase_price

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "symbol": self.symbol,
            "name": self.name,
            "image": self.image,
            "amount": str(self.amount),
            "purchase_price": str(self.purchase_price),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Holding":
        return cls(
            id=str(data["id"]),
            asset_id=str(data["asset_id"]),
            symbol=str(data.get("symbol", "")),
            name=str(data.get("name", "")),
            image=str(data.get("image", "")),
            amount=finite_decimal(data["amount"]),
            purchase_price=finite_decimal(data.get("purchase_price")),
        )


@dataclass(frozen=True)
class ValuedHolding:
    """A holding joined with the current price of its asset."""

    holding_id: str
    asset_id: str
    symbol: str
    name: str
    image: str
    amount: Decimal
    purchase_price: Decimal
    current_price: Decimal
    price_change_percentage_24h: Decimal
    value: Decimal
    profit_loss: Decimal
    profit_loss_percentage: Decimal

    @property
    def purchase_value(self) -> Decimal:
        return self.value - self.profit_loss


@dataclass(frozen=True)
class Portfolio:
    """Aggregate valuation of every holding that resolves in the snapshot."""

    holdings: tuple[ValuedHolding, ...] = field(default_factory=tuple)
    total_value: Decimal = ZERO
    total_profit_loss: Decimal = ZERO
    total_profit_loss_percentage: Decimal = ZERO

    @classmethod
    def empty(cls) -> "Portfolio":
        return cls()

    @property
    def total_invested(self) -> Decimal:
        return self.total_value - self.total_profit_loss

    def allocation(self) -> dict[str, Decimal]:
        """Share of total value per holding id, in percent."""
        if self.total_value <= 0:
            return {}

        return {
            h.holding_id: percentage(h.value, self.total_value)
            for h in self.holdings
        }

    @property
    def best_performer(self) -> Optional[ValuedHolding]:
        best = None
        for h in self.holdings:
            if best is None or h.profit_loss_percentage > best.profit_loss_percentage:
                best = h
        return best

    @property
    def worst_performer(self) -> Optional[ValuedHolding]:
        worst = None
        for h in self.holdings:
            if worst is None or h.profit_loss_percentage < worst.profit_loss_percentage:
                worst = h
        return worst

    @property
    def average_return(self) -> Decimal:
        if not self.holdings:
            return ZERO
        total = sum((h.profit_loss_percentage for h in self.holdings), start=ZERO)
        return total / len(self.holdings)

    @property
    def total_gains(self) -> Decimal:
        return sum(
            (h.profit_loss for h in self.holdings if h.profit_loss > 0), start=ZERO
        )

    @property
    def total_losses(self) -> Decimal:
        return abs(
            sum((h.profit_loss for h in self.holdings if h.profit_loss < 0), start=ZERO)
        )


@dataclass(frozen=True)
class MarketSummary:
    """Overview statistics across the whole price snapshot."""

    total_market_cap: Decimal = ZERO
    average_change_24h: Decimal = ZERO
    gainers: int = 0
    losers: int = 0

    def __str__(self) -> str:
        return (
            f"Market cap ${self.total_market_cap:,.0f}, "
            f"avg 24h {self.average_change_24h:+.2f}%, "
            f"{self.gainers} up / {self.losers} down"
        )
