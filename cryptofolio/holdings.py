"""Expiring, persisted record of the user's holdings."""

import json
import logging
import time
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Iterable, Optional

from .config import StorageConfig
from .models import Asset, Holding
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class HoldingsStore:
    """Holdings list persisted as a timestamped envelope in a key-value store.

    The envelope is two entries: the JSON-encoded holdings and the epoch
    milliseconds of the last write. An envelope whose timestamp is missing,
    unreadable or older than the expiry window is discarded on load.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        config: Optional[StorageConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.config = config or StorageConfig()
        self._clock = clock
        self._holdings: list[Holding] = []

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def holdings(self) -> list[Holding]:
        return [replace(h) for h in self._holdings]

    def get(self, holding_id: str) -> Optional[Holding]:
        for h in self._holdings:
            if h.id == holding_id:
                return replace(h)
        return None

    def load(self) -> list[Holding]:
        """Read holdings from storage, discarding an expired envelope first."""
        if not self._envelope_is_fresh():
            self._clear()
            self._holdings = []
            return []

        self._holdings = self._read_holdings()
        return self.holdings

    def _envelope_is_fresh(self) -> bool:
        raw_ts = self.storage.get_item(self.config.TIMESTAMP_KEY)
        if raw_ts is None:
            return False

        try:
            last_touched = int(raw_ts)
        except ValueError:
            logger.error("Ignoring saved holdings with invalid timestamp %r", raw_ts)
            return False

        age_ms = self._now_ms() - last_touched
        if age_ms > self.config.expiry_ms:
            logger.info(
                "Saved holdings expired (%.1f hours old), starting empty",
                age_ms / 3_600_000,
            )
            return False

        return True

    def _read_holdings(self) -> list[Holding]:
        raw = self.storage.get_item(self.config.HOLDINGS_KEY)
        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Error loading saved holdings: %s", e)
            return []

        if not isinstance(data, list):
            logger.error("Error loading saved holdings: expected a list")
            return []

        holdings: list[Holding] = []
        for item in data:
            try:
                holdings.append(Holding.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed saved holding %r: %s", item, e)

        return holdings

    def add(
        self,
        asset_id: str,
        amount: Decimal,
        purchase_price: Decimal,
        assets: Iterable[Asset],
    ) -> Optional[Holding]:
        """Record a new holding of ``asset_id``.

        Returns None without touching storage when the asset is not in
        ``assets``.
        """
        asset = next((a for a in assets if a.id == asset_id), None)
        if asset is None:
            return None

        holding = Holding(
            id=uuid.uuid4().hex,
            asset_id=asset.id,
            symbol=asset.symbol,
            name=asset.name,
            image=asset.image,
            amount=amount,
            purchase_price=purchase_price,
        )
        self._commit([*self._holdings, holding])
        return replace(holding)

    def update(self, holding: Holding) -> bool:
        """Replace the stored holding with the same id.

        Only ``amount`` and ``purchase_price`` are taken from ``holding``; the
        id, asset reference and display fields of the stored record are kept.
        """
        updated: list[Holding] = []
        found = False
        for h in self._holdings:
            if h.id == holding.id:
                h = replace(
                    h, amount=holding.amount, purchase_price=holding.purchase_price
                )
                found = True
            updated.append(h)

        if not found:
            return False

        self._commit(updated)
        return True

    def remove(self, holding_id: str) -> bool:
        remaining = [h for h in self._holdings if h.id != holding_id]
        if len(remaining) == len(self._holdings):
            return False

        self._commit(remaining)
        return True

    def persist(self, holdings: list[Holding]) -> None:
        """Write the envelope, or clear it entirely when ``holdings`` is empty."""
        if not holdings:
            self._clear()
            return

        payload = json.dumps([h.to_dict() for h in holdings])
        self.storage.set_item(self.config.HOLDINGS_KEY, payload)
        self.storage.set_item(self.config.TIMESTAMP_KEY, str(self._now_ms()))

    def _commit(self, holdings: list[Holding]) -> None:
        self.persist(holdings)
        self._holdings = holdings

    def _clear(self) -> None:
        self.storage.remove_item(self.config.HOLDINGS_KEY)
        self.storage.remove_item(self.config.TIMESTAMP_KEY)

    def __len__(self) -> int:
        return len(self._holdings)

    def __repr__(self) -> str:
        return f"HoldingsStore(holdings={[h.id for h in self._holdings]})"
