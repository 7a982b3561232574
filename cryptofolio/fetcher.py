"""Polling price catalog built on top of a market data source."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .config import CatalogConfig, FetchPhase
from .models import Asset
from .sources.base import FetchError, MarketDataSource

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[tuple[Asset, ...]], None]


class PriceCatalogFetcher:
    """Keeps the latest asset snapshot from a source, refreshed on an interval.

    Fetches may overlap. Each one is numbered when it starts and a result is
    only applied if no later-numbered fetch has been applied already, so a
    slow response can never replace a newer snapshot. Failures keep the last
    good snapshot and set ``error`` until the next applied success.

    Failures take part in the ordering too: once a newer fetch has failed,
    an older fetch that succeeds afterwards is discarded, even though its
    data may be fresher than the snapshot currently held.
    """

    def __init__(
        self,
        source: MarketDataSource,
        config: Optional[CatalogConfig] = None,
    ) -> None:
        self.source = source
        self.config = config or CatalogConfig()
        self._assets: tuple[Asset, ...] = ()
        self._has_snapshot = False
        self._error: Optional[str] = None
        self._last_updated: Optional[datetime] = None
        self._sequence = 0
        self._applied_sequence = 0
        self._in_flight = 0
        self._listeners: list[SnapshotListener] = []
        self._interval_task: Optional[asyncio.Task] = None
        self._tick_tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def assets(self) -> tuple[Asset, ...]:
        return self._assets

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._last_updated

    @property
    def loading(self) -> bool:
        """True while no snapshot exists and the initial load has not settled."""
        return not self._has_snapshot and (self._in_flight > 0 or self._sequence == 0)

    @property
    def refreshing(self) -> bool:
        return self._has_snapshot and self._in_flight > 0

    @property
    def phase(self) -> FetchPhase:
        if self.loading:
            return FetchPhase.INITIAL_LOAD
        if self.refreshing:
            return FetchPhase.REFRESHING
        return FetchPhase.IDLE

    @property
    def running(self) -> bool:
        return self._interval_task is not None and not self._interval_task.done()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with every applied snapshot.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def fetch(self) -> bool:
        """Run one fetch and apply its result if it is still the newest.

        Returns:
            True if a new snapshot was applied.
        """
        if self._closed:
            return False

        self._sequence += 1
        sequence = self._sequence
        initial = not self._has_snapshot
        self._in_flight += 1

        try:
            try:
                assets = await self.source.fetch_assets()
            except FetchError as e:
                logger.warning("Error fetching market data: %s", e)
                self._apply_error(sequence, str(e))
                return False
            except Exception as e:
                logger.exception("Unexpected error fetching market data")
                self._apply_error(sequence, str(e) or "Failed to fetch market data")
                return False

            # Avoids flicker when a background refresh answers instantly.
            if not initial and self.config.MIN_REFRESH_DELAY_S > 0:
                await asyncio.sleep(self.config.MIN_REFRESH_DELAY_S)

            return self._apply_snapshot(sequence, assets)
        finally:
            self._in_flight -= 1

    def _is_stale(self, sequence: int) -> bool:
        if self._closed:
            logger.debug("Ignoring fetch #%d completed after stop", sequence)
            return True
        if sequence < self._applied_sequence:
            logger.debug(
                "Discarding fetch #%d, #%d already applied",
                sequence,
                self._applied_sequence,
            )
            return True
        return False

    def _apply_error(self, sequence: int, message: str) -> None:
        if self._is_stale(sequence):
            return
        self._applied_sequence = sequence
        self._error = message

    def _apply_snapshot(self, sequence: int, assets: list[Asset]) -> bool:
        if self._is_stale(sequence):
            return False

        self._applied_sequence = sequence
        self._assets = tuple(assets)
        self._has_snapshot = True
        self._error = None
        self._last_updated = datetime.now(timezone.utc)
        logger.debug("Applied fetch #%d with %d assets", sequence, len(assets))

        for listener in list(self._listeners):
            listener(self._assets)
        return True

    async def refresh(self) -> bool:
        """Manual trigger, equivalent to one interval tick."""
        return await self.fetch()

    async def start(self) -> None:
        """Perform the initial load, then refresh every ``REFRESH_INTERVAL_S``."""
        if self._closed:
            raise RuntimeError("Fetcher has been stopped and cannot be restarted")
        if self._interval_task is not None:
            return

        await self.fetch()
        if self._closed:
            return
        self._interval_task = asyncio.create_task(self._run_interval())

    async def _run_interval(self) -> None:
        while True:
            await asyncio.sleep(self.config.REFRESH_INTERVAL_S)
            # A slow fetch must not hold back the next tick.
            task = asyncio.create_task(self._tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

    async def _tick(self) -> None:
        try:
            await self.fetch()
        except Exception:
            logger.exception("Scheduled market data refresh failed")

    async def stop(self) -> None:
        """Cancel the interval; results of fetches still running are ignored."""
        self._closed = True

        tasks = list(self._tick_tasks)
        if self._interval_task is not None:
            tasks.append(self._interval_task)
            self._interval_task = None

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tick_tasks.clear()
