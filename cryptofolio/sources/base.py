"""Abstract base class for market data sources."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Asset


class FetchError(Exception):
    """Raised when a market data source cannot produce a snapshot."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MarketDataSource(ABC):
    """Abstract base class for price catalog sources."""

    @abstractmethod
    async def fetch_assets(self) -> list[Asset]:
        """Fetch the complete list of tracked assets.

        Returns:
            Assets ordered by market capitalization, largest first.

        Raises:
            FetchError: If the source is unreachable or answers with an error.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (connections, sessions, etc.)."""
        pass
