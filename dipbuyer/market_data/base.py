"""
Market data source interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import List


class MarketDataError(Exception):
    """Raised when a snapshot cannot be fetched or parsed."""
    pass


@dataclass(frozen=True)
class MarketTicker:
    """One ranked asset in a market snapshot."""
    symbol: str  # Exchange-native symbol, e.g. 'BTCUSDT'
    last_price: Decimal
    percent_change_24h: Decimal  # Negative for a decline


class MarketDataSource(ABC):
    """Provides ranked snapshots of the market."""

    @abstractmethod
    async def fetch_ranked_assets(
        self,
        limit: int,
        exclude_stablecoins: bool = True,
    ) -> List[MarketTicker]:
        """
        Fetch the top assets by rank.

        Args:
            limit: Maximum number of assets to return
            exclude_stablecoins: Drop stablecoins before applying the limit

        Returns:
            Tickers in rank order

        Raises:
            MarketDataError: On transport error, non-success status or malformed payload
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
