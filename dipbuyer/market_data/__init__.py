"""Market data sources."""

from .base import MarketDataError, MarketDataSource, MarketTicker
from .coinmarketcap import CoinMarketCapClient

__all__ = [
    "MarketDataError",
    "MarketDataSource",
    "MarketTicker",
    "CoinMarketCapClient",
]
