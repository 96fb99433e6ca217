"""
CoinMarketCap market data source.

Reads the latest listings (ranked by market cap) and turns them into
exchange-native tickers such as 'BTCUSDT'.
"""

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

import aiohttp

from ..config.schema import DEFAULT_STABLECOINS, MarketDataConfig
from ..utils.logging import get_logger
from .base import MarketDataError, MarketDataSource, MarketTicker

logger = get_logger(__name__)

LISTINGS_PATH = "/v1/cryptocurrency/listings/latest"


class CoinMarketCapClient(MarketDataSource):
    """
    CoinMarketCap Pro API client.

    One request per snapshot; CoinMarketCap prices are used directly,
    no extra exchange ticker calls are made.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://pro-api.coinmarketcap.com",
        quote_currency: str = "USDT",
        fetch_limit: int = 50,
        stablecoins: Optional[Iterable[str]] = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize the client.

        Args:
            api_key: CoinMarketCap Pro API key
            base_url: API root
            quote_currency: Suffix appended to coin symbols
            fetch_limit: Listings requested per snapshot
            stablecoins: Symbols treated as stablecoins in addition to the
                'stablecoin' tag
            timeout_seconds: Total request timeout
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.quote_currency = quote_currency
        self.fetch_limit = fetch_limit
        self.stablecoins = {
            s.upper() for s in (stablecoins if stablecoins is not None else DEFAULT_STABLECOINS)
        }
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: MarketDataConfig, quote_currency: str) -> "CoinMarketCapClient":
        return cls(
            api_key=config.api_key.get_secret_value(),
            base_url=config.base_url,
            quote_currency=quote_currency,
            fetch_limit=config.fetch_limit,
            stablecoins=config.stablecoins,
            timeout_seconds=config.request_timeout_seconds,
        )

    async def fetch_ranked_assets(
        self,
        limit: int,
        exclude_stablecoins: bool = True,
    ) -> List[MarketTicker]:
        """Fetch the top `limit` assets in rank order."""
        if not self.api_key:
            raise MarketDataError("CoinMarketCap API key is not configured")

        payload = await self._get_listings(max(limit, self.fetch_limit))
        tickers = self.parse_listings(payload, limit, exclude_stablecoins)

        logger.info(
            "snapshot_fetched",
            source="coinmarketcap",
            received=len(payload.get("data") or []),
            kept=len(tickers),
        )
        return tickers

    async def _get_listings(self, fetch_limit: int) -> dict:
        """GET the listings endpoint and return the decoded JSON document."""
        params = {"start": "1", "limit": str(fetch_limit), "convert": "USD"}
        headers = {
            "X-CMC_PRO_API_KEY": self.api_key,
            "Accept": "application/json",
        }

        try:
            session = await self._get_session()
            async with session.get(
                f"{self.base_url}{LISTINGS_PATH}",
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    raise MarketDataError(
                        f"CoinMarketCap request failed with status {response.status}: {body[:500]}"
                    )
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise MarketDataError("CoinMarketCap request timed out") from e
        except aiohttp.ClientError as e:
            raise MarketDataError(f"CoinMarketCap request error: {e}") from e
        except ValueError as e:
            raise MarketDataError(f"CoinMarketCap returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise MarketDataError("CoinMarketCap payload is not an object")

        return payload

    def parse_listings(
        self,
        payload: dict,
        limit: int,
        exclude_stablecoins: bool = True,
    ) -> List[MarketTicker]:
        """
        Convert a listings payload into tickers.

        Raises:
            MarketDataError: If the API reported an error or an entry is malformed
        """
        status = payload.get("status") or {}
        if status.get("error_code", 0) not in (0, None):
            raise MarketDataError(
                f"CoinMarketCap API error {status.get('error_code')}: {status.get('error_message')}"
            )

        data = payload.get("data")
        if not isinstance(data, list):
            raise MarketDataError("CoinMarketCap payload has no data list")

        tickers: List[MarketTicker] = []
        for coin in data:
            if len(tickers) >= limit:
                break

            try:
                symbol = str(coin["symbol"]).upper()
                usd = coin["quote"]["USD"]
                price = Decimal(str(usd["price"]))
                change = Decimal(str(usd["percent_change_24h"]))
            except (KeyError, TypeError, InvalidOperation) as e:
                raise MarketDataError(f"Malformed CoinMarketCap entry: {coin!r}") from e

            if exclude_stablecoins and self._is_stablecoin(symbol, coin.get("tags")):
                logger.debug("stablecoin_skipped", symbol=symbol)
                continue

            if symbol == self.quote_currency:
                continue

            tickers.append(MarketTicker(
                symbol=f"{symbol}{self.quote_currency}",
                last_price=price,
                percent_change_24h=change,
            ))

        return tickers

    def _is_stablecoin(self, symbol: str, tags) -> bool:
        if symbol in self.stablecoins:
            return True
        return isinstance(tags, list) and "stablecoin" in tags

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
