"""
Abstract base class for order execution gateways.

Request signing and credentials are the adapter's business; callers
only see exchange-native symbols, Decimals and the types in .types.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from .types import ExchangeBalance, OrderResult, SymbolRules, TimeInForce


class ExchangeError(Exception):
    """Base exception for exchange-related errors."""
    pass


class RateLimitError(ExchangeError):
    """Raised when rate limit is exceeded."""
    pass


class InsufficientBalanceError(ExchangeError):
    """Raised when balance is insufficient for order."""
    pass


class SymbolNotFoundError(ExchangeError):
    """Raised when the exchange does not list a symbol."""
    pass


class ExchangeAdapter(ABC):
    """
    Abstract base class for spot exchange integrations.

    Every method raises ExchangeError (or a subclass) on transport,
    authentication or rejection errors.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        quote_currency: str = "USDT",
        testnet: bool = False,
        timeout_ms: int = 10000,
    ):
        """
        Initialize exchange adapter.

        Args:
            api_key: API key
            api_secret: API secret
            quote_currency: Quote asset used to split native symbols
            testnet: Use testnet environment
            timeout_ms: Per-request timeout
        """
        self.api_key = api_key
        self.api_secret = api_secret
        self.quote_currency = quote_currency
        self.testnet = testnet
        self.timeout_ms = timeout_ms

        self._connected = False
        self._client: Any = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Exchange name identifier (e.g., 'binance')."""
        pass

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_testnet(self) -> bool:
        return self.testnet

    # ==================== Connection Management ====================

    @abstractmethod
    async def connect(self) -> None:
        """Create the client and load market metadata."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release network resources."""
        pass

    # ==================== Trading ====================

    @abstractmethod
    async def market_buy(self, symbol: str, quote_amount: Decimal) -> OrderResult:
        """
        Buy at market for a notional amount of quote currency.

        Args:
            symbol: Native symbol (e.g., 'BTCUSDT')
            quote_amount: Amount of quote currency to spend

        Returns:
            OrderResult with executed quantity and fills
        """
        pass

    @abstractmethod
    async def limit_sell(
        self,
        symbol: str,
        quantity: Decimal,
        price: Decimal,
        time_in_force: TimeInForce = TimeInForce.GTC,
    ) -> OrderResult:
        """
        Place a limit sell order.

        Args:
            symbol: Native symbol
            quantity: Base quantity to sell
            price: Limit price, already conforming to the tick size
            time_in_force: Order lifetime

        Returns:
            OrderResult for the accepted order
        """
        pass

    @abstractmethod
    async def market_sell(self, symbol: str, quantity: Decimal) -> OrderResult:
        """Sell a base quantity at market."""
        pass

    # ==================== Reference Data ====================

    @abstractmethod
    async def get_symbol_rules(self, symbol: str) -> SymbolRules:
        """
        Get quantity step size and price tick size for a symbol.

        Raises:
            SymbolNotFoundError: If the symbol is not listed
        """
        pass

    @abstractmethod
    async def get_balance(self, currency: str) -> ExchangeBalance:
        """Get account balance for a currency."""
        pass

    # ==================== Utility Methods ====================

    def to_unified_symbol(self, symbol: str) -> str:
        """
        Convert a native symbol to ccxt unified format.

        'BTCUSDT' -> 'BTC/USDT'. Symbols already containing '/' are
        returned unchanged.
        """
        if "/" in symbol:
            return symbol

        quote = self.quote_currency
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return f"{symbol[:-len(quote)]}/{quote}"

        raise SymbolNotFoundError(f"Symbol {symbol} is not quoted in {quote}")

    @staticmethod
    def to_native_symbol(symbol: str) -> str:
        """'BTC/USDT' -> 'BTCUSDT'."""
        return symbol.split(":")[0].replace("/", "")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(testnet={self.testnet}, connected={self._connected})>"
