"""Order execution gateway module using ccxt."""

from .types import (
    ExchangeBalance,
    Fill,
    OrderResult,
    OrderSide,
    OrderStatus,
    OrderType,
    SymbolRules,
    TimeInForce,
)
from .base import (
    ExchangeAdapter,
    ExchangeError,
    InsufficientBalanceError,
    RateLimitError,
    SymbolNotFoundError,
)
from .binance import BinanceAdapter
from .factory import create_exchange

__all__ = [
    # Types
    "ExchangeBalance",
    "Fill",
    "OrderResult",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "SymbolRules",
    "TimeInForce",
    # Base
    "ExchangeAdapter",
    "ExchangeError",
    "InsufficientBalanceError",
    "RateLimitError",
    "SymbolNotFoundError",
    # Adapters
    "BinanceAdapter",
    "create_exchange",
]
