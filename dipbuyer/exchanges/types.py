"""
Data types for exchange interactions.

Symbols are exchange-native spot symbols (e.g. 'BTCUSDT').
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class OrderSide(Enum):
    """Order direction."""
    BUY = "BUY"
    SELL = "SELL"


class OrderType(Enum):
    """Order type."""
    LIMIT = "LIMIT"
    MARKET = "MARKET"


class TimeInForce(Enum):
    """How long a limit order stays on the book."""
    GTC = "GTC"  # Good till cancelled
    IOC = "IOC"
    FOK = "FOK"


class OrderStatus(Enum):
    """Order status."""
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class Fill:
    """Single execution of an order."""
    price: Decimal
    qty: Decimal
    commission: Decimal = Decimal("0")
    commission_asset: str = ""


@dataclass
class OrderResult:
    """
    Result of an order submission.
    """
    order_id: str
    symbol: str
    side: OrderSide
    order_type: OrderType
    status: OrderStatus
    executed_qty: Decimal
    price: Optional[Decimal] = None  # Limit price (if applicable)
    fills: List[Fill] = field(default_factory=list)
    timestamp: Optional[datetime] = None
    raw: dict = field(default_factory=dict)  # Raw exchange response

    @property
    def filled_qty(self) -> Decimal:
        """Total quantity across fills."""
        return sum((f.qty for f in self.fills), Decimal("0"))

    @property
    def average_fill_price(self) -> Optional[Decimal]:
        """Volume-weighted average fill price, None without usable fills."""
        total_qty = self.filled_qty
        if total_qty <= 0:
            return None
        total_value = sum((f.price * f.qty for f in self.fills), Decimal("0"))
        return total_value / total_qty


@dataclass(frozen=True)
class SymbolRules:
    """
    Trading rules for a symbol, as decimal strings.

    Either field may be empty when the exchange does not publish it.
    """
    symbol: str
    step_size: str
    tick_size: str


@dataclass
class ExchangeBalance:
    """
    Account balance for a currency.
    """
    currency: str
    total: Decimal
    free: Decimal  # Available for trading
    used: Decimal  # Locked in open orders
