"""
Binance spot adapter.

Uses ccxt for transport and HMAC request signing. Fills are read from
the raw Binance response so fill prices stay exact decimal strings.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

import ccxt.async_support as ccxt

from ..utils.logging import get_logger
from .base import (
    ExchangeAdapter,
    ExchangeError,
    InsufficientBalanceError,
    RateLimitError,
    SymbolNotFoundError,
)
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

logger = get_logger(__name__)


# Raw Binance status -> OrderStatus
RAW_STATUS_MAP = {
    "NEW": OrderStatus.NEW,
    "PARTIALLY_FILLED": OrderStatus.PARTIALLY_FILLED,
    "FILLED": OrderStatus.FILLED,
    "CANCELED": OrderStatus.CANCELLED,
    "PENDING_CANCEL": OrderStatus.CANCELLED,
    "REJECTED": OrderStatus.REJECTED,
    "EXPIRED": OrderStatus.EXPIRED,
    "EXPIRED_IN_MATCH": OrderStatus.EXPIRED,
}

# ccxt unified status -> OrderStatus
UNIFIED_STATUS_MAP = {
    "open": OrderStatus.NEW,
    "closed": OrderStatus.FILLED,
    "canceled": OrderStatus.CANCELLED,
    "cancelled": OrderStatus.CANCELLED,
    "expired": OrderStatus.EXPIRED,
    "rejected": OrderStatus.REJECTED,
}


def _to_decimal(value: Any, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ExchangeError(f"Unparsable {field_name} in order response: {value!r}") from e


class BinanceAdapter(ExchangeAdapter):
    """
    Binance spot adapter using ccxt.

    Features:
    - Market buys sized in quote currency (quoteOrderQty)
    - GTC limit sells for take-profit orders
    - LOT_SIZE / PRICE_FILTER lookup from exchange info
    """

    @property
    def name(self) -> str:
        return "binance"

    async def connect(self) -> None:
        """Initialize Binance connection."""
        logger.info("connecting_to_binance", testnet=self.testnet)

        self._client = ccxt.binance({
            "apiKey": self.api_key,
            "secret": self.api_secret,
            "enableRateLimit": True,
            "timeout": self.timeout_ms,
            "options": {
                "defaultType": "spot",
                "adjustForTimeDifference": True,
            },
        })

        if self.testnet:
            self._client.set_sandbox_mode(True)

        try:
            await self._client.load_markets()
        except ccxt.BaseError as e:
            await self._client.close()
            self._client = None
            raise ExchangeError(f"Failed to load Binance markets: {e}") from e

        self._connected = True
        logger.info(
            "binance_connected",
            testnet=self.testnet,
            markets_loaded=len(self._client.markets),
        )

    async def disconnect(self) -> None:
        """Close Binance connections."""
        if self._client:
            await self._client.close()
            self._client = None

        self._connected = False
        logger.info("binance_disconnected")

    async def _call(self, method: str, *args, **kwargs) -> Any:
        """Run a ccxt client method by name and translate its errors."""
        if self._client is None:
            raise ExchangeError("Binance adapter is not connected")

        try:
            return await getattr(self._client, method)(*args, **kwargs)
        except ccxt.InsufficientFunds as e:
            raise InsufficientBalanceError(str(e)) from e
        except (ccxt.RateLimitExceeded, ccxt.DDoSProtection) as e:
            raise RateLimitError(str(e)) from e
        except ccxt.BadSymbol as e:
            raise SymbolNotFoundError(str(e)) from e
        except ccxt.BaseError as e:
            raise ExchangeError(str(e)) from e

    # ==================== Trading ====================

    async def market_buy(self, symbol: str, quote_amount: Decimal) -> OrderResult:
        """Market buy spending quote_amount of the quote currency."""
        unified = self.to_unified_symbol(symbol)

        data = await self._call(
            "create_market_buy_order_with_cost",
            unified,
            float(quote_amount),
        )

        result = self._parse_order_result(data, symbol)
        logger.debug(
            "market_buy_submitted",
            symbol=symbol,
            order_id=result.order_id,
            executed_qty=str(result.executed_qty),
            fills=len(result.fills),
        )
        return result

    async def limit_sell(
        self,
        symbol: str,
        quantity: Decimal,
        price: Decimal,
        time_in_force: TimeInForce = TimeInForce.GTC,
    ) -> OrderResult:
        """Place a limit sell order."""
        unified = self.to_unified_symbol(symbol)

        data = await self._call(
            "create_order",
            unified,
            "limit",
            "sell",
            float(quantity),
            float(price),
            {"timeInForce": time_in_force.value},
        )

        return self._parse_order_result(data, symbol)

    async def market_sell(self, symbol: str, quantity: Decimal) -> OrderResult:
        """Sell quantity at market."""
        unified = self.to_unified_symbol(symbol)

        data = await self._call(
            "create_order",
            unified,
            "market",
            "sell",
            float(quantity),
        )

        return self._parse_order_result(data, symbol)

    # ==================== Reference Data ====================

    async def get_symbol_rules(self, symbol: str) -> SymbolRules:
        """Read LOT_SIZE and PRICE_FILTER for a symbol."""
        unified = self.to_unified_symbol(symbol)

        await self._call("load_markets")
        if unified not in self._client.markets:
            raise SymbolNotFoundError(f"Symbol {symbol} not found")

        market = self._client.market(unified)
        return self.parse_symbol_rules(symbol, market.get("info") or {})

    @staticmethod
    def parse_symbol_rules(symbol: str, info: dict) -> SymbolRules:
        """Extract step and tick size from a raw exchangeInfo symbol entry."""
        step_size = ""
        tick_size = ""

        for rule in info.get("filters", []):
            filter_type = rule.get("filterType")
            if filter_type == "LOT_SIZE":
                step_size = rule.get("stepSize", "")
            elif filter_type == "PRICE_FILTER":
                tick_size = rule.get("tickSize", "")

        return SymbolRules(symbol=symbol, step_size=step_size, tick_size=tick_size)

    async def get_balance(self, currency: str) -> ExchangeBalance:
        """Get account balance."""
        data = await self._call("fetch_balance")

        balance = data.get(currency)
        if not balance:
            return ExchangeBalance(
                currency=currency,
                total=Decimal("0"),
                free=Decimal("0"),
                used=Decimal("0"),
            )

        return ExchangeBalance(
            currency=currency,
            total=Decimal(str(balance.get("total", 0) or 0)),
            free=Decimal(str(balance.get("free", 0) or 0)),
            used=Decimal(str(balance.get("used", 0) or 0)),
        )

    # ==================== Parsing ====================

    def _parse_order_result(self, data: dict, symbol: str) -> OrderResult:
        """Parse a ccxt order (with raw Binance info) into an OrderResult."""
        raw = data.get("info") or {}

        fills = self.parse_fills(raw.get("fills"))
        if not fills:
            fills = self._parse_unified_trades(data.get("trades"))

        if raw.get("executedQty") is not None:
            executed_qty = _to_decimal(raw["executedQty"], "executedQty")
        elif data.get("filled") is not None:
            executed_qty = _to_decimal(data["filled"], "filled")
        else:
            executed_qty = sum((f.qty for f in fills), Decimal("0"))

        status = RAW_STATUS_MAP.get(raw.get("status", "")) or UNIFIED_STATUS_MAP.get(
            data.get("status") or "", OrderStatus.NEW
        )

        timestamp = None
        if data.get("timestamp"):
            timestamp = datetime.fromtimestamp(data["timestamp"] / 1000, tz=timezone.utc)

        return OrderResult(
            order_id=str(data.get("id") or raw.get("orderId", "")),
            symbol=symbol,
            side=OrderSide.BUY if data.get("side") == "buy" else OrderSide.SELL,
            order_type=OrderType.LIMIT if data.get("type") == "limit" else OrderType.MARKET,
            status=status,
            executed_qty=executed_qty,
            price=_to_decimal(data["price"], "price") if data.get("price") else None,
            fills=fills,
            timestamp=timestamp,
            raw=data,
        )

    @staticmethod
    def parse_fills(raw_fills: Optional[List[dict]]) -> List[Fill]:
        """Parse Binance 'fills' entries ({price, qty, commission, commissionAsset})."""
        fills = []
        for entry in raw_fills or []:
            fills.append(Fill(
                price=_to_decimal(entry.get("price", "0"), "fill price"),
                qty=_to_decimal(entry.get("qty", "0"), "fill qty"),
                commission=_to_decimal(entry.get("commission", "0") or "0", "commission"),
                commission_asset=entry.get("commissionAsset", ""),
            ))
        return fills

    @staticmethod
    def _parse_unified_trades(trades: Optional[List[dict]]) -> List[Fill]:
        fills = []
        for trade in trades or []:
            if trade.get("price") is None or trade.get("amount") is None:
                continue
            fee = trade.get("fee") or {}
            fills.append(Fill(
                price=_to_decimal(trade["price"], "trade price"),
                qty=_to_decimal(trade["amount"], "trade amount"),
                commission=_to_decimal(fee.get("cost") or 0, "fee"),
                commission_asset=fee.get("currency") or "",
            ))
        return fills
