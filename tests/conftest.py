"""
Pytest configuration and fixtures.
"""

from decimal import Decimal
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from dipbuyer.config.schema import TradingConfig
from dipbuyer.engine.state import TradingState
from dipbuyer.exchanges.types import (
    Fill,
    OrderResult,
    OrderSide,
    OrderStatus,
    OrderType,
    SymbolRules,
)
from dipbuyer.market_data.base import MarketTicker


# ============================================================
# Configuration Fixtures
# ============================================================
@pytest.fixture
def trading_config() -> TradingConfig:
    """Trading config with the default strategy parameters."""
    return TradingConfig(
        quote_currency="USDT",
        investment_amount=Decimal("7"),
        take_profit_multiplier=Decimal("1.05"),
        settlement_delay_seconds=3.0,
        sell_order_attempts=3,
        sell_retry_delay_seconds=2.0,
        cycle_interval_minutes=60.0,
    )


@pytest.fixture
def state() -> TradingState:
    """Fresh state with a 20 USDT budget."""
    return TradingState(total_budget=Decimal("20"), investment_amount=Decimal("7"))


@pytest.fixture
def fake_sleep() -> AsyncMock:
    """Awaitable sleep that returns immediately and records delays."""
    return AsyncMock()


# ============================================================
# Sample Data Fixtures
# ============================================================
def make_ticker(symbol: str, change: str, price: str = "1.00") -> MarketTicker:
    return MarketTicker(
        symbol=symbol,
        last_price=Decimal(price),
        percent_change_24h=Decimal(change),
    )


def make_buy_result(
    symbol: str = "SOLUSDT",
    executed_qty: str = "0.05",
    fills: List[Fill] = None,
    order_id: str = "buy-1",
) -> OrderResult:
    return OrderResult(
        order_id=order_id,
        symbol=symbol,
        side=OrderSide.BUY,
        order_type=OrderType.MARKET,
        status=OrderStatus.FILLED,
        executed_qty=Decimal(executed_qty),
        fills=fills if fills is not None else [Fill(price=Decimal("140"), qty=Decimal(executed_qty))],
    )


def make_sell_result(symbol: str = "SOLUSDT", order_id: str = "sell-1") -> OrderResult:
    return OrderResult(
        order_id=order_id,
        symbol=symbol,
        side=OrderSide.SELL,
        order_type=OrderType.LIMIT,
        status=OrderStatus.NEW,
        executed_qty=Decimal("0"),
    )


@pytest.fixture
def sample_snapshot() -> List[MarketTicker]:
    """Snapshot with one asset in every zone."""
    return [
        make_ticker("BTCUSDT", "-2.0", "60000"),
        make_ticker("SOLUSDT", "-7.3", "140"),
        make_ticker("DOGEUSDT", "-4.8", "0.15"),
        make_ticker("PEPEUSDT", "-12.5", "0.00001"),
        make_ticker("ADAUSDT", "-10.5", "0.40"),
    ]


# ============================================================
# Mock Exchange Fixtures
# ============================================================
@pytest.fixture
def mock_exchange() -> MagicMock:
    """Mock exchange where every order succeeds."""
    exchange = MagicMock()
    exchange.name = "mock_exchange"
    exchange.is_testnet = True

    exchange.connect = AsyncMock()
    exchange.disconnect = AsyncMock()
    exchange.market_buy = AsyncMock(side_effect=lambda symbol, amount: make_buy_result(symbol))
    exchange.limit_sell = AsyncMock(
        side_effect=lambda symbol, qty, price, tif=None: make_sell_result(symbol)
    )
    exchange.market_sell = AsyncMock()
    exchange.get_symbol_rules = AsyncMock(
        side_effect=lambda symbol: SymbolRules(symbol=symbol, step_size="0.001", tick_size="0.01")
    )
    return exchange


@pytest.fixture
def mock_market_data(sample_snapshot) -> MagicMock:
    """Mock market data source returning sample_snapshot."""
    source = MagicMock()
    source.fetch_ranked_assets = AsyncMock(return_value=sample_snapshot)
    source.close = AsyncMock()
    return source


# ============================================================
# Factory Fixtures
# ============================================================
@pytest.fixture
def ticker_factory():
    """Build MarketTicker objects from strings."""
    return make_ticker


@pytest.fixture
def buy_result_factory():
    """Build filled market-buy OrderResults."""
    return make_buy_result


@pytest.fixture
def sell_result_factory():
    """Build accepted limit-sell OrderResults."""
    return make_sell_result
