"""
Unit tests for the position manager.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from dipbuyer.engine.position_manager import PositionManager
from dipbuyer.engine.state import TradingState
from dipbuyer.exchanges.base import ExchangeError, SymbolNotFoundError
from dipbuyer.exchanges.types import Fill, SymbolRules, TimeInForce


class TestExecuteBuy:
    """Tests for PositionManager.execute_buy()."""

    @pytest.fixture
    def manager(self, state, mock_exchange, trading_config, fake_sleep) -> PositionManager:
        return PositionManager(state, mock_exchange, trading_config, sleep=fake_sleep)

    @pytest.mark.asyncio
    async def test_successful_buy(self, manager, state, mock_exchange, ticker_factory, fake_sleep):
        """Test buy, settlement wait, rounded take-profit and commit."""
        ticker = ticker_factory("SOLUSDT", "-7.3", "141")

        position = await manager.execute_buy(ticker)

        assert position is not None
        assert position.id == 1
        assert position.symbol == "SOLUSDT"
        assert position.buy_price == Decimal("140")
        assert position.quantity == Decimal("0.05")
        assert position.invested_amount == Decimal("7")
        assert position.drop_percentage == Decimal("-7.3")
        assert position.target_sell_price == Decimal("147.00")
        assert position.sell_order_id == "sell-1"
        assert position.has_active_sell_order is True

        mock_exchange.market_buy.assert_awaited_once_with("SOLUSDT", Decimal("7"))
        mock_exchange.limit_sell.assert_awaited_once_with(
            "SOLUSDT", Decimal("0.05"), Decimal("147.00"), TimeInForce.GTC
        )
        fake_sleep.assert_awaited_once_with(3.0)

        assert state.available_budget == Decimal("13")
        assert state.positions == [position]
        assert state.next_position_id == 2

    @pytest.mark.asyncio
    async def test_average_price_from_multiple_fills(
        self, manager, mock_exchange, ticker_factory, buy_result_factory
    ):
        """Test volume-weighted average over several fills."""
        mock_exchange.market_buy = AsyncMock(return_value=buy_result_factory(
            executed_qty="3",
            fills=[
                Fill(price=Decimal("2.00"), qty=Decimal("1")),
                Fill(price=Decimal("2.30"), qty=Decimal("2")),
            ],
        ))

        position = await manager.execute_buy(ticker_factory("SOLUSDT", "-6", "2.5"))

        assert position.buy_price == Decimal("2.2")
        # 2.2 * 1.05 = 2.31
        assert position.target_sell_price == Decimal("2.31")

    @pytest.mark.asyncio
    async def test_fallback_to_snapshot_price_without_fills(
        self, mock_exchange, trading_config, fake_sleep, ticker_factory, buy_result_factory
    ):
        """Test an empty fills list falls back to the snapshot price."""
        state = TradingState(total_budget=Decimal("7"), investment_amount=Decimal("7"))
        manager = PositionManager(state, mock_exchange, trading_config, sleep=fake_sleep)
        mock_exchange.market_buy = AsyncMock(
            return_value=buy_result_factory(symbol="ABCUSDT", executed_qty="0.7", fills=[])
        )

        position = await manager.execute_buy(ticker_factory("ABCUSDT", "-7.0", "10.0"))

        assert position.buy_price == Decimal("10.0")
        assert position.target_sell_price == Decimal("10.50")
        assert position.quantity == Decimal("0.7")
        assert state.available_budget == Decimal("0")
        mock_exchange.market_buy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insufficient_budget_makes_no_calls(
        self, mock_exchange, trading_config, fake_sleep, ticker_factory
    ):
        """Test the budget guard stops the buy before any exchange call."""
        state = TradingState(total_budget=Decimal("5"), investment_amount=Decimal("7"))
        manager = PositionManager(state, mock_exchange, trading_config, sleep=fake_sleep)

        result = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert result is None
        mock_exchange.market_buy.assert_not_awaited()
        mock_exchange.get_symbol_rules.assert_not_awaited()
        mock_exchange.limit_sell.assert_not_awaited()
        assert state.available_budget == Decimal("5")
        assert state.positions == []

    @pytest.mark.asyncio
    async def test_buy_error_changes_nothing(self, manager, state, mock_exchange, ticker_factory):
        """Test a rejected market buy leaves the state untouched."""
        mock_exchange.market_buy = AsyncMock(side_effect=ExchangeError("Filter failure: NOTIONAL"))

        result = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert result is None
        mock_exchange.limit_sell.assert_not_awaited()
        assert state.available_budget == Decimal("20")
        assert state.positions == []
        assert state.next_position_id == 1

    @pytest.mark.asyncio
    async def test_zero_quantity_is_a_failed_buy(
        self, manager, state, mock_exchange, ticker_factory, buy_result_factory
    ):
        """Test an order with nothing executed is not recorded."""
        mock_exchange.market_buy = AsyncMock(
            return_value=buy_result_factory(executed_qty="0", fills=[])
        )

        result = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert result is None
        assert state.available_budget == Decimal("20")
        mock_exchange.limit_sell.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rules_failure_keeps_position(self, manager, state, mock_exchange, ticker_factory):
        """Test a failed rules lookup still records the bought position."""
        mock_exchange.get_symbol_rules = AsyncMock(side_effect=SymbolNotFoundError("SOLUSDT"))

        position = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert position is not None
        assert position.needs_manual_monitoring is True
        assert position.sell_order_id is None
        assert position.target_sell_price == Decimal("147.00")
        mock_exchange.limit_sell.assert_not_awaited()
        assert state.available_budget == Decimal("13")
        assert state.positions == [position]

    @pytest.mark.asyncio
    async def test_sell_retries_exhausted(
        self, manager, state, mock_exchange, ticker_factory, fake_sleep
    ):
        """Test three failed sell attempts degrade to manual monitoring."""
        mock_exchange.limit_sell = AsyncMock(side_effect=ExchangeError("LOT_SIZE"))

        position = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert mock_exchange.limit_sell.await_count == 3
        # settlement wait + two retry waits
        assert [c.args[0] for c in fake_sleep.await_args_list] == [3.0, 2.0, 2.0]
        assert position.needs_manual_monitoring is True
        assert state.available_budget == Decimal("13")
        assert len(state.positions) == 1

    @pytest.mark.asyncio
    async def test_sell_succeeds_on_retry(
        self, manager, mock_exchange, ticker_factory, sell_result_factory
    ):
        """Test a transient sell failure is retried."""
        mock_exchange.limit_sell = AsyncMock(
            side_effect=[ExchangeError("timeout"), sell_result_factory(order_id="sell-2")]
        )

        position = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert mock_exchange.limit_sell.await_count == 2
        assert position.sell_order_id == "sell-2"
        assert position.has_active_sell_order is True

    @pytest.mark.asyncio
    async def test_empty_tick_size_sends_unrounded_price(
        self, manager, mock_exchange, ticker_factory, buy_result_factory
    ):
        """Test a missing tick size leaves the target price as computed."""
        mock_exchange.get_symbol_rules = AsyncMock(
            return_value=SymbolRules(symbol="SOLUSDT", step_size="", tick_size="")
        )
        mock_exchange.market_buy = AsyncMock(return_value=buy_result_factory(
            executed_qty="0.05",
            fills=[Fill(price=Decimal("142.37"), qty=Decimal("0.05"))],
        ))

        position = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        sent_price = mock_exchange.limit_sell.await_args.args[2]
        assert sent_price == Decimal("149.4885")
        assert position.target_sell_price == Decimal("149.4885")

    @pytest.mark.asyncio
    async def test_failed_buy_releases_reservation(
        self, manager, state, mock_exchange, ticker_factory
    ):
        """Test a rejected buy gives its reserved unit back."""
        mock_exchange.market_buy = AsyncMock(side_effect=ExchangeError("rejected"))

        await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert state.reserved_budget == Decimal("0")
        assert state.can_afford() is True

    @pytest.mark.asyncio
    async def test_unexpected_buy_error_releases_reservation(
        self, manager, state, mock_exchange, ticker_factory
    ):
        """Test a non-exchange error propagates without leaking the reservation."""
        mock_exchange.market_buy = AsyncMock(side_effect=RuntimeError("bad payload"))

        with pytest.raises(RuntimeError):
            await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert state.reserved_budget == Decimal("0")
        assert state.available_budget == Decimal("20")

    @pytest.mark.asyncio
    async def test_concurrent_buys_share_last_unit(
        self, mock_exchange, trading_config, fake_sleep, ticker_factory, buy_result_factory
    ):
        """Test two concurrent buys with budget for one submit a single order."""
        state = TradingState(total_budget=Decimal("7"), investment_amount=Decimal("7"))
        manager = PositionManager(state, mock_exchange, trading_config, sleep=fake_sleep)

        async def slow_buy(symbol, amount):
            await asyncio.sleep(0)
            return buy_result_factory(symbol=symbol)

        mock_exchange.market_buy = AsyncMock(side_effect=slow_buy)

        results = await asyncio.gather(
            manager.execute_buy(ticker_factory("SOLUSDT", "-7.3")),
            manager.execute_buy(ticker_factory("AVAXUSDT", "-6.0")),
        )

        opened = [r for r in results if r is not None]
        assert len(opened) == 1
        assert results.count(None) == 1
        mock_exchange.market_buy.assert_awaited_once()
        mock_exchange.limit_sell.assert_awaited_once()
        assert state.positions == opened
        assert state.available_budget == Decimal("0")
        assert state.reserved_budget == Decimal("0")

    @pytest.mark.asyncio
    async def test_cancelled_settlement_still_records_position(
        self, manager, state, mock_exchange, ticker_factory
    ):
        """Test a filled buy is committed even if the settlement wait is cancelled."""
        manager._sleep = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))

        assert len(state.positions) == 1
        assert state.positions[0].needs_manual_monitoring is True
        assert state.available_budget == Decimal("13")
        assert state.reserved_budget == Decimal("0")
        mock_exchange.limit_sell.assert_not_awaited()


class TestProtectUnmonitoredPositions:
    """Tests for PositionManager.protect_unmonitored_positions()."""

    @pytest.mark.asyncio
    async def test_reattempts_only_unprotected(
        self, state, mock_exchange, trading_config, fake_sleep, ticker_factory
    ):
        """Test positions without a sell order get a new attempt."""
        manager = PositionManager(state, mock_exchange, trading_config, sleep=fake_sleep)

        mock_exchange.get_symbol_rules = AsyncMock(side_effect=SymbolNotFoundError("down"))
        unprotected = await manager.execute_buy(ticker_factory("SOLUSDT", "-7.3"))
        assert unprotected.needs_manual_monitoring is True

        mock_exchange.limit_sell.reset_mock()
        mock_exchange.get_symbol_rules = AsyncMock(
            return_value=SymbolRules(symbol="SOLUSDT", step_size="0.001", tick_size="0.01")
        )

        protected = await manager.protect_unmonitored_positions()

        assert protected == 1
        assert unprotected.has_active_sell_order is True
        assert state.unprotected_positions() == []
        assert state.available_budget == Decimal("13")
        mock_exchange.market_buy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_to_protect(self, state, mock_exchange, trading_config, fake_sleep):
        """Test no exchange calls without unprotected positions."""
        manager = PositionManager(state, mock_exchange, trading_config, sleep=fake_sleep)

        assert await manager.protect_unmonitored_positions() == 0
        mock_exchange.get_symbol_rules.assert_not_awaited()
