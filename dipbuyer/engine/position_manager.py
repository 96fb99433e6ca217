"""
Position lifecycle manager.

Opens fixed-size positions with a market buy and protects each one
with a take-profit limit sell.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from ..config.schema import TradingConfig
from ..exchanges.base import ExchangeAdapter, ExchangeError
from ..exchanges.types import OrderResult, TimeInForce
from ..market_data.base import MarketTicker
from ..utils.logging import get_logger
from .pricing import round_to_tick, target_sell_price
from .retry import retry_async
from .state import Position, TradingState

logger = get_logger(__name__)


class PositionManager:
    """
    Opens positions and places their take-profit orders.

    Flow per buy:
    1. Budget guard: reserve one unit under the state lock (no side effects
       when short of one investment unit)
    2. Market buy for one investment unit of quote currency
    3. Average fill price from fills, falling back to the snapshot price
    4. Settlement wait, symbol rules, tick rounding
    5. Limit sell with fixed-delay retries
    6. Commit position, budget and id counter together

    Failures after the buy never undo it: the position is kept without a
    sell order and flagged for manual monitoring.
    """

    def __init__(
        self,
        state: TradingState,
        exchange: ExchangeAdapter,
        config: TradingConfig,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize position manager.

        Args:
            state: Budget and positions owned by this bot instance
            exchange: Connected order execution gateway
            config: Trading configuration
            sleep: Awaitable sleep used for settlement and retry waits
        """
        self.state = state
        self.exchange = exchange
        self.config = config
        self._sleep = sleep or asyncio.sleep

    async def execute_buy(self, ticker: MarketTicker) -> Optional[Position]:
        """
        Open one position on ticker.symbol.

        One investment unit is reserved before the market buy, so concurrent
        callers cannot both spend the last unit. The reservation is released
        if the buy fails or fills nothing; a filled buy is always committed.

        Args:
            ticker: Snapshot entry in the buy zone

        Returns:
            The committed Position, or None when the budget guard stopped the
            buy or the buy order failed (no state changed in either case)
        """
        unit = self.state.investment_amount

        if not await self.state.reserve_unit():
            logger.info(
                "insufficient_funds",
                symbol=ticker.symbol,
                available=str(self.state.available_budget),
                reserved=str(self.state.reserved_budget),
                required=str(unit),
            )
            return None

        logger.info(
            "executing_buy",
            symbol=ticker.symbol,
            amount=str(unit),
            last_price=str(ticker.last_price),
            change_24h=str(ticker.percent_change_24h),
        )

        try:
            order = await self.exchange.market_buy(ticker.symbol, unit)
        except ExchangeError as e:
            logger.error("buy_order_failed", symbol=ticker.symbol, error=str(e))
            await self.state.release_unit()
            return None
        except BaseException:
            await self.state.release_unit()
            raise

        quantity = order.executed_qty if order.executed_qty > 0 else order.filled_qty
        if quantity <= 0:
            logger.error(
                "buy_order_not_filled",
                symbol=ticker.symbol,
                order_id=order.order_id,
                status=order.status.value,
            )
            await self.state.release_unit()
            return None

        buy_price = self._average_price(order, ticker)

        position = Position(
            id=0,  # assigned on commit
            symbol=ticker.symbol,
            buy_price=buy_price,
            quantity=quantity,
            invested_amount=unit,
            target_sell_price=target_sell_price(buy_price, self.config.take_profit_multiplier),
            buy_time=datetime.now(timezone.utc),
            drop_percentage=ticker.percent_change_24h,
            current_value=buy_price * quantity,
        )

        try:
            logger.info(
                "waiting_for_settlement",
                symbol=ticker.symbol,
                seconds=self.config.settlement_delay_seconds,
            )
            await self._sleep(self.config.settlement_delay_seconds)

            await self.place_take_profit(position)
        finally:
            # the buy has filled; record it even if the wait was cancelled
            await self.state.commit_position(position, reserved=True)

        logger.info(
            "position_opened",
            position_id=position.id,
            symbol=position.symbol,
            buy_order_id=order.order_id,
            quantity=str(position.quantity),
            buy_price=str(position.buy_price),
            target_sell_price=str(position.target_sell_price),
            sell_order_id=position.sell_order_id,
            available_budget=str(self.state.available_budget),
        )

        return position

    def _average_price(self, order: OrderResult, ticker: MarketTicker) -> Decimal:
        """Volume-weighted fill price, or the snapshot price without fills."""
        average = order.average_fill_price
        if average is None or average <= 0:
            logger.warning(
                "fill_price_fallback",
                symbol=ticker.symbol,
                order_id=order.order_id,
                fallback_price=str(ticker.last_price),
            )
            return ticker.last_price
        return average

    async def place_take_profit(self, position: Position) -> bool:
        """
        Place the limit sell protecting a position.

        Looks up the tick size, rounds the target price and retries the
        order with a fixed delay. On success the order id and rounded
        price are attached to the position.

        Returns:
            True if a sell order is now active, False if the position needs
            manual monitoring
        """
        try:
            rules = await self.exchange.get_symbol_rules(position.symbol)
        except Exception as e:
            logger.warning(
                "symbol_rules_unavailable",
                symbol=position.symbol,
                error=str(e),
                action="manual_monitoring",
            )
            return False

        sell_price = round_to_tick(position.target_sell_price, rules.tick_size)
        logger.info(
            "sell_price_rounded",
            symbol=position.symbol,
            original=str(position.target_sell_price),
            rounded=str(sell_price),
            tick_size=rules.tick_size,
        )

        async def _sell() -> OrderResult:
            return await self.exchange.limit_sell(
                position.symbol,
                position.quantity,
                sell_price,
                TimeInForce.GTC,
            )

        try:
            order = await retry_async(
                _sell,
                attempts=self.config.sell_order_attempts,
                delay=self.config.sell_retry_delay_seconds,
                description=f"limit_sell:{position.symbol}",
                sleep=self._sleep,
            )
        except Exception as e:
            logger.warning(
                "take_profit_not_placed",
                symbol=position.symbol,
                attempts=self.config.sell_order_attempts,
                error=str(e),
                action="manual_monitoring",
            )
            return False

        position.attach_sell_order(order.order_id, sell_price)
        logger.info(
            "take_profit_placed",
            symbol=position.symbol,
            sell_order_id=order.order_id,
            price=str(sell_price),
        )
        return True

    async def protect_unmonitored_positions(self) -> int:
        """
        Retry take-profit placement for positions without a sell order.

        Returns:
            Number of positions that are now protected
        """
        protected = 0
        for position in self.state.unprotected_positions():
            logger.info(
                "reattempting_take_profit",
                position_id=position.id,
                symbol=position.symbol,
            )
            if await self.place_take_profit(position):
                protected += 1
        return protected
