"""
In-memory trading state.

Budget, positions and the position id counter live in one explicitly
owned aggregate. Nothing is persisted; state lasts for the process.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from ..market_data.base import MarketTicker


class InsufficientBudgetError(Exception):
    """Raised when a commit would take the budget below zero."""
    pass


@dataclass
class Position:
    """
    An open spot position created from a confirmed buy fill.

    target_sell_price starts at buy_price * take-profit multiplier and is
    replaced by the tick-rounded price once a sell order is accepted.
    """
    id: int
    symbol: str
    buy_price: Decimal
    quantity: Decimal
    invested_amount: Decimal
    target_sell_price: Decimal
    buy_time: datetime
    drop_percentage: Decimal
    current_value: Decimal
    sell_order_id: Optional[str] = None
    has_active_sell_order: bool = False

    @property
    def needs_manual_monitoring(self) -> bool:
        """True while no protective sell order is on the book."""
        return not self.has_active_sell_order

    def attach_sell_order(self, order_id: str, price: Decimal) -> None:
        """Record an accepted take-profit order."""
        self.sell_order_id = order_id
        self.has_active_sell_order = True
        self.target_sell_price = price


@dataclass
class TradingState:
    """
    Budget and positions for one bot instance.

    Invariant: available_budget == total_budget - investment_amount * len(positions)
    and available_budget is never negative. Units reserved for buys in
    flight are held in reserved_budget until committed or released.
    """
    total_budget: Decimal
    investment_amount: Decimal
    available_budget: Optional[Decimal] = None
    reserved_budget: Decimal = Decimal("0")
    positions: List[Position] = field(default_factory=list)
    watch_list: List[MarketTicker] = field(default_factory=list)
    next_position_id: int = 1
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.available_budget is None:
            self.available_budget = self.total_budget
        if self.investment_amount <= 0:
            raise ValueError("investment_amount must be positive")
        if self.available_budget < 0:
            raise ValueError("available_budget cannot be negative")
        self._commit_lock = asyncio.Lock()

    def can_afford(self) -> bool:
        """True if one more investment unit is available and not reserved."""
        return self.available_budget - self.reserved_budget >= self.investment_amount

    async def reserve_unit(self) -> bool:
        """
        Reserve one investment unit for a buy about to be submitted.

        Returns:
            False when the unreserved budget is below one unit
        """
        async with self._commit_lock:
            if not self.can_afford():
                return False
            self.reserved_budget += self.investment_amount
            return True

    async def release_unit(self) -> None:
        """Give back a reservation whose buy did not fill."""
        async with self._commit_lock:
            self.reserved_budget = max(
                self.reserved_budget - self.investment_amount, Decimal("0")
            )

    async def commit_position(self, position: Position, reserved: bool = False) -> Position:
        """
        Append a position, deduct one investment unit and advance the id counter.

        The three mutations happen together under a lock. With reserved=True
        the caller's reservation is consumed; otherwise the unreserved budget
        is re-checked first. The position's id is assigned here.

        Raises:
            InsufficientBudgetError: If the budget no longer covers one unit
        """
        async with self._commit_lock:
            if reserved:
                if self.reserved_budget < self.investment_amount:
                    raise InsufficientBudgetError("No reservation held for this position")
                self.reserved_budget -= self.investment_amount
            elif not self.can_afford():
                raise InsufficientBudgetError(
                    f"Available {self.available_budget} < required {self.investment_amount}"
                )

            position.id = self.next_position_id
            self.positions.append(position)
            self.available_budget -= self.investment_amount
            self.next_position_id += 1

        return position

    def replace_watch_list(self, tickers: List[MarketTicker]) -> None:
        self.watch_list = list(tickers)

    @property
    def portfolio_value(self) -> Decimal:
        """Sum of the last known value of every position."""
        return sum((p.current_value for p in self.positions), Decimal("0"))

    @property
    def invested_amount(self) -> Decimal:
        return sum((p.invested_amount for p in self.positions), Decimal("0"))

    def unprotected_positions(self) -> List[Position]:
        """Positions without an active take-profit order."""
        return [p for p in self.positions if p.needs_manual_monitoring]

    def get_position(self, position_id: int) -> Optional[Position]:
        for position in self.positions:
            if position.id == position_id:
                return position
        return None
