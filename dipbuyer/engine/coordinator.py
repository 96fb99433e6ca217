"""
Trading cycle coordinator.

One cycle: snapshot -> classify -> buy every buy-zone asset in order.
Cycles never overlap; the periodic loop waits for one to finish before
sleeping until the next.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from ..alerts.base import AlertService, NullAlertService
from ..config.schema import TradingConfig
from ..exchanges.base import ExchangeAdapter
from ..market_data.base import MarketDataError, MarketDataSource
from ..utils.logging import bind_context, clear_context, get_logger
from .position_manager import PositionManager
from .signals import (
    ClassifiedTicker,
    SignalZone,
    buy_candidates,
    classify_snapshot,
    summarize,
)
from .state import Position, TradingState

logger = get_logger(__name__)


class CycleError(Exception):
    """Raised when a cycle is aborted before any buy was attempted."""
    pass


class EngineState(Enum):
    """Scheduler state."""
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


@dataclass
class CycleReport:
    """Outcome of one trading cycle."""
    cycle: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    ticker_count: int = 0
    zone_counts: Dict[SignalZone, int] = field(default_factory=dict)
    opened: List[Position] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)  # buy order rejected or errored
    skipped_for_budget: List[str] = field(default_factory=list)
    skipped_for_cap: List[str] = field(default_factory=list)
    protected_on_retry: int = 0

    @property
    def buy_signals(self) -> int:
        return self.zone_counts.get(SignalZone.BUY, 0)


@dataclass
class EngineStatus:
    """Current engine status."""
    state: EngineState
    cycles_completed: int
    total_budget: str
    available_budget: str
    invested: str
    portfolio_value: str
    open_positions: int
    unprotected_positions: int
    last_cycle_time: Optional[datetime]
    last_error: Optional[str] = None


class TradingCoordinator:
    """
    Runs trading cycles.

    Owns the position manager for one TradingState and drives it with
    fresh market snapshots.
    """

    def __init__(
        self,
        config: TradingConfig,
        market_data: MarketDataSource,
        exchange: ExchangeAdapter,
        state: TradingState,
        snapshot_size: int = 20,
        exclude_stablecoins: bool = True,
        alerts: Optional[AlertService] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize trading coordinator.

        Args:
            config: Trading configuration
            market_data: Snapshot source
            exchange: Connected order execution gateway
            state: Budget and positions
            snapshot_size: Ranked assets requested per cycle
            exclude_stablecoins: Ask the source to drop stablecoins
            alerts: Optional alert service
            sleep: Awaitable sleep for settlement, retry and interval waits
        """
        self.config = config
        self.market_data = market_data
        self.exchange = exchange
        self.state = state
        self.snapshot_size = snapshot_size
        self.exclude_stablecoins = exclude_stablecoins
        self.alerts = alerts or NullAlertService()
        self._sleep = sleep or asyncio.sleep

        self.position_manager = PositionManager(state, exchange, config, sleep=self._sleep)

        self._state = EngineState.STOPPED
        self._cycle_count = 0
        self._cycles_completed = 0
        self._last_cycle_time: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._main_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._state == EngineState.RUNNING

    # ==================== Cycle ====================

    async def run_cycle(self) -> CycleReport:
        """
        Run one full decision pass.

        Returns:
            CycleReport for the pass

        Raises:
            CycleError: If the market snapshot could not be fetched; nothing
                was classified or bought
        """
        self._cycle_count += 1
        report = CycleReport(cycle=self._cycle_count, started_at=datetime.now(timezone.utc))
        bind_context(cycle=self._cycle_count)

        try:
            logger.info(
                "cycle_started",
                available_budget=str(self.state.available_budget),
                open_positions=len(self.state.positions),
            )

            if self.config.reattempt_sell_orders and self.state.unprotected_positions():
                report.protected_on_retry = await self.position_manager.protect_unmonitored_positions()

            try:
                snapshot = await self.market_data.fetch_ranked_assets(
                    self.snapshot_size,
                    exclude_stablecoins=self.exclude_stablecoins,
                )
            except MarketDataError as e:
                self._last_error = str(e)
                logger.error("snapshot_failed", error=str(e))
                await self._send_alert("WARNING", "Cycle Failed", f"Market data unavailable: {e}")
                raise CycleError(f"Failed to fetch market snapshot: {e}") from e

            self.state.replace_watch_list(snapshot)
            report.ticker_count = len(snapshot)

            classified = classify_snapshot(snapshot)
            report.zone_counts = summarize(classified)
            self._log_signals(classified)

            for ticker in buy_candidates(classified):
                await self._process_buy(ticker, report)

            report.finished_at = datetime.now(timezone.utc)
            self._cycles_completed += 1
            self._last_cycle_time = report.finished_at
            self._last_error = None

            logger.info(
                "cycle_completed",
                tickers=report.ticker_count,
                buy_signals=report.buy_signals,
                watch_signals=report.zone_counts.get(SignalZone.WATCH, 0),
                opened=len(report.opened),
                failed=len(report.failed),
                skipped_for_budget=len(report.skipped_for_budget),
                available_budget=str(self.state.available_budget),
            )
            return report
        finally:
            clear_context()

    async def _process_buy(self, ticker, report: CycleReport) -> None:
        """Run execute_buy for one buy-zone ticker and record the outcome."""
        cap = self.config.max_buys_per_cycle
        if cap is not None and len(report.opened) >= cap:
            logger.info("buy_cap_reached", symbol=ticker.symbol, cap=cap)
            report.skipped_for_cap.append(ticker.symbol)
            return

        affordable = self.state.can_afford()
        try:
            position = await self.position_manager.execute_buy(ticker)
        except Exception as e:
            logger.exception("buy_unexpected_error", symbol=ticker.symbol, error=str(e))
            report.failed.append(ticker.symbol)
            return

        if position is None:
            if affordable:
                report.failed.append(ticker.symbol)
            else:
                report.skipped_for_budget.append(ticker.symbol)
            return

        report.opened.append(position)
        await self._send_alert(
            "INFO",
            "Position Opened",
            f"{position.symbol}: {position.quantity} @ {position.buy_price}\n"
            f"Drop: {position.drop_percentage}%\n"
            f"Target: {position.target_sell_price}\n"
            f"Budget left: {self.state.available_budget}",
        )

        if position.needs_manual_monitoring:
            await self._send_alert(
                "WARNING",
                "Manual Monitoring Needed",
                f"No take-profit order for position {position.id} ({position.symbol}).",
            )

    def _log_signals(self, classified: List[ClassifiedTicker]) -> None:
        for item in classified:
            ticker = item.ticker
            fields = dict(symbol=ticker.symbol, change_24h=str(ticker.percent_change_24h))

            if item.zone == SignalZone.SKIP:
                logger.info("skip_safety_limit", **fields)
            elif item.zone == SignalZone.RISKY:
                logger.info("risky_drop", **fields)
            elif item.zone == SignalZone.BUY:
                logger.info("buy_signal", last_price=str(ticker.last_price), **fields)
            elif item.zone == SignalZone.WATCH:
                logger.info("watch_signal", **fields)
            else:
                logger.debug("hold_signal", **fields)

    # ==================== Scheduler ====================

    async def start(self) -> None:
        """Start the periodic loop; the first cycle runs immediately."""
        if self._state != EngineState.STOPPED:
            logger.warning("engine_not_stopped", current_state=self._state.value)
            return

        self._state = EngineState.RUNNING
        self._main_task = asyncio.create_task(self._main_loop())
        logger.info(
            "engine_started",
            interval_minutes=self.config.cycle_interval_minutes,
            investment_amount=str(self.state.investment_amount),
            total_budget=str(self.state.total_budget),
        )

    async def stop(self) -> None:
        """Stop the loop, aborting any in-flight waits."""
        if self._state != EngineState.RUNNING:
            return

        logger.info("engine_stopping")
        self._state = EngineState.STOPPING

        if self._main_task:
            self._main_task.cancel()
            try:
                await self._main_task
            except asyncio.CancelledError:
                pass
            self._main_task = None

        self._state = EngineState.STOPPED
        logger.info("engine_stopped")

    async def _main_loop(self) -> None:
        interval = self.config.cycle_interval_minutes * 60

        while self._state == EngineState.RUNNING:
            try:
                await self.run_cycle()
            except CycleError:
                # already logged and alerted; the next tick retries the whole cycle
                pass
            except Exception as e:
                self._last_error = str(e)
                logger.exception("cycle_error", error=str(e))

            await self._sleep(interval)

    def get_status(self) -> EngineStatus:
        """Get current engine status."""
        return EngineStatus(
            state=self._state,
            cycles_completed=self._cycles_completed,
            total_budget=str(self.state.total_budget),
            available_budget=str(self.state.available_budget),
            invested=str(self.state.invested_amount),
            portfolio_value=str(self.state.portfolio_value),
            open_positions=len(self.state.positions),
            unprotected_positions=len(self.state.unprotected_positions()),
            last_cycle_time=self._last_cycle_time,
            last_error=self._last_error,
        )

    async def _send_alert(self, severity: str, title: str, message: str) -> None:
        """Send an alert; failures are logged only."""
        try:
            if severity == "WARNING":
                await self.alerts.send_warning(title, message)
            elif severity == "CRITICAL":
                await self.alerts.send_critical(title, message)
            else:
                await self.alerts.send_info(title, message)
        except Exception as e:
            logger.error("alert_send_failed", error=str(e))
