"""
Dip buyer - main entry point.

Loads configuration, connects to CoinMarketCap and Binance, seeds the
budget from the exchange balance and runs trading cycles.
"""

import argparse
import asyncio
import signal
import sys
from decimal import Decimal
from typing import Optional

from .alerts import AlertService, create_alert_service
from .config import Config, load_config
from .engine import TradingCoordinator, TradingState
from .engine.coordinator import CycleError
from .exchanges import ExchangeAdapter, create_exchange
from .market_data import CoinMarketCapClient, MarketDataSource
from .utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


class StartupError(Exception):
    """Raised when the bot cannot start safely."""
    pass


class Application:
    """Main application class managing all components."""

    def __init__(self, config: Config):
        self.config = config
        self._shutdown_event = asyncio.Event()
        self._running = False

        # Components (initialized in start())
        self.exchange: Optional[ExchangeAdapter] = None
        self.market_data: Optional[MarketDataSource] = None
        self.alert_service: Optional[AlertService] = None
        self.state: Optional[TradingState] = None
        self.coordinator: Optional[TradingCoordinator] = None

    async def setup(self) -> None:
        """Connect collaborators and build the trading state."""
        missing = self.config.missing_credentials()
        if missing:
            raise StartupError(f"Missing credentials: {', '.join(missing)}")

        trading = self.config.trading

        self.alert_service = create_alert_service(self.config.telegram)

        self.exchange = create_exchange(self.config.exchange, trading.quote_currency)
        await self.exchange.connect()

        self.market_data = CoinMarketCapClient.from_config(
            self.config.market_data,
            trading.quote_currency,
        )

        budget = await self._initial_budget()
        self.state = TradingState(
            total_budget=budget,
            investment_amount=trading.investment_amount,
        )

        self.coordinator = TradingCoordinator(
            config=trading,
            market_data=self.market_data,
            exchange=self.exchange,
            state=self.state,
            snapshot_size=self.config.market_data.snapshot_size,
            exclude_stablecoins=self.config.market_data.exclude_stablecoins,
            alerts=self.alert_service,
        )

        logger.info(
            "application_ready",
            exchange=self.exchange.name,
            testnet=self.exchange.is_testnet,
            budget=str(budget),
            investment_amount=str(trading.investment_amount),
            take_profit_multiplier=str(trading.take_profit_multiplier),
        )

    async def _initial_budget(self) -> Decimal:
        """Configured budget, or the free quote balance on the exchange."""
        trading = self.config.trading

        if trading.budget is not None:
            budget = trading.budget
            logger.info("budget_from_config", budget=str(budget))
        else:
            balance = await self.exchange.get_balance(trading.quote_currency)
            budget = balance.free
            logger.info(
                "budget_from_exchange",
                currency=trading.quote_currency,
                free=str(balance.free),
                total=str(balance.total),
            )

        if budget < trading.investment_amount:
            raise StartupError(
                f"Insufficient {trading.quote_currency} balance ({budget}). "
                f"Need at least {trading.investment_amount} for one trade."
            )

        if budget < trading.min_balance_warning:
            logger.warning(
                "low_balance",
                budget=str(budget),
                threshold=str(trading.min_balance_warning),
            )

        return budget

    async def start(self) -> None:
        """Set up and start the periodic trading loop."""
        await self.setup()
        await self.coordinator.start()
        self._running = True

        await self.alert_service.send_info(
            "Bot Started",
            f"Budget: {self.state.total_budget} {self.config.trading.quote_currency}\n"
            f"Per trade: {self.state.investment_amount}\n"
            f"Cycle: every {self.config.trading.cycle_interval_minutes:g} min",
        )

    async def run_once(self) -> None:
        """Set up and run a single cycle."""
        await self.setup()
        self._running = True
        report = await self.coordinator.run_cycle()
        logger.info(
            "single_cycle_finished",
            opened=len(report.opened),
            available_budget=str(self.state.available_budget),
        )

    async def stop(self) -> None:
        """Gracefully stop all components."""
        logger.info("stopping_application")
        self._running = False

        if self.coordinator:
            await self.coordinator.stop()
            status = self.coordinator.get_status()
            logger.info(
                "final_status",
                cycles=status.cycles_completed,
                open_positions=status.open_positions,
                portfolio_value=status.portfolio_value,
                unprotected_positions=status.unprotected_positions,
                available_budget=status.available_budget,
            )

        if self.market_data:
            await self.market_data.close()

        if self.exchange and self.exchange.is_connected:
            try:
                await self.exchange.disconnect()
            except Exception as e:
                logger.warning("exchange_disconnect_failed", error=str(e))

        if self.alert_service:
            await self.alert_service.close()

        logger.info("application_stopped")

    async def run_forever(self) -> None:
        """Run until shutdown signal received."""
        await self._shutdown_event.wait()

    def trigger_shutdown(self) -> None:
        """Trigger graceful shutdown."""
        self._shutdown_event.set()


def setup_signal_handlers(app: Application, loop: asyncio.AbstractEventLoop) -> None:
    """Set up signal handlers for graceful shutdown."""

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        app.trigger_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


async def async_main(command: str, config_path: str, env_file: Optional[str]) -> int:
    """Async main entry point. Returns the process exit code."""
    try:
        config = load_config(config_path, env_file=env_file, allow_missing=True)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        logger.error("config_error", error=str(e))
        return 1

    setup_logging(
        level=config.logging.level,
        json_output=config.logging.json_output,
        log_file=config.logging.file,
    )

    app = Application(config)

    try:
        if command == "cycle":
            await app.run_once()
            return 0

        loop = asyncio.get_running_loop()
        setup_signal_handlers(app, loop)

        await app.start()
        await app.run_forever()
        return 0
    except StartupError as e:
        logger.error("startup_failed", error=str(e))
        return 1
    except CycleError as e:
        logger.error("cycle_failed", error=str(e))
        return 1
    finally:
        await app.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dipbuyer",
        description=(
            "Dip-buying bot: buys CoinMarketCap top assets that dropped 5-10% "
            "in 24h on Binance and places a +5% take-profit order."
        ),
    )
    parser.add_argument(
        "command",
        choices=["start", "cycle"],
        help="start: run a cycle now and then on a fixed interval (REAL MONEY); "
             "cycle: run a single cycle and exit",
    )
    parser.add_argument(
        "-c", "--config",
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml, optional)",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file with API keys (default: .env)",
    )
    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    # Basic logging until the config is loaded
    setup_logging(level="INFO")

    logger.info("starting", command=args.command, config_path=args.config)

    try:
        exit_code = asyncio.run(async_main(args.command, args.config, args.env_file))
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")
        exit_code = 0
    except Exception as e:
        logger.exception("fatal_error", error=str(e))
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
