"""
Pydantic configuration models for the trading bot.

All configuration is validated at startup so a bad value stops the
bot before any order is sent.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

DEFAULT_STABLECOINS = [
    "USDT", "USDC", "DAI", "BUSD", "TUSD", "FDUSD", "USDD",
    "USDP", "PYUSD", "USDE", "USDS", "GUSD", "FRAX", "LUSD",
]


class ExchangeConfig(BaseModel):
    """Order execution venue credentials."""

    name: str = Field(default="binance")
    api_key: SecretStr = Field(default=SecretStr(""))
    api_secret: SecretStr = Field(default=SecretStr(""))
    testnet: bool = False

    # Per-request timeout handed to ccxt
    timeout_ms: int = Field(default=10000, ge=1000, le=60000)

    def has_credentials(self) -> bool:
        return bool(self.api_key.get_secret_value() and self.api_secret.get_secret_value())


class MarketDataConfig(BaseModel):
    """CoinMarketCap market data settings."""

    api_key: SecretStr = Field(default=SecretStr(""))
    base_url: str = Field(default="https://pro-api.coinmarketcap.com")

    # Ranked assets kept per snapshot, after stablecoins are removed
    snapshot_size: int = Field(default=20, ge=1, le=200)
    # Listings requested so enough remain after filtering
    fetch_limit: int = Field(default=50, ge=1, le=5000)

    exclude_stablecoins: bool = True
    stablecoins: List[str] = Field(default_factory=lambda: list(DEFAULT_STABLECOINS))

    request_timeout_seconds: float = Field(default=10.0, gt=0, le=120)

    @field_validator("stablecoins")
    @classmethod
    def upper_stablecoins(cls, v: List[str]) -> List[str]:
        return [s.strip().upper() for s in v if s.strip()]


class TradingConfig(BaseModel):
    """Dip-buying strategy settings."""

    # Quote asset that is spent and appended to CoinMarketCap symbols
    quote_currency: str = Field(default="USDT")

    # Fixed notional spent per accepted buy
    investment_amount: Decimal = Field(default=Decimal("7"), gt=0)

    # Starting budget; when unset the free quote balance on the exchange is used
    budget: Optional[Decimal] = Field(default=None, ge=0)

    # Warn at startup when the budget is below this amount
    min_balance_warning: Decimal = Field(default=Decimal("20"), ge=0)

    # Target sell price = average fill price * multiplier
    take_profit_multiplier: Decimal = Field(default=Decimal("1.05"), gt=1)

    # Wait after a market buy before placing the protective sell
    settlement_delay_seconds: float = Field(default=3.0, ge=0, le=60)

    # Limit-sell placement retries
    sell_order_attempts: int = Field(default=3, ge=1, le=10)
    sell_retry_delay_seconds: float = Field(default=2.0, ge=0, le=60)

    # Scheduler
    cycle_interval_minutes: float = Field(default=60.0, gt=0)

    # None keeps every buy-zone asset eligible, bounded only by budget
    max_buys_per_cycle: Optional[int] = Field(default=None, ge=1)

    # Retry sell placement for unprotected positions at the start of each cycle
    reattempt_sell_orders: bool = False

    @field_validator("quote_currency")
    @classmethod
    def upper_quote(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError(f"Invalid quote currency: {v}")
        return v


class TelegramConfig(BaseModel):
    """Telegram alert configuration."""

    enabled: bool = Field(default=False)
    bot_token: SecretStr = Field(default=SecretStr(""))
    chat_id: str = Field(default="")

    send_info: bool = Field(default=True)
    send_warning: bool = Field(default=True)
    send_critical: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: str = Field(default="INFO")
    json_output: bool = Field(default=False)
    file: Optional[str] = Field(default=None)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return v


class Config(BaseModel):
    """Root configuration model."""

    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    market_data: MarketDataConfig = Field(default_factory=MarketDataConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def missing_credentials(self) -> List[str]:
        """Names of required secrets that are not set."""
        missing = []
        if not self.exchange.has_credentials():
            missing.append("BINANCE_API_KEY/BINANCE_SECRET_KEY")
        if not self.market_data.api_key.get_secret_value():
            missing.append("COIN_MARKET_CAP_API_KEY")
        return missing
