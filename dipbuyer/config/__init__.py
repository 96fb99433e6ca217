"""Configuration management module."""

from .schema import (
    Config,
    ExchangeConfig,
    MarketDataConfig,
    TradingConfig,
    TelegramConfig,
    LoggingConfig,
)
from .loader import load_config, create_example_config

__all__ = [
    "Config",
    "ExchangeConfig",
    "MarketDataConfig",
    "TradingConfig",
    "TelegramConfig",
    "LoggingConfig",
    "load_config",
    "create_example_config",
]
