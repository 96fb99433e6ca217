"""
Exchange factory for creating exchange adapters.

Provides a unified way to instantiate the execution gateway
based on configuration.
"""

from typing import Dict, Type

from ..config.schema import ExchangeConfig
from ..utils.logging import get_logger
from .base import ExchangeAdapter
from .binance import BinanceAdapter

logger = get_logger(__name__)


# Registry of available exchange adapters
EXCHANGE_ADAPTERS: Dict[str, Type[ExchangeAdapter]] = {
    "binance": BinanceAdapter,
}


def create_exchange(
    exchange_config: ExchangeConfig,
    quote_currency: str = "USDT",
) -> ExchangeAdapter:
    """
    Create an exchange adapter instance.

    Args:
        exchange_config: Exchange configuration with credentials
        quote_currency: Quote asset of the traded symbols

    Returns:
        Initialized exchange adapter (not connected)

    Raises:
        ValueError: If exchange is not supported
    """
    name = exchange_config.name.lower()

    if name not in EXCHANGE_ADAPTERS:
        available = ", ".join(EXCHANGE_ADAPTERS.keys())
        raise ValueError(f"Unsupported exchange: {exchange_config.name}. Available: {available}")

    adapter = EXCHANGE_ADAPTERS[name](
        api_key=exchange_config.api_key.get_secret_value(),
        api_secret=exchange_config.api_secret.get_secret_value(),
        quote_currency=quote_currency,
        testnet=exchange_config.testnet,
        timeout_ms=exchange_config.timeout_ms,
    )

    logger.info("exchange_adapter_created", exchange=name, testnet=exchange_config.testnet)

    return adapter


def get_supported_exchanges() -> list:
    """Get list of supported exchange names."""
    return list(EXCHANGE_ADAPTERS.keys())
