"""
Configuration loader.

Supports loading from:
- A YAML file (optional when everything comes from the environment)
- A .env file
- Environment variable overrides, which always win
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .schema import Config


def load_config(
    config_path: str = "config/config.yaml",
    env_file: Optional[str] = ".env",
    allow_missing: bool = False,
) -> Config:
    """
    Load and validate configuration.

    Args:
        config_path: Path to the YAML configuration file
        env_file: .env file to load into the environment first (None to skip)
        allow_missing: Use defaults plus environment when the YAML file is absent

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If the config file doesn't exist and allow_missing is False
        ValueError: If the YAML document is not a mapping
        ValidationError: If config validation fails
    """
    if env_file and Path(env_file).exists():
        # Variables already set in the process environment are kept
        load_dotenv(env_file, override=False)

    path = Path(config_path)
    config_dict: dict = {}

    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")
        config_dict = loaded or {}
    elif not allow_missing:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    config_dict = _apply_env_overrides(config_dict)

    return Config.model_validate(config_dict)


def _apply_env_overrides(config_dict: dict) -> dict:
    """Apply environment variable overrides to config."""

    # Exchange credentials
    if api_key := os.environ.get("BINANCE_API_KEY"):
        config_dict.setdefault("exchange", {})["api_key"] = api_key

    if api_secret := os.environ.get("BINANCE_SECRET_KEY"):
        config_dict.setdefault("exchange", {})["api_secret"] = api_secret

    if testnet := os.environ.get("DIPBUYER_TESTNET"):
        config_dict.setdefault("exchange", {})["testnet"] = _is_truthy(testnet)

    # Market data
    if cmc_key := os.environ.get("COIN_MARKET_CAP_API_KEY"):
        config_dict.setdefault("market_data", {})["api_key"] = cmc_key

    # Trading
    if investment := os.environ.get("DIPBUYER_INVESTMENT_AMOUNT"):
        config_dict.setdefault("trading", {})["investment_amount"] = investment

    if budget := os.environ.get("DIPBUYER_BUDGET"):
        config_dict.setdefault("trading", {})["budget"] = budget

    if interval := os.environ.get("DIPBUYER_CYCLE_INTERVAL_MINUTES"):
        config_dict.setdefault("trading", {})["cycle_interval_minutes"] = float(interval)

    # Telegram
    if telegram_token := os.environ.get("TELEGRAM_BOT_TOKEN"):
        config_dict.setdefault("telegram", {})["bot_token"] = telegram_token
        config_dict["telegram"]["enabled"] = True

    if telegram_chat := os.environ.get("TELEGRAM_CHAT_ID"):
        config_dict.setdefault("telegram", {})["chat_id"] = telegram_chat

    # Logging
    if log_level := os.environ.get("DIPBUYER_LOG_LEVEL"):
        config_dict.setdefault("logging", {})["level"] = log_level

    if json_logs := os.environ.get("DIPBUYER_JSON_LOGS"):
        config_dict.setdefault("logging", {})["json_output"] = _is_truthy(json_logs)

    return config_dict


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def create_example_config() -> str:
    """Generate example configuration YAML."""

    example = """# Dip buyer configuration
# Copy this file to config/config.yaml. Secrets are better kept in .env:
#   BINANCE_API_KEY, BINANCE_SECRET_KEY, COIN_MARKET_CAP_API_KEY

exchange:
  name: binance
  testnet: false
  timeout_ms: 10000

market_data:
  snapshot_size: 20     # ranked assets per cycle, stablecoins excluded
  fetch_limit: 50       # listings requested before filtering
  exclude_stablecoins: true

trading:
  quote_currency: USDT
  investment_amount: 7          # spent per buy
  # budget: 100                 # default: free USDT balance on the exchange
  take_profit_multiplier: 1.05  # limit sell at +5%
  settlement_delay_seconds: 3
  sell_order_attempts: 3
  sell_retry_delay_seconds: 2
  cycle_interval_minutes: 60
  # max_buys_per_cycle: 2       # default: unlimited, bounded by budget
  reattempt_sell_orders: false

telegram:
  enabled: false
  bot_token: "your-telegram-bot-token"
  chat_id: "your-chat-id"

logging:
  level: INFO
  json_output: false
"""
    return example
