"""Dip-buying spot trading bot: CoinMarketCap signals, Binance execution."""

__version__ = "0.1.0"
