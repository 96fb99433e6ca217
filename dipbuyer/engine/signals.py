"""
Drop-zone signal classification.

Maps a 24h percent change to a decision zone. Pure and deterministic;
thresholds are fixed.
"""

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Union

from ..market_data.base import MarketTicker

SAFETY_LIMIT = Decimal("-11.0")  # at or below: anomalous drop, never buy
RISKY_LIMIT = Decimal("-10.0")
BUY_THRESHOLD = Decimal("-5.0")
WATCH_THRESHOLD = Decimal("-4.5")


class SignalZone(Enum):
    """Decision zone for an asset."""
    SKIP = "SKIP"
    RISKY = "RISKY"
    BUY = "BUY"
    WATCH = "WATCH"
    HOLD = "HOLD"


@dataclass(frozen=True)
class ClassifiedTicker:
    """A snapshot entry with its zone."""
    ticker: MarketTicker
    zone: SignalZone

    @property
    def is_buy(self) -> bool:
        return self.zone == SignalZone.BUY


def classify(percent_change: Union[Decimal, float, int, str]) -> SignalZone:
    """
    Classify a 24h percent change.

    Zones, checked in this order:
        x <= -11.0          SKIP
        -11.0 < x < -10.0   RISKY
        -10.0 <= x <= -5.0  BUY
        -5.0 < x <= -4.5    WATCH
        x > -4.5            HOLD

    Both ends of the buy range are inclusive.
    """
    change = percent_change if isinstance(percent_change, Decimal) else Decimal(str(percent_change))

    if change <= SAFETY_LIMIT:
        return SignalZone.SKIP
    if change < RISKY_LIMIT:
        return SignalZone.RISKY
    if change <= BUY_THRESHOLD:
        return SignalZone.BUY
    if change <= WATCH_THRESHOLD:
        return SignalZone.WATCH
    return SignalZone.HOLD


def classify_snapshot(tickers: Iterable[MarketTicker]) -> List[ClassifiedTicker]:
    """Classify every ticker, keeping snapshot order."""
    return [ClassifiedTicker(ticker=t, zone=classify(t.percent_change_24h)) for t in tickers]


def buy_candidates(classified: Iterable[ClassifiedTicker]) -> List[MarketTicker]:
    """Tickers in the buy zone, in snapshot order."""
    return [c.ticker for c in classified if c.is_buy]


def summarize(classified: Iterable[ClassifiedTicker]) -> Dict[SignalZone, int]:
    """Count tickers per zone. Every zone is present in the result."""
    counts = Counter(c.zone for c in classified)
    return {zone: counts.get(zone, 0) for zone in SignalZone}
