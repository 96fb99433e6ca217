"""
Price helpers for exchange order conformance.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional


def round_to_tick(price: Decimal, tick_size: Optional[str]) -> Decimal:
    """
    Round a price to the nearest multiple of tick_size, half up.

    A missing, empty, zero, negative or unparsable tick size returns the
    price unchanged and leaves validation to the exchange.

    >>> round_to_tick(Decimal("10.4999"), "0.01")
    Decimal('10.50')
    """
    if not tick_size:
        return price

    try:
        tick = Decimal(str(tick_size).strip())
    except InvalidOperation:
        return price

    if not tick.is_finite() or tick <= 0:
        return price

    value = price if isinstance(price, Decimal) else Decimal(str(price))
    ticks = (value / tick).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return ticks * tick


def target_sell_price(buy_price: Decimal, multiplier: Decimal) -> Decimal:
    """Take-profit price for a position bought at buy_price."""
    return buy_price * multiplier
