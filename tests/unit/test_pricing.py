"""
Unit tests for price helpers.
"""

from decimal import Decimal

import pytest

from dipbuyer.engine.pricing import round_to_tick, target_sell_price


class TestRoundToTick:
    """Tests for round_to_tick()."""

    def test_rounds_half_up(self):
        """Test rounding to the nearest tick, ties away from zero."""
        assert round_to_tick(Decimal("10.4999"), "0.01") == Decimal("10.50")
        assert round_to_tick(Decimal("10.005"), "0.01") == Decimal("10.01")
        assert round_to_tick(Decimal("10.004"), "0.01") == Decimal("10.00")

    def test_take_profit_example(self):
        """Test the typical +5% target on a 0.01 tick."""
        target = target_sell_price(Decimal("142.37"), Decimal("1.05"))

        assert target == Decimal("149.4885")
        assert round_to_tick(target, "0.01") == Decimal("149.49")

    def test_coarse_tick(self):
        """Test ticks larger than one unit."""
        assert round_to_tick(Decimal("1234"), "5") == Decimal("1235")
        assert round_to_tick(Decimal("1232.4"), "5") == Decimal("1230")

    def test_fine_tick(self):
        """Test exchange-style tick strings with trailing zeros."""
        rounded = round_to_tick(Decimal("0.000012345"), "0.00000001")
        assert rounded == Decimal("0.00001235")

    def test_result_is_multiple_of_tick(self):
        """Test result divides evenly by the tick."""
        tick = Decimal("0.0005")
        rounded = round_to_tick(Decimal("3.14159"), str(tick))

        assert rounded % tick == 0

    @pytest.mark.parametrize(
        "price,tick",
        [
            ("27.8361", "0.001"),
            ("10.005", "0.01"),
            ("0.000012345", "0.00000001"),
            ("1232.5", "5"),
            ("1237.5", "5"),
            ("99999.99", "10"),
            ("0.4", "0.25"),
            ("150", "0.01"),
        ],
    )
    def test_idempotent(self, price, tick):
        """Test rounding an already rounded price changes nothing, ties included."""
        once = round_to_tick(Decimal(price), tick)

        assert round_to_tick(once, tick) == once
        assert once % Decimal(tick) == 0

    @pytest.mark.parametrize("tick", ["0", "", None, "abc", "-0.01", "NaN"])
    def test_unusable_tick_returns_price(self, tick):
        """Test invalid tick sizes leave the price unchanged."""
        price = Decimal("149.4885")
        assert round_to_tick(price, tick) == price


class TestTargetSellPrice:
    """Tests for target_sell_price()."""

    def test_multiplier(self):
        """Test target is buy price times the multiplier."""
        assert target_sell_price(Decimal("100"), Decimal("1.05")) == Decimal("105.00")
