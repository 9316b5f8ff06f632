"""
Tests for the discount calculator and currency rounding.
"""
import pytest

from bundle_discounts.schemas.bundle import DiscountRule
from bundle_discounts.services.pricing import calc_discount_amount, round2, sum_rounded


class TestRound2:
    """Half-up rounding to cents."""

    def test_half_up(self):
        assert round2(2.675) == 2.68
        assert round2(1.005) == 1.01
        assert round2(10) == 10.0

    def test_non_finite_is_zero(self):
        assert round2(float("nan")) == 0.0
        assert round2(float("inf")) == 0.0

    def test_sum_rounds_once(self):
        # Rounding each third first would give 0.99
        assert sum_rounded([1 / 3, 1 / 3, 1 / 3]) == 1.0


class TestCalcDiscountAmount:
    """Fixed and percentage rules against an eligible subtotal."""

    @pytest.mark.parametrize("value,subtotal", [(0, 50), (10, 50), (50, 50), (80, 50), (5, 0.5)])
    def test_fixed_never_exceeds_subtotal(self, value, subtotal):
        amount = calc_discount_amount(DiscountRule(type="fixed", value=value), subtotal)
        assert 0 <= amount <= subtotal

    def test_fixed_amount(self):
        assert calc_discount_amount(DiscountRule(type="fixed", value=10), 150) == 10

    def test_percentage(self):
        assert calc_discount_amount(DiscountRule(type="percentage", value=10), 150) == pytest.approx(15)

    def test_percentage_is_clamped(self):
        assert calc_discount_amount(DiscountRule(type="percentage", value=250), 80) == pytest.approx(80)

    def test_percentage_monotone_in_subtotal(self):
        rule = DiscountRule(type="percentage", value=15)
        amounts = [calc_discount_amount(rule, s) for s in (0, 10, 20, 99.99, 1000)]
        assert amounts == sorted(amounts)

    def test_zero_or_negative_subtotal(self):
        assert calc_discount_amount(DiscountRule(type="fixed", value=10), 0) == 0
        assert calc_discount_amount(DiscountRule(type="percentage", value=10), -5) == 0

    def test_unknown_type_is_zero(self):
        """Unrecognized rule types never raise."""
        assert calc_discount_amount(DiscountRule(type="bundle_price", value=10), 100) == 0
