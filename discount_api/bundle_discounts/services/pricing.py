"""
Bundle Discount Calculator

Maps a discount rule onto the subtotal it is computed against:
- Percentage rules, with the rate clamped to 0-100
- Fixed-amount rules, never exceeding the subtotal
- Currency rounding, applied once when amounts are aggregated
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

from ..schemas.bundle import DiscountRule, DiscountTier
from ..schemas.evaluation import AppliedRule

logger = logging.getLogger(__name__)

RuleLike = Union[DiscountRule, DiscountTier, AppliedRule]


def _is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def round2(amount: float) -> float:
    """Round a currency amount to 2 decimal places (half-up)."""
    if not _is_finite_number(amount):
        return 0.0
    return float(Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def sum_rounded(amounts: Iterable[float]) -> float:
    """Sum unrounded amounts and round the total once."""
    return round2(math.fsum(a for a in amounts if _is_finite_number(a)))


def calc_discount_amount(rule: RuleLike, eligible_subtotal: float) -> float:
    """
    Calculate the discount a rule grants on an eligible subtotal.

    Args:
        rule: Any rule carrying ``type`` and ``value``
        eligible_subtotal: Price of the matched components

    Returns:
        Unrounded discount amount, between 0 and ``eligible_subtotal``.
        Unknown rule types yield 0.
    """
    if not _is_finite_number(eligible_subtotal) or eligible_subtotal <= 0:
        return 0.0

    rule_type = str(getattr(rule, "type", "") or "").strip()
    value = getattr(rule, "value", 0)
    if not _is_finite_number(value):
        value = 0.0

    if rule_type == "percentage":
        pct = max(0.0, min(100.0, float(value)))
        return eligible_subtotal * pct / 100

    if rule_type == "fixed":
        amount = max(0.0, float(value))
        return min(eligible_subtotal, amount)

    logger.warning(f"Unrecognized discount rule type {rule_type!r}; treating as zero discount")
    return 0.0
