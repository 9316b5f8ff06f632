"""
Utilities for computing cart signatures used to deduplicate coupon issuance.

A signature is a deterministic SHA-256 hash over a canonical JSON rendering of
the cart state, so the same cart always maps to the same key regardless of the
order its lines arrived in. Coupon records are unique per store and signature.
"""
import hashlib
import json
from typing import Any, Iterable, List

from ..schemas.bundle import CartLineItem


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def _canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def _canonical_lines(cart: Iterable[CartLineItem]) -> List[dict]:
    lines = [{'variantId': item.variant_id, 'quantity': int(item.quantity)} for item in cart]
    return sorted(lines, key=lambda l: l['variantId'])


def compute_cart_hash(cart: Iterable[CartLineItem]) -> str:
    """
    Hash a normalized cart (variant ids and quantities only).

    Args:
        cart: Normalized cart lines (one line per variant)

    Returns:
        A hex-encoded SHA-256 hash string
    """
    return sha256_hex(_canonical_json(_canonical_lines(cart)))


def compute_cart_fingerprint(
    cart: Iterable[CartLineItem],
    matched_product_ids: Iterable[str],
    discount_amount: float,
) -> str:
    """
    Compute the coupon fingerprint for a qualifying cart state.

    The fingerprint covers:
    1. The normalized cart lines (variant id + quantity), sorted
    2. The sorted, de-duplicated matched product ids
    3. The discount amount formatted to 2 decimal places

    An unchanged cart with an unchanged discount always yields the same
    fingerprint; any change to quantities, matched products or the amount
    yields a different one.

    Raises:
        ValueError: If no matched product ids are given
    """
    product_ids = sorted({str(p).strip() for p in matched_product_ids if p is not None and str(p).strip()})
    if not product_ids:
        raise ValueError("Cannot compute fingerprint without matched product ids")

    payload = {
        'items': _canonical_lines(cart),
        'products': product_ids,
        'discount': f"{float(discount_amount):.2f}",
    }
    return sha256_hex(_canonical_json(payload))
