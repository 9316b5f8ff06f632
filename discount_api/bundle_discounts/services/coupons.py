"""
Coupon Issuance Coordinator

Turns a qualifying cart evaluation into a single-use platform coupon, issuing
at most one live coupon per store and cart fingerprint.
"""

import logging
import math
import secrets
import uuid
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..clients.commerce import CommercePlatformClient, build_coupon_payload
from ..config import Settings
from ..errors import NoDiscountError
from ..models.cart_coupon import CartCoupon
from ..repositories.bundles import require_store_id
from ..repositories.coupons import (
    create_coupon_record,
    expire_other_issued_coupons,
    find_issued_coupon,
    find_issued_coupon_any_expiry,
)
from ..schemas.coupon import IssueOptions, Merchant
from ..schemas.evaluation import EvaluationResult
from ..utils.dates import utcnow
from ..utils.signatures import compute_cart_fingerprint, sha256_hex
from .matching import CartInput, normalize_cart_items
from .pricing import round2

logger = logging.getLogger(__name__)

MIN_TTL_HOURS = 1
MAX_TTL_HOURS = 24


def build_coupon_code(prefix: str, store_merchant_key: str, cart_fingerprint: str) -> str:
    """Prefix + 10 hex chars tied to the store/cart + 6 random hex chars."""
    code_hash = sha256_hex(f"{store_merchant_key}:{cart_fingerprint}")[:10].upper()
    nonce = secrets.token_hex(3).upper()
    return f"{prefix}{code_hash}{nonce}"


def clamp_ttl_hours(value: Optional[int], default: int) -> int:
    """Missing, zero or unparseable values fall back to the default."""
    try:
        hours = int(value or default)
    except (TypeError, ValueError):
        hours = default
    if hours <= 0:
        hours = default
    return max(MIN_TTL_HOURS, min(MAX_TTL_HOURS, hours))


def resolve_include_product_ids(evaluation: EvaluationResult) -> List[str]:
    ids = (str(v or "").strip() for v in evaluation.applied.matched_product_ids)
    return list(dict.fromkeys(v for v in ids if v))


def issue_or_reuse_coupon_for_cart(
    config: Settings,
    merchant: Merchant,
    access_token: str,
    cart_items: CartInput,
    evaluation: EvaluationResult,
    options: Optional[IssueOptions] = None,
    *,
    db: Session,
    client: CommercePlatformClient,
) -> CartCoupon:
    """
    Return the live coupon for this cart state, creating it if needed.

    Order of operations: lookup, then expire stale coupons, then create on the
    platform, then persist. Nothing is persisted when the platform call fails.

    Raises:
        NoDiscountError: If the evaluation carries no discount or no matched
            products; raised before any store or platform call
        PlatformApiError: If the platform rejects or cannot be reached
    """
    store_key = require_store_id(merchant.store_id)

    total = evaluation.applied.total_discount
    if not isinstance(total, (int, float)) or not math.isfinite(total) or total <= 0:
        raise NoDiscountError("Cart does not qualify for a bundle discount")

    include_product_ids = resolve_include_product_ids(evaluation)
    if not include_product_ids:
        raise NoDiscountError("No matched products to restrict the coupon to")

    discount_amount = round2(total)
    cart = normalize_cart_items(cart_items)
    fingerprint = compute_cart_fingerprint(cart, include_product_ids, discount_amount)
    now = utcnow()

    existing = find_issued_coupon(db, store_key, fingerprint, now)
    if existing is not None:
        logger.info(f"Reusing coupon {existing.code} for store {store_key}")
        return existing

    expire_other_issued_coupons(db, store_key, fingerprint, now)

    ttl_hours = clamp_ttl_hours(options.ttl_hours if options else None, config.coupon_ttl_hours)
    expires_at = now + timedelta(hours=ttl_hours)
    code = build_coupon_code(config.coupon_code_prefix, store_key, fingerprint)
    payload = build_coupon_payload(code, "fixed", discount_amount, include_product_ids, now, expires_at)

    response = client.create_coupon(access_token, payload)
    data = response.get("data") if isinstance(response, dict) else None
    platform_coupon_id = data.get("id") if isinstance(data, dict) else None

    record = CartCoupon(
        id=str(uuid.uuid4()),
        store_merchant_key=store_key,
        cart_fingerprint=fingerprint,
        code=code,
        platform_coupon_id=str(platform_coupon_id) if platform_coupon_id is not None else None,
        status="issued",
        discount_amount=discount_amount,
        discount_type="fixed",
        discount_value=discount_amount,
        include_product_ids=include_product_ids,
        expires_at=expires_at,
        created_at=now,
    )
    try:
        saved = create_coupon_record(db, record)
    except IntegrityError:
        winner = find_issued_coupon_any_expiry(db, store_key, fingerprint)
        if winner is None:
            raise
        logger.warning(f"Concurrent issuance for store {store_key}; reusing coupon {winner.code}")
        return winner

    logger.info(f"Issued coupon {saved.code} for store {store_key}: {discount_amount} on {len(include_product_ids)} products")
    return saved
