import logging
import uuid
from typing import Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.bundle import Bundle
from ..models.cart_coupon import CartCoupon
from ..models.evaluation_log import BundleEvaluationLog
from ..repositories.bundles import load_active_bundles_for_store, require_store_id
from ..schemas.bundle import BundleOut
from ..schemas.coupon import CartBannerOut, Merchant
from ..schemas.evaluation import EvaluationResult
from .evaluator import StackingPolicy, evaluate_cart
from .matching import CartInput, PriceLookup

logger = logging.getLogger(__name__)


def to_bundle_definitions(rows: Iterable[Bundle]) -> List[BundleOut]:
    """Validate stored bundles, skipping any that no longer fit the schema."""
    out: List[BundleOut] = []
    for row in rows:
        try:
            out.append(BundleOut.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed bundle {getattr(row, 'id', None)}: {e.error_count()} validation errors")
    return out


def record_evaluation(db: Session, store_id: str, result: EvaluationResult) -> None:
    for entry in result.applied.bundles_summary:
        db.add(
            BundleEvaluationLog(
                id=str(uuid.uuid4()),
                store_id=store_id,
                bundle_id=entry.bundle_id,
                matched_variant_ids=entry.matched_variant_ids,
                cart_snapshot_hash=result.cart_snapshot_hash,
            )
        )
    db.commit()


def evaluate_store_cart(
    db: Session,
    merchant: Merchant,
    cart_items: CartInput,
    price_lookup: PriceLookup,
    policy: StackingPolicy = StackingPolicy.ALL,
    log: Optional[bool] = None,
) -> EvaluationResult:
    """Evaluate a cart against the store's active bundles and log the applied ones."""
    store_id = require_store_id(merchant.store_id)
    bundles = to_bundle_definitions(load_active_bundles_for_store(db, store_id))
    result = evaluate_cart(bundles, cart_items, price_lookup, policy)

    should_log = settings.evaluation_log_enabled if log is None else log
    if should_log and result.applied.bundles_summary:
        record_evaluation(db, store_id, result)
    return result


def build_cart_banner(evaluation: EvaluationResult, coupon: Optional[CartCoupon]) -> CartBannerOut:
    discount = evaluation.applied.total_discount
    if coupon is None or discount <= 0:
        return CartBannerOut()
    return CartBannerOut(
        has_discount=True,
        discount_amount=discount,
        coupon_code=coupon.code,
        banner={
            "title": "Your bundle discount is ready",
            "code": coupon.code,
            "copyText": "Copy code",
            "instruction": "Apply the code in the coupon field at checkout",
        },
    )
