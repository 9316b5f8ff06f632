"""
Bundle Evaluator

Evaluates a cart against a merchant's bundles:
- Matches every active, non-deleted bundle against the same original cart
- Repeats a bundle up to its max uses per order, from that bundle's own pool
- Picks the best of the base rule and any quantity tiers for each use
- Applies the caller's stacking policy and aggregates the discount
"""

import logging
import math
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas.bundle import BundleBase, BundleOut, CartLineItem, DiscountTier
from ..schemas.evaluation import (
    AppliedDiscount,
    AppliedRule,
    BundleApplication,
    BundleDiscountEntry,
    BundleEvaluation,
    DraftEvaluation,
    EvaluationResult,
)
from ..utils.signatures import compute_cart_hash
from .matching import (
    CartInput,
    PriceLookup,
    available_quantities,
    consume_selection,
    match_bundle,
    normalize_cart_items,
)
from .pricing import calc_discount_amount, round2, sum_rounded

logger = logging.getLogger(__name__)


class StackingPolicy(str, Enum):
    """Which eligible bundles are allowed to apply together."""

    ALL = "all"
    BEST_PER_TRIGGER = "best_per_trigger"
    BEST_ONLY = "best_only"


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(v for v in values if v))


def _rule_candidates(bundle: BundleBase) -> List[Tuple[AppliedRule, Optional[DiscountTier], Optional[Dict[str, int]]]]:
    rules = bundle.rules
    base = (AppliedRule(type=rules.type, value=rules.value, min_qty=rules.eligibility.min_cart_qty), None, None)
    if not rules.tiers:
        return [base]

    cover = bundle.cover_variant_id()
    candidates = [base]
    for tier in rules.tiers:
        overrides = {cover: tier.min_qty} if cover else None
        candidates.append((AppliedRule(type=tier.type, value=tier.value, min_qty=tier.min_qty), tier, overrides))
    return sorted(candidates, key=lambda c: c[0].min_qty)


def compute_bundle_applications(
    bundle: BundleBase,
    cart: List[CartLineItem],
    price_lookup: PriceLookup,
) -> List[BundleApplication]:
    """
    Match a bundle repeatedly against its own copy of the cart.

    Each use consumes the quantities it selected, so a bundle with
    ``max_uses_per_order = 2`` needs two full sets of components to apply twice.
    Other bundles are unaffected by this consumption.
    """
    if not bundle.components:
        return []

    pool = available_quantities(cart)
    candidates = _rule_candidates(bundle)
    applications: List[BundleApplication] = []

    for _ in range(bundle.rules.limits.max_uses_per_order):
        best = None
        for applied_rule, tier, overrides in candidates:
            match = match_bundle(bundle, cart, price_lookup, available=pool, quantity_overrides=overrides)
            if not match.eligible:
                continue
            discount = calc_discount_amount(applied_rule, match.eligible_subtotal)
            if best is None or discount > best[3]:
                best = (applied_rule, tier, match, discount)

        if best is None:
            break

        applied_rule, tier, match, discount = best
        pool = consume_selection(pool, match.selection)
        applications.append(
            BundleApplication(
                applied_rule=applied_rule,
                tier=tier,
                selection=match.selection,
                matched_variant_ids=match.matched_variant_ids,
                matched_product_ids=match.matched_product_ids,
                subtotal=match.eligible_subtotal,
                discount_amount=discount,
            )
        )

    return applications


def cart_subtotal(cart: List[CartLineItem], price_lookup: PriceLookup) -> float:
    total = 0.0
    for item in cart:
        snap = price_lookup.get(item.variant_id) if price_lookup else None
        if snap is None or not snap.is_active or not math.isfinite(snap.price) or snap.price < 0:
            continue
        total += snap.price * int(item.quantity)
    return total


def _allowed_bundle_ids(pre: List[dict], policy: StackingPolicy) -> set:
    """Bundle ids that may apply under the stacking policy (first wins on ties)."""
    discounted = [p for p in pre if p["discount"] > 0]
    if policy == StackingPolicy.ALL:
        return {p["bundle"].id for p in discounted}

    if policy == StackingPolicy.BEST_ONLY:
        best = None
        for p in discounted:
            if best is None or p["discount"] > best["discount"]:
                best = p
        return {best["bundle"].id} if best else set()

    best_by_group: Dict[str, dict] = {}
    for p in discounted:
        bundle = p["bundle"]
        trigger = (bundle.trigger_product_id or "").strip()
        key = f"trigger:{trigger}" if trigger else f"bundle:{bundle.id}"
        prev = best_by_group.get(key)
        if prev is None or p["discount"] > prev["discount"]:
            best_by_group[key] = p
    return {p["bundle"].id for p in best_by_group.values()}


def _applied_rules(applications: List[BundleApplication]) -> List[AppliedRule]:
    seen = set()
    out = []
    for app in applications:
        r = app.applied_rule
        key = (r.type, r.value, r.min_qty)
        if key in seen:
            continue
        seen.add(key)
        out.append(r)
    return out


def evaluate_cart(
    bundles: Sequence[BundleOut],
    cart_items: CartInput,
    price_lookup: PriceLookup,
    policy: StackingPolicy = StackingPolicy.ALL,
) -> EvaluationResult:
    """
    Evaluate a cart against a merchant's bundles.

    Args:
        bundles: Candidate bundles in priority order; inactive and
            soft-deleted bundles are skipped
        cart_items: Cart line items
        price_lookup: Variant id -> snapshot with unit price and product id
        policy: Which eligible bundles may apply together

    Returns:
        EvaluationResult; an empty ``applied`` block when nothing qualifies
    """
    cart = normalize_cart_items(cart_items)
    result = EvaluationResult(cart=cart, cart_snapshot_hash=compute_cart_hash(cart))

    candidates = [b for b in bundles or [] if b.status == "active" and b.deleted_at is None]
    if not candidates or not cart:
        return result

    pre = []
    for bundle in candidates:
        applications = compute_bundle_applications(bundle, cart, price_lookup)
        pre.append({
            "bundle": bundle,
            "applications": applications,
            "discount": math.fsum(a.discount_amount for a in applications),
            "subtotal": math.fsum(a.subtotal for a in applications),
        })

    allowed = _allowed_bundle_ids(pre, policy)
    remaining = cart_subtotal(cart, price_lookup)
    raw_discounts: List[float] = []
    product_ids: List[str] = []
    entries: List[BundleDiscountEntry] = []
    evaluations: List[BundleEvaluation] = []

    for p in pre:
        bundle = p["bundle"]
        applications = p["applications"]
        matched_variant_ids = _unique(v for a in applications for v in a.matched_variant_ids)
        matched_product_ids = _unique(v for a in applications for v in a.matched_product_ids)

        discount = 0.0
        if bundle.id in allowed:
            discount = max(0.0, min(p["discount"], p["subtotal"], remaining))
        applied = discount > 0

        if applied:
            remaining -= discount
            raw_discounts.append(discount)
            product_ids.extend(matched_product_ids)
            entries.append(
                BundleDiscountEntry(
                    bundle_id=bundle.id,
                    discount_amount=round2(discount),
                    uses=len(applications),
                    matched_variant_ids=matched_variant_ids,
                    matched_product_ids=matched_product_ids,
                    applied_rules=_applied_rules(applications),
                )
            )
            logger.info(f"Bundle {bundle.id} applied x{len(applications)} for discount {round2(discount)}")

        evaluations.append(
            BundleEvaluation(
                bundle_id=bundle.id,
                matched=bool(applications),
                applied=applied,
                uses=len(applications),
                discount_amount=round2(discount) if applied else 0.0,
                matched_variant_ids=matched_variant_ids,
                matched_product_ids=matched_product_ids,
            )
        )

    result.bundles = evaluations
    if entries:
        result.applied = AppliedDiscount(
            total_discount=sum_rounded(raw_discounts),
            matched_product_ids=_unique(product_ids),
            bundles_summary=entries,
        )
    return result


def evaluate_bundle_draft(bundle: BundleBase, cart_items: CartInput, price_lookup: PriceLookup) -> DraftEvaluation:
    """Evaluate an unsaved bundle against a cart, regardless of its status."""
    cart = normalize_cart_items(cart_items)
    applications = compute_bundle_applications(bundle, cart, price_lookup)
    discount = math.fsum(a.discount_amount for a in applications)
    applied = bool(applications) and discount > 0
    return DraftEvaluation(
        cart=cart,
        matched=bool(applications),
        applied=applied,
        uses=len(applications),
        discount_amount=round2(discount) if applied else 0.0,
        matched_variant_ids=_unique(v for a in applications for v in a.matched_variant_ids),
        matched_product_ids=_unique(v for a in applications for v in a.matched_product_ids),
        applications=applications,
    )
