"""
Component Matcher

Decides whether a cart satisfies a bundle's grouped component requirements and
which cart lines (and at what price) the bundle's discount is computed against.
"""

import logging
import math
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..schemas.bundle import BundleBase, BundleComponent, CartLineItem, VariantSnapshot
from ..schemas.evaluation import BundleMatch, SelectionLine

logger = logging.getLogger(__name__)

PriceLookup = Mapping[str, VariantSnapshot]
CartInput = Iterable[Union[CartLineItem, Mapping]]

# (selected lines, cost)
Allocation = Tuple[List[SelectionLine], float]


def normalize_cart_items(items: Optional[CartInput]) -> List[CartLineItem]:
    """Sum quantities per variant, drop unusable lines and sort by variant id."""
    totals: Dict[str, int] = {}
    for item in items or []:
        if not isinstance(item, CartLineItem):
            try:
                item = CartLineItem.model_validate(item)
            except ValidationError:
                continue
        variant_id = item.variant_id.strip()
        qty = item.quantity
        if not variant_id or not isinstance(qty, (int, float)) or not math.isfinite(qty) or qty <= 0:
            continue
        whole = int(math.floor(qty))
        if whole <= 0:
            continue
        totals[variant_id] = totals.get(variant_id, 0) + whole
    return [CartLineItem(variant_id=v, quantity=q) for v, q in sorted(totals.items())]


def available_quantities(cart: List[CartLineItem]) -> Dict[str, int]:
    return {item.variant_id: int(item.quantity) for item in cart}


def _priced_lines(cart: List[CartLineItem], price_lookup: PriceLookup) -> Dict[str, SelectionLine]:
    """Cart variants that have an active snapshot with a usable price, keyed by variant id."""
    lines: Dict[str, SelectionLine] = {}
    for item in cart:
        snap = price_lookup.get(item.variant_id) if price_lookup else None
        if snap is None or not snap.is_active:
            continue
        price = snap.price
        if not math.isfinite(price) or price < 0:
            logger.warning(f"Ignoring variant {item.variant_id} with unusable price {price!r}")
            continue
        product_id = (snap.product_id or "").strip() or item.variant_id
        lines[item.variant_id] = SelectionLine(
            variant_id=item.variant_id,
            product_id=product_id,
            quantity=int(item.quantity),
            unit_price=float(price),
        )
    return lines


def _allocate_variant(
    variant_id: str,
    required: int,
    available: Dict[str, int],
    lines: Dict[str, SelectionLine],
) -> Optional[Allocation]:
    line = lines.get(variant_id)
    if line is None or available.get(variant_id, 0) < required:
        return None
    picked = SelectionLine(variant_id=variant_id, product_id=line.product_id, quantity=required, unit_price=line.unit_price)
    return [picked], line.unit_price * required


def _allocate_product(
    product_id: str,
    required: int,
    available: Dict[str, int],
    lines: Dict[str, SelectionLine],
) -> Optional[Allocation]:
    """Take the required quantity from any variants of the product, highest price first."""
    candidates = sorted(
        (l for l in lines.values() if l.product_id == product_id),
        key=lambda l: l.unit_price,
        reverse=True,
    )
    remaining = required
    picked: List[SelectionLine] = []
    cost = 0.0
    for line in candidates:
        if remaining <= 0:
            break
        take = min(available.get(line.variant_id, 0), remaining)
        if take <= 0:
            continue
        picked.append(SelectionLine(variant_id=line.variant_id, product_id=product_id, quantity=take, unit_price=line.unit_price))
        cost += line.unit_price * take
        remaining -= take
    if remaining > 0:
        return None
    return picked, cost


def _best_option(
    options: List[BundleComponent],
    available: Dict[str, int],
    lines: Dict[str, SelectionLine],
    quantity_overrides: Optional[Mapping[str, int]],
) -> Optional[Allocation]:
    """Cheapest satisfiable component among a group's options."""
    best: Optional[Allocation] = None
    for component in options:
        required = component.quantity
        if quantity_overrides and component.variant_id in quantity_overrides:
            required = max(1, int(quantity_overrides[component.variant_id]))
        product_id = component.product_ref
        if product_id:
            picked = _allocate_product(product_id, required, available, lines)
        else:
            picked = _allocate_variant(component.variant_id, required, available, lines)
        if picked is None:
            continue
        if best is None or picked[1] < best[1]:
            best = picked
    return best


def _consume(available: Dict[str, int], selection: List[SelectionLine]) -> None:
    for line in selection:
        available[line.variant_id] = max(0, available.get(line.variant_id, 0) - line.quantity)


def _unique(values: Iterable[str]) -> List[str]:
    return list(OrderedDict.fromkeys(v for v in values if v))


def group_components(components: List[BundleComponent]) -> "OrderedDict[str, List[BundleComponent]]":
    """Components keyed by group, groups in name order."""
    groups: Dict[str, List[BundleComponent]] = {}
    for c in components:
        groups.setdefault(c.group, []).append(c)
    return OrderedDict(sorted(groups.items()))


def match_bundle(
    bundle: BundleBase,
    cart_items: CartInput,
    price_lookup: PriceLookup,
    available: Optional[Mapping[str, int]] = None,
    quantity_overrides: Optional[Mapping[str, int]] = None,
) -> BundleMatch:
    """
    Match one bundle against a cart.

    Args:
        bundle: Bundle definition (components and rules)
        cart_items: Cart line items; normalized here
        price_lookup: Variant id -> snapshot with unit price and product id
        available: Quantity pool to match from; defaults to the full cart.
            Never mutated.
        quantity_overrides: Required quantity per component variant id,
            used by quantity tiers

    Returns:
        BundleMatch with the selected lines and their subtotal
    """
    cart = normalize_cart_items(cart_items)
    rules = bundle.rules
    groups = group_components(bundle.components)
    if not groups:
        return BundleMatch()

    total_qty = sum(int(item.quantity) for item in cart)
    if total_qty < rules.eligibility.min_cart_qty:
        return BundleMatch()

    lines = _priced_lines(cart, price_lookup)
    pool = dict(available) if available is not None else available_quantities(cart)

    selection: List[SelectionLine] = []
    if rules.eligibility.must_include_all_groups:
        for options in groups.values():
            best = _best_option(options, pool, lines, quantity_overrides)
            if best is None:
                return BundleMatch()
            selection.extend(best[0])
            _consume(pool, best[0])
    else:
        best = None
        for options in groups.values():
            picked = _best_option(options, pool, lines, quantity_overrides)
            if picked is not None and (best is None or picked[1] < best[1]):
                best = picked
        if best is None:
            return BundleMatch()
        selection = best[0]

    if not selection:
        return BundleMatch()

    return BundleMatch(
        eligible=True,
        matched_variant_ids=_unique(l.variant_id for l in selection),
        matched_product_ids=_unique(l.product_id for l in selection),
        eligible_subtotal=sum(l.unit_price * l.quantity for l in selection),
        selection=selection,
    )


def consume_selection(available: Mapping[str, int], selection: List[SelectionLine]) -> Dict[str, int]:
    """Return a copy of the pool with the selected quantities removed."""
    pool = dict(available)
    _consume(pool, selection)
    return pool
