"""
One-time upgrade of stored bundle payloads to the current schema.

Older bundles kept their components under ``products``/``items``/``variants``/
``bundleItems`` with assorted key spellings, and their discount rule flattened
onto the document. Everything downstream reads only the current shape, so the
alternate spellings are handled here and nowhere else.
"""
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from ..utils.dates import parse_datetime
from .bundle import RULE_TYPES

logger = logging.getLogger(__name__)

CURRENT_BUNDLE_VERSION = 2

LEGACY_COMPONENT_KEYS = ("components", "items", "products", "variants", "bundleItems")
DEFAULT_GROUP = "A"


def _first(mapping: Any, *keys: str) -> Any:
    if not isinstance(mapping, dict):
        return None
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def _to_int(value: Any, fallback: int) -> int:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    return int(math.floor(n)) if math.isfinite(n) else fallback


def _clean_id(value: Any) -> Optional[str]:
    s = str(value if value is not None else "").strip()
    return s or None


def is_current_payload(doc: Dict[str, Any]) -> bool:
    components = doc.get("components")
    if not isinstance(components, list) or not components:
        return False
    if doc.get("version") != CURRENT_BUNDLE_VERSION:
        return False
    rules = doc.get("rules") or {}
    return all(
        _clean_id(_first(c, "variant_id")) and _clean_id(_first(c, "group")) and _to_int(_first(c, "quantity"), 0) > 0
        for c in components
    ) and rules.get("type") in RULE_TYPES


def upgrade_components(doc: Dict[str, Any]) -> List[Dict[str, Any]]:
    base: List[Any] = []
    for key in LEGACY_COMPONENT_KEYS:
        if isinstance(doc.get(key), list):
            base = doc[key]
            break

    parent_group = _first(doc, "group", "groupName", "defaultGroup")
    merged: Dict[Tuple[str, str], int] = {}
    for idx, item in enumerate(base):
        variant = item.get("variant") if isinstance(item, dict) else None
        variant_id = _clean_id(
            _first(item, "variant_id", "variantId") or (_first(variant, "id") if variant else None) or _first(item, "id")
        )
        if not variant_id:
            continue
        quantity = max(1, _to_int(_first(item, "quantity", "qty", "amount", "count"), 1))
        group = _clean_id(_first(item, "group", "groupName", "set", "section") or parent_group or f"G{idx + 1}") or DEFAULT_GROUP
        key = (group[:50], variant_id)
        merged[key] = merged.get(key, 0) + quantity

    return [{"variant_id": v, "quantity": q, "group": g} for (g, v), q in merged.items()]


def upgrade_rules(doc: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """Returns (rules, degraded); a degraded rule carries no discount."""
    rules = doc.get("rules") if isinstance(doc.get("rules"), dict) else {}
    raw_type = str(_first(rules, "type") or _first(doc, "discountType", "discount_type", "type") or "").strip().lower()
    rule_type = "percentage" if raw_type in ("percentage", "percent") else "fixed" if raw_type == "fixed" else None

    raw_value = _first(rules, "value")
    if raw_value is None:
        raw_value = _first(doc, "discountValue", "discount_value", "value")
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        value = math.nan

    eligibility = rules.get("eligibility") if isinstance(rules.get("eligibility"), dict) else {}
    must_include = _first(eligibility, "must_include_all_groups", "mustIncludeAllGroups")
    limits = rules.get("limits") if isinstance(rules.get("limits"), dict) else {}

    upgraded = {
        "eligibility": {
            "must_include_all_groups": bool(must_include) if must_include is not None else True,
            "min_cart_qty": max(1, _to_int(_first(eligibility, "min_cart_qty", "minCartQty") or _first(doc, "minCartQty"), 1)),
        },
        "limits": {
            "max_uses_per_order": max(1, min(50, _to_int(_first(limits, "max_uses_per_order", "maxUsesPerOrder") or _first(doc, "maxUsesPerOrder"), 1))),
        },
        "tiers": rules.get("tiers") if isinstance(rules.get("tiers"), list) else [],
    }

    if rule_type is None or not math.isfinite(value) or value < 0:
        upgraded.update({"type": "fixed", "value": 0.0})
        return upgraded, True

    upgraded.update({"type": rule_type, "value": value})
    return upgraded, False


def upgrade_bundle_payload(doc: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """
    Upgrade a stored or incoming bundle document to the current schema.

    Args:
        doc: Raw bundle document in any historical shape

    Returns:
        (payload, degraded). ``payload`` holds ``version``, ``status``, ``name``,
        ``components``, ``rules``, ``presentation`` and ``deleted_at``.
        A degraded bundle had no usable discount rule and is paused.
    """
    if is_current_payload(doc):
        return doc, False

    components = upgrade_components(doc)
    rules, degraded = upgrade_rules(doc)

    presentation = dict(doc.get("presentation") or {}) if isinstance(doc.get("presentation"), dict) else {}
    cover = _clean_id(
        _first(presentation, "cover_variant_id", "coverVariantId")
        or _first(doc, "coverVariantId", "cover_variant_id")
        or (components[0]["variant_id"] if components else None)
    )
    presentation.pop("coverVariantId", None)
    presentation["cover_variant_id"] = cover

    status = "paused" if degraded else (doc.get("status") or "paused")
    name = str(doc.get("name") or doc.get("title") or "").strip() or "Migrated bundle"

    if degraded:
        logger.warning(f"Bundle {doc.get('id') or doc.get('_id')} has no usable discount rule; pausing it")

    return {
        "version": CURRENT_BUNDLE_VERSION,
        "status": status,
        "name": name,
        "components": components,
        "rules": rules,
        "presentation": presentation,
        "deleted_at": parse_datetime(_first(doc, "deleted_at", "deletedAt")),
    }, degraded
