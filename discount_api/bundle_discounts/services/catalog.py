"""
Variant price lookup built from the commerce platform, cached through an
explicit TTLCache owned by the caller.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from ..clients.commerce import CommercePlatformClient
from ..errors import PlatformApiError
from ..schemas.bundle import PRODUCT_REF_PREFIX, VariantSnapshot
from ..utils.cache import TTLCache

logger = logging.getLogger(__name__)


class VariantReport(NamedTuple):
    snapshots: Dict[str, VariantSnapshot]
    missing: List[str]

    @property
    def inactive(self) -> List[str]:
        return [v for v, s in self.snapshots.items() if not s.is_active]


def _price_amount(raw: Any) -> Optional[float]:
    if isinstance(raw, dict):
        raw = raw.get("amount")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def snapshot_from_variant_payload(variant_id: str, payload: Dict[str, Any]) -> Optional[VariantSnapshot]:
    """Map a platform variant response onto a VariantSnapshot; None when it carries no usable price."""
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        return None

    price = _price_amount(data.get("sale_price")) if data.get("sale_price") else None
    if price is None or price <= 0:
        price = _price_amount(data.get("price"))
    if price is None or price < 0:
        return None

    product = data.get("product") if isinstance(data.get("product"), dict) else {}
    product_id = str(data.get("product_id") or product.get("id") or "").strip() or None
    is_active = data.get("is_available", True) is not False and str(data.get("status") or "sale") != "hidden"
    return VariantSnapshot(variant_id=str(variant_id), product_id=product_id, price=price, is_active=is_active)


def build_price_lookup(
    client: CommercePlatformClient,
    access_token: str,
    store_id: str,
    variant_ids: Iterable[str],
    cache: Optional[TTLCache[VariantSnapshot]] = None,
    refresh: Iterable[str] = (),
) -> VariantReport:
    """
    Fetch snapshots for the given variants, serving repeats from ``cache``.

    Variants listed in ``refresh`` are dropped from the cache first and
    fetched again.

    Product references (``product:<id>``) are not variants and are skipped.
    Variants the platform does not know (404) are reported as missing; any
    other platform error propagates.
    """
    snapshots: Dict[str, VariantSnapshot] = {}
    missing: List[str] = []

    if cache is not None:
        for variant_id in refresh:
            cache.invalidate((store_id, str(variant_id).strip()))

    for variant_id in dict.fromkeys(str(v).strip() for v in variant_ids if v):
        if not variant_id or variant_id.startswith(PRODUCT_REF_PREFIX):
            continue

        cache_key = (store_id, variant_id)
        cached = cache.get(cache_key) if cache is not None else None
        if cached is not None:
            snapshots[variant_id] = cached
            continue

        try:
            payload = client.get_product_variant(access_token, variant_id)
        except PlatformApiError as e:
            if e.status_code == 404:
                missing.append(variant_id)
                continue
            raise

        snap = snapshot_from_variant_payload(variant_id, payload)
        if snap is None:
            logger.warning(f"Variant {variant_id} has no usable price; treating as missing")
            missing.append(variant_id)
            continue

        snapshots[variant_id] = snap
        if cache is not None:
            cache.set(cache_key, snap)

    return VariantReport(snapshots=snapshots, missing=missing)
