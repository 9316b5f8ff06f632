"""
Summary Merge Engine

Reconciles a stored per-bundle discount summary (for a cart or an order) with a
freshly computed one. Entries are keyed on bundle id: a re-evaluated bundle
replaces its previous amount, distinct bundles accumulate.
"""

import logging
import math
from collections import OrderedDict
from typing import Any, Iterable, List, Optional

from ..schemas.evaluation import MergedSummary, SummaryEntry
from .pricing import round2, sum_rounded

logger = logging.getLogger(__name__)


def _read(entry: Any, *names: str) -> Any:
    for name in names:
        if isinstance(entry, dict):
            if name in entry:
                return entry[name]
        elif hasattr(entry, name):
            return getattr(entry, name)
    return None


def normalize_bundles_summary(summary: Optional[Iterable[Any]]) -> List[SummaryEntry]:
    """
    Keep well-formed entries only, with amounts rounded to 2 decimals.

    Accepts schema objects or plain mappings with camelCase or snake_case keys.
    Entries with an empty bundle id or a negative / non-finite amount are dropped.
    """
    out: List[SummaryEntry] = []
    for entry in summary or []:
        bundle_id = str(_read(entry, "bundle_id", "bundleId") or "").strip()
        raw_amount = _read(entry, "discount_amount", "discountAmount")
        try:
            amount = float(raw_amount if raw_amount is not None else 0)
        except (TypeError, ValueError):
            amount = math.nan
        if not bundle_id or not math.isfinite(amount) or amount < 0:
            logger.warning(f"Dropping malformed summary entry: {entry!r}")
            continue
        out.append(SummaryEntry(bundle_id=bundle_id, discount_amount=round2(amount)))
    return out


def merge_bundles_summary(existing_summary: Optional[Iterable[Any]], incoming_summary: Optional[Iterable[Any]]) -> MergedSummary:
    """
    Merge two bundle summaries by bundle id.

    Args:
        existing_summary: Previously stored entries
        incoming_summary: Newly computed entries; they win on the same bundle id

    Returns:
        MergedSummary with entries in insertion order (existing first, then
        bundles only present in the incoming summary) and the rounded total
    """
    merged: "OrderedDict[str, float]" = OrderedDict()
    for entry in normalize_bundles_summary(existing_summary):
        merged[entry.bundle_id] = entry.discount_amount
    for entry in normalize_bundles_summary(incoming_summary):
        merged[entry.bundle_id] = entry.discount_amount

    entries = [SummaryEntry(bundle_id=k, discount_amount=v) for k, v in merged.items()]
    return MergedSummary(
        bundles_summary=entries,
        applied_bundle_ids=list(merged.keys()),
        discount_amount=sum_rounded(merged.values()),
    )
