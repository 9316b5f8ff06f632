from typing import List, Optional

from pydantic import Field

from .bundle import CamelModel, CartLineItem, DiscountTier


class SelectionLine(CamelModel):
    variant_id: str
    product_id: str
    quantity: int
    unit_price: float


class BundleMatch(CamelModel):
    eligible: bool = False
    matched_variant_ids: List[str] = []
    matched_product_ids: List[str] = []
    eligible_subtotal: float = 0.0
    selection: List[SelectionLine] = []


class AppliedRule(CamelModel):
    type: str
    value: float
    min_qty: int = 1


class BundleApplication(CamelModel):
    """One use of a bundle within an order."""

    applied_rule: AppliedRule
    tier: Optional[DiscountTier] = None
    selection: List[SelectionLine] = []
    matched_variant_ids: List[str] = []
    matched_product_ids: List[str] = []
    subtotal: float = 0.0
    discount_amount: float = 0.0


class BundleDiscountEntry(CamelModel):
    bundle_id: str
    discount_amount: float = Field(ge=0)
    uses: int = 1
    matched_variant_ids: List[str] = []
    matched_product_ids: List[str] = []
    applied_rules: List[AppliedRule] = []


class AppliedDiscount(CamelModel):
    total_discount: float = 0.0
    matched_product_ids: List[str] = []
    bundles_summary: List[BundleDiscountEntry] = []


class BundleEvaluation(CamelModel):
    bundle_id: str
    matched: bool = False
    applied: bool = False
    uses: int = 0
    discount_amount: float = 0.0
    matched_variant_ids: List[str] = []
    matched_product_ids: List[str] = []


class EvaluationResult(CamelModel):
    cart: List[CartLineItem] = []
    cart_snapshot_hash: str = ""
    bundles: List[BundleEvaluation] = []
    applied: AppliedDiscount = Field(default_factory=AppliedDiscount)


class DraftEvaluation(CamelModel):
    cart: List[CartLineItem] = []
    matched: bool = False
    applied: bool = False
    uses: int = 0
    discount_amount: float = 0.0
    matched_variant_ids: List[str] = []
    matched_product_ids: List[str] = []
    applications: List[BundleApplication] = []


class SummaryEntry(CamelModel):
    bundle_id: str
    discount_amount: float


class MergedSummary(CamelModel):
    bundles_summary: List[SummaryEntry] = []
    applied_bundle_ids: List[str] = []
    discount_amount: float = 0.0
