from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .bundle import CamelModel, CartLineItem, BundleComponent, DiscountRule, Presentation
from .evaluation import DraftEvaluation, EvaluationResult

CouponStatus = Literal["issued", "expired", "void", "redeemed"]


class Merchant(CamelModel):
    store_id: str = Field(min_length=1, description="Platform merchant/store identifier")
    name: Optional[str] = None


class IssueOptions(CamelModel):
    ttl_hours: Optional[int] = None


class CouponOut(CamelModel):
    code: str
    status: CouponStatus
    discount_amount: float
    include_product_ids: List[str] = []
    platform_coupon_id: Optional[str] = None
    expires_at: datetime


class EvaluateRequest(CamelModel):
    items: List[CartLineItem] = []


class EvaluateResponse(EvaluationResult):
    coupon: Optional[CouponOut] = None


class PreviewRequest(CamelModel):
    name: str = "Preview"
    components: List[BundleComponent] = []
    rules: DiscountRule = Field(default_factory=DiscountRule)
    presentation: Presentation = Field(default_factory=Presentation)
    items: List[CartLineItem] = []


class PreviewResponse(CamelModel):
    evaluation: DraftEvaluation


class CartBannerOut(CamelModel):
    has_discount: bool = False
    discount_amount: float = 0.0
    coupon_code: Optional[str] = None
    banner: Optional[Dict[str, Any]] = None


class MergeSummaryRequest(CamelModel):
    existing: List[Dict[str, Any]] = []
    incoming: List[Dict[str, Any]] = []
