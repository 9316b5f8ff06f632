from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


RULE_TYPES = ("fixed", "percentage")
PRODUCT_REF_PREFIX = "product:"

BundleStatus = Literal["draft", "active", "paused"]
BundleKind = Literal["quantity_discount", "product_discount", "often_bought_together"]


class CamelModel(BaseModel):
    """Base for payloads exchanged with the storefront / admin in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class BundleComponent(CamelModel):
    variant_id: str = Field(min_length=1, description="Variant id, or product:<id> for any variant of a product")
    quantity: int = Field(default=1, ge=1)
    group: str = Field(min_length=1, max_length=50)

    @field_validator("variant_id", "group", mode="before")
    @classmethod
    def _strip(cls, v):
        return str(v).strip() if v is not None else v

    @property
    def product_ref(self) -> Optional[str]:
        if not self.variant_id.startswith(PRODUCT_REF_PREFIX):
            return None
        return self.variant_id[len(PRODUCT_REF_PREFIX):].strip() or None


class Eligibility(CamelModel):
    must_include_all_groups: bool = True
    min_cart_qty: int = Field(default=1, ge=1)


class Limits(CamelModel):
    max_uses_per_order: int = Field(default=1, ge=1, le=50)


class DiscountTier(CamelModel):
    min_qty: int = Field(ge=1)
    type: str
    value: float = Field(ge=0)


class DiscountRule(CamelModel):
    # Unknown types are kept as-is and priced at zero by the calculator.
    type: str = "fixed"
    value: float = Field(default=0.0, ge=0)
    eligibility: Eligibility = Field(default_factory=Eligibility)
    limits: Limits = Field(default_factory=Limits)
    tiers: List[DiscountTier] = []

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        return str(v or "").strip()

    @field_validator("tiers")
    @classmethod
    def _unique_tiers(cls, tiers: List[DiscountTier]) -> List[DiscountTier]:
        """Highest min_qty first, one tier per min_qty."""
        seen = set()
        out = []
        for t in sorted(tiers, key=lambda t: t.min_qty, reverse=True):
            if t.min_qty in seen:
                continue
            seen.add(t.min_qty)
            out.append(t)
        return out


class Presentation(CamelModel):
    cover_variant_id: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    label: Optional[str] = None
    label_sub: Optional[str] = None
    cta: Optional[str] = None
    banner_color: Optional[str] = None
    badge_color: Optional[str] = None
    text_color: Optional[str] = None
    show_items: Optional[bool] = None
    show_price: Optional[bool] = None
    show_tiers: Optional[bool] = None


def dedupe_components(components: List[BundleComponent]) -> List[BundleComponent]:
    """Merge repeated (group, variant_id) pairs by summing their quantity, keeping first-seen order."""
    merged: Dict[Tuple[str, str], int] = {}
    for c in components:
        key = (c.group, c.variant_id)
        merged[key] = merged.get(key, 0) + c.quantity
    return [BundleComponent(group=g, variant_id=v, quantity=q) for (g, v), q in merged.items()]


class BundleBase(CamelModel):
    name: str = ""
    kind: Optional[BundleKind] = None
    status: BundleStatus = "draft"
    components: List[BundleComponent] = []
    rules: DiscountRule = Field(default_factory=DiscountRule)
    presentation: Presentation = Field(default_factory=Presentation)
    trigger_product_id: Optional[str] = None

    @field_validator("components")
    @classmethod
    def _dedupe(cls, components: List[BundleComponent]) -> List[BundleComponent]:
        return dedupe_components(components)

    def cover_variant_id(self) -> Optional[str]:
        """Cover variant when it is one of the components, else the first component."""
        ids = [c.variant_id for c in self.components]
        cover = (self.presentation.cover_variant_id or "").strip()
        if cover and cover in ids:
            return cover
        return ids[0] if ids else None


LEGACY_MARKERS = ("items", "products", "variants", "bundleItems", "discountType", "discount_type")


def check_rule_types(rules: DiscountRule) -> None:
    """Only fixed and percentage rules (and tiers) can be saved."""
    if rules.type not in RULE_TYPES:
        raise ValueError(f"rules.type must be one of {', '.join(RULE_TYPES)}")
    for tier in rules.tiers:
        if tier.type not in RULE_TYPES:
            raise ValueError(f"tier type must be one of {', '.join(RULE_TYPES)}")


class BundleCreate(BundleBase):
    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data):
        # Older clients still post the pre-components document shape
        if isinstance(data, dict) and "components" not in data and any(k in data for k in LEGACY_MARKERS):
            from .migrate import upgrade_bundle_payload

            payload, _ = upgrade_bundle_payload(data)
            payload.pop("version", None)
            payload.pop("deleted_at", None)
            if data.get("kind"):
                payload["kind"] = data["kind"]
            return payload
        return data

    @model_validator(mode="after")
    def _check_rule_types(self):
        check_rule_types(self.rules)
        if self.status == "active" and not self.components:
            raise ValueError("An active bundle needs at least one component")
        return self


class BundleUpdate(CamelModel):
    name: Optional[str] = None
    kind: Optional[BundleKind] = None
    status: Optional[BundleStatus] = None
    components: Optional[List[BundleComponent]] = None
    rules: Optional[DiscountRule] = None
    presentation: Optional[Presentation] = None

    @field_validator("components")
    @classmethod
    def _dedupe(cls, components):
        return dedupe_components(components) if components is not None else None

    @model_validator(mode="after")
    def _check_rule_types(self):
        if self.rules is not None:
            check_rule_types(self.rules)
        return self


class BundleOut(BundleBase):
    id: str
    store_id: str
    version: int = 1
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CartLineItem(CamelModel):
    variant_id: str = ""
    # Validated loosely here; normalize_cart_items drops unusable lines.
    quantity: Union[int, float] = 0

    @field_validator("variant_id", mode="before")
    @classmethod
    def _strip(cls, v):
        return str(v).strip() if v is not None else ""


class VariantSnapshot(CamelModel):
    variant_id: str
    product_id: Optional[str] = None
    price: float
    is_active: bool = True
