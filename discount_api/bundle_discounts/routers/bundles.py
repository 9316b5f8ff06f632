from fastapi import APIRouter, Depends, Query, Response
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from ..clients.commerce import CommercePlatformClient
from ..config import settings
from ..db import get_db
from ..dependencies import get_access_token, get_merchant, get_platform_client, get_variant_cache
from ..errors import InvalidInputError, NoDiscountError
from ..repositories.bundles import (
    count_bundles_by_store,
    create_bundle,
    delete_bundle,
    get_bundle,
    list_bundles_by_store,
    update_bundle,
)
from ..schemas.bundle import BundleBase, BundleComponent, BundleCreate, BundleOut, BundleUpdate, Presentation
from ..schemas.coupon import (
    CartBannerOut,
    CouponOut,
    EvaluateRequest,
    EvaluateResponse,
    IssueOptions,
    Merchant,
    MergeSummaryRequest,
    PreviewRequest,
    PreviewResponse,
)
from ..schemas.evaluation import MergedSummary
from ..services.catalog import VariantReport, build_price_lookup
from ..services.checkout import build_cart_banner, evaluate_store_cart
from ..services.coupons import issue_or_reuse_coupon_for_cart
from ..services.evaluator import StackingPolicy, evaluate_bundle_draft
from ..services.summary import merge_bundles_summary
from ..utils.cache import TTLCache

router = APIRouter()


def _variant_ids(values: Iterable[Optional[str]]) -> List[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def _validate_components(
    client: CommercePlatformClient,
    access_token: str,
    store_id: str,
    components: List[BundleComponent],
    presentation: Presentation,
    cache: TTLCache,
    extra_variant_ids: Iterable[str] = (),
    refresh: bool = False,
) -> tuple[VariantReport, Optional[str]]:
    """Check component variants exist and are active; returns the report and the trigger product id.

    With ``refresh`` the component snapshots are re-fetched instead of served from the cache.
    """
    draft = BundleBase(components=components, presentation=presentation)
    cover = draft.cover_variant_id()
    component_ids = _variant_ids(c.variant_id for c in components)
    report = build_price_lookup(
        client, access_token, store_id, _variant_ids([*component_ids, cover, *extra_variant_ids]), cache,
        refresh=component_ids if refresh else (),
    )

    inactive = set(report.inactive)
    invalid = [
        vid for vid in component_ids
        if not vid.startswith("product:") and (vid not in report.snapshots or vid in inactive)
    ]
    if invalid:
        raise InvalidInputError(f"Bundle contains invalid variants: {', '.join(invalid)}", code="BUNDLE_VARIANTS_INVALID")

    trigger = None
    if cover:
        if cover.startswith("product:"):
            trigger = cover[len("product:"):].strip() or None
        elif cover in report.snapshots:
            trigger = report.snapshots[cover].product_id
    return report, trigger


def _coupon_out(coupon) -> Optional[CouponOut]:
    return CouponOut.model_validate(coupon) if coupon is not None else None


@router.post("", response_model=BundleOut, status_code=201)
def create(
    bundle: BundleCreate,
    merchant: Merchant = Depends(get_merchant),
    access_token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
    client: CommercePlatformClient = Depends(get_platform_client),
    cache: TTLCache = Depends(get_variant_cache),
):
    trigger = None
    if bundle.components:
        _, trigger = _validate_components(client, access_token, merchant.store_id, bundle.components, bundle.presentation, cache, refresh=True)
    saved = create_bundle(db, merchant.store_id, bundle, trigger_product_id=trigger)
    return BundleOut.model_validate(saved)


@router.get("", response_model=List[BundleOut])
def list_bundles(
    response: Response,
    status: Optional[str] = Query(default=None),
    limit: int = 50,
    offset: int = 0,
    merchant: Merchant = Depends(get_merchant),
    db: Session = Depends(get_db),
):
    items = list_bundles_by_store(db, merchant.store_id, status=status, limit=limit, offset=offset)
    response.headers["X-Total-Count"] = str(count_bundles_by_store(db, merchant.store_id))
    return [BundleOut.model_validate(b) for b in items]


@router.post("/evaluate", response_model=EvaluateResponse)
def evaluate(
    req: EvaluateRequest,
    create_coupon: bool = Query(default=False),
    policy: StackingPolicy = Query(default=StackingPolicy.ALL),
    ttl_hours: Optional[int] = Query(default=None),
    merchant: Merchant = Depends(get_merchant),
    access_token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
    client: CommercePlatformClient = Depends(get_platform_client),
    cache: TTLCache = Depends(get_variant_cache),
):
    report = build_price_lookup(client, access_token, merchant.store_id, _variant_ids(i.variant_id for i in req.items), cache)
    evaluation = evaluate_store_cart(db, merchant, req.items, report.snapshots, policy)
    result = EvaluateResponse.model_validate(evaluation.model_dump())
    if not create_coupon:
        return result

    try:
        coupon = issue_or_reuse_coupon_for_cart(
            settings, merchant, access_token, req.items, evaluation, IssueOptions(ttl_hours=ttl_hours), db=db, client=client
        )
    except NoDiscountError:
        coupon = None
    result.coupon = _coupon_out(coupon)
    return result


@router.post("/preview", response_model=PreviewResponse)
def preview(
    req: PreviewRequest,
    merchant: Merchant = Depends(get_merchant),
    access_token: str = Depends(get_access_token),
    client: CommercePlatformClient = Depends(get_platform_client),
    cache: TTLCache = Depends(get_variant_cache),
):
    draft = BundleBase(name=req.name or "Preview", status="draft", components=req.components, rules=req.rules, presentation=req.presentation)
    report, _ = _validate_components(
        client, access_token, merchant.store_id, draft.components, draft.presentation, cache,
        extra_variant_ids=[i.variant_id for i in req.items],
    )
    return PreviewResponse(evaluation=evaluate_bundle_draft(draft, req.items, report.snapshots))


@router.post("/cart-banner", response_model=CartBannerOut)
def cart_banner(
    req: EvaluateRequest,
    merchant: Merchant = Depends(get_merchant),
    access_token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
    client: CommercePlatformClient = Depends(get_platform_client),
    cache: TTLCache = Depends(get_variant_cache),
):
    report = build_price_lookup(client, access_token, merchant.store_id, _variant_ids(i.variant_id for i in req.items), cache)
    evaluation = evaluate_store_cart(db, merchant, req.items, report.snapshots)
    try:
        coupon = issue_or_reuse_coupon_for_cart(settings, merchant, access_token, req.items, evaluation, db=db, client=client)
    except NoDiscountError:
        coupon = None
    return build_cart_banner(evaluation, coupon)


@router.post("/summary/merge", response_model=MergedSummary)
def merge_summary(req: MergeSummaryRequest):
    return merge_bundles_summary(req.existing, req.incoming)


@router.get("/{bundle_id}", response_model=BundleOut)
def get_bundle_by_id(bundle_id: str, merchant: Merchant = Depends(get_merchant), db: Session = Depends(get_db)):
    return BundleOut.model_validate(get_bundle(db, merchant.store_id, bundle_id))


@router.patch("/{bundle_id}", response_model=BundleOut)
def update(
    bundle_id: str,
    changes: BundleUpdate,
    merchant: Merchant = Depends(get_merchant),
    access_token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
    client: CommercePlatformClient = Depends(get_platform_client),
    cache: TTLCache = Depends(get_variant_cache),
):
    current = BundleOut.model_validate(get_bundle(db, merchant.store_id, bundle_id))
    next_status = changes.status or current.status
    components = changes.components if changes.components is not None else current.components
    presentation = changes.presentation or current.presentation

    trigger = None
    if next_status == "active":
        if not components:
            raise InvalidInputError("An active bundle needs at least one component", code="BUNDLE_COMPONENTS_EMPTY")
        _, trigger = _validate_components(client, access_token, merchant.store_id, components, presentation, cache, refresh=True)

    saved = update_bundle(db, merchant.store_id, bundle_id, changes, trigger_product_id=trigger)
    return BundleOut.model_validate(saved)


@router.delete("/{bundle_id}", status_code=204)
def delete(bundle_id: str, merchant: Merchant = Depends(get_merchant), db: Session = Depends(get_db)):
    delete_bundle(db, merchant.store_id, bundle_id)
    return Response(status_code=204)
