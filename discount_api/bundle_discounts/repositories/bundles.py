from sqlalchemy.orm import Session
from typing import List, Optional
import uuid
import logging

from ..errors import BundleNotFoundError, InvalidInputError
from ..models.bundle import Bundle
from ..schemas.bundle import BundleCreate, BundleUpdate
from ..schemas.migrate import CURRENT_BUNDLE_VERSION
from ..utils.dates import utcnow
from .coupons import void_issued_coupons_for_store

logger = logging.getLogger(__name__)

# Edits to these fields change what a cart qualifies for
MATERIAL_FIELDS = ("components", "rules", "status")


def require_store_id(store_id: Optional[str]) -> str:
    s = str(store_id or "").strip()
    if not s:
        raise InvalidInputError("Invalid storeId", code="INVALID_STORE_ID")
    return s


def create_bundle(db: Session, store_id: str, data: BundleCreate, trigger_product_id: Optional[str] = None) -> Bundle:
    """Create a bundle for a store.

    Raises:
        InvalidInputError: If the store id is empty
    """
    s = require_store_id(store_id)
    payload = data.model_dump(mode="json")

    bundle = Bundle(
        id=str(uuid.uuid4()),
        store_id=s,
        version=CURRENT_BUNDLE_VERSION,
        status=data.status,
        kind=data.kind,
        name=data.name,
        components=payload["components"],
        rules=payload["rules"],
        presentation=payload["presentation"],
        trigger_product_id=trigger_product_id,
        deleted_at=None,
    )
    db.add(bundle)
    db.commit()
    db.refresh(bundle)
    logger.info(f"Created bundle {bundle.id} for store {s} with status {bundle.status}")
    return bundle


def get_bundle(db: Session, store_id: str, bundle_id: str) -> Bundle:
    s = require_store_id(store_id)
    bundle = (
        db.query(Bundle)
        .filter(Bundle.id == bundle_id, Bundle.store_id == s, Bundle.deleted_at.is_(None))
        .first()
    )
    if bundle is None:
        raise BundleNotFoundError(f"Bundle {bundle_id} not found")
    return bundle


def list_bundles_by_store(db: Session, store_id: str, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Bundle]:
    s = require_store_id(store_id)
    query = db.query(Bundle).filter(Bundle.store_id == s, Bundle.deleted_at.is_(None))
    if status:
        query = query.filter(Bundle.status == status.strip())
    return (
        query.order_by(Bundle.updated_at.desc(), Bundle.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def update_bundle(
    db: Session,
    store_id: str,
    bundle_id: str,
    data: BundleUpdate,
    trigger_product_id: Optional[str] = None,
) -> Bundle:
    """Apply a partial update; material edits void the store's live cart coupons."""
    bundle = get_bundle(db, store_id, bundle_id)
    changes = data.model_dump(mode="json", exclude_unset=True)

    for field, value in changes.items():
        setattr(bundle, field, value)
    if trigger_product_id is not None:
        bundle.trigger_product_id = trigger_product_id
    bundle.updated_at = utcnow()

    if any(f in changes for f in MATERIAL_FIELDS):
        void_issued_coupons_for_store(db, bundle.store_id, commit=False)

    db.commit()
    db.refresh(bundle)
    return bundle


def delete_bundle(db: Session, store_id: str, bundle_id: str) -> None:
    """Soft-delete: mark deleted and pause, keeping the row."""
    bundle = get_bundle(db, store_id, bundle_id)
    now = utcnow()
    bundle.deleted_at = now
    bundle.status = "paused"
    bundle.updated_at = now
    void_issued_coupons_for_store(db, bundle.store_id, commit=False)
    db.commit()
    logger.info(f"Soft-deleted bundle {bundle_id} for store {bundle.store_id}")


def load_active_bundles_for_store(db: Session, store_id: str) -> List[Bundle]:
    """Active, non-deleted bundles, most recently updated first."""
    s = require_store_id(store_id)
    return (
        db.query(Bundle)
        .filter(Bundle.store_id == s, Bundle.status == "active", Bundle.deleted_at.is_(None))
        .order_by(Bundle.updated_at.desc(), Bundle.id.desc())
        .all()
    )


def count_bundles_by_store(db: Session, store_id: str) -> int:
    """Count the non-deleted bundles of a store."""
    s = require_store_id(store_id)
    return db.query(Bundle).filter(Bundle.store_id == s, Bundle.deleted_at.is_(None)).count()
