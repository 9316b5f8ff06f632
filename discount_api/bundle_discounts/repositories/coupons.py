from datetime import datetime
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
import logging

from ..models.cart_coupon import CartCoupon
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)


def find_issued_coupon(db: Session, store_merchant_key: str, cart_fingerprint: str, now: Optional[datetime] = None) -> Optional[CartCoupon]:
    """Live (issued, not yet expired) coupon for a store and cart fingerprint."""
    now = now or utcnow()
    return (
        db.query(CartCoupon)
        .filter(
            CartCoupon.store_merchant_key == store_merchant_key,
            CartCoupon.cart_fingerprint == cart_fingerprint,
            CartCoupon.status == "issued",
            CartCoupon.expires_at > now,
        )
        .first()
    )


def find_issued_coupon_any_expiry(db: Session, store_merchant_key: str, cart_fingerprint: str) -> Optional[CartCoupon]:
    return (
        db.query(CartCoupon)
        .filter(
            CartCoupon.store_merchant_key == store_merchant_key,
            CartCoupon.cart_fingerprint == cart_fingerprint,
            CartCoupon.status == "issued",
        )
        .first()
    )


def expire_other_issued_coupons(db: Session, store_merchant_key: str, cart_fingerprint: str, now: Optional[datetime] = None) -> int:
    """Expire the store's issued coupons for other fingerprints, and any past their expiry."""
    now = now or utcnow()
    count = (
        db.query(CartCoupon)
        .filter(
            CartCoupon.store_merchant_key == store_merchant_key,
            CartCoupon.status == "issued",
            or_(CartCoupon.cart_fingerprint != cart_fingerprint, CartCoupon.expires_at <= now),
        )
        .update({CartCoupon.status: "expired"}, synchronize_session=False)
    )
    db.commit()
    if count:
        logger.info(f"Expired {count} superseded coupons for store {store_merchant_key}")
    return count


def create_coupon_record(db: Session, record: CartCoupon) -> CartCoupon:
    """Insert a coupon record.

    Raises:
        IntegrityError: If a live coupon already exists for the same store and
            fingerprint, or the code is taken. The session is rolled back first.
    """
    try:
        db.add(record)
        db.commit()
        db.refresh(record)
        return record
    except IntegrityError:
        db.rollback()
        raise


def void_issued_coupons_for_store(db: Session, store_merchant_key: str, commit: bool = True) -> int:
    count = (
        db.query(CartCoupon)
        .filter(CartCoupon.store_merchant_key == store_merchant_key, CartCoupon.status == "issued")
        .update({CartCoupon.status: "void"}, synchronize_session=False)
    )
    if commit:
        db.commit()
    if count:
        logger.info(f"Voided {count} issued coupons for store {store_merchant_key}")
    return count


def mark_coupon_redeemed(db: Session, store_merchant_key: str, code: str, order_id: Optional[str] = None) -> Optional[CartCoupon]:
    code = str(code or "").strip()
    if not code:
        return None
    coupon = (
        db.query(CartCoupon)
        .filter(
            CartCoupon.store_merchant_key == store_merchant_key,
            CartCoupon.code == code,
            CartCoupon.status == "issued",
        )
        .first()
    )
    if coupon is None:
        return None
    coupon.status = "redeemed"
    coupon.redeemed_at = utcnow()
    coupon.order_id = str(order_id) if order_id else None
    db.commit()
    db.refresh(coupon)
    return coupon


def expire_old_coupons(db: Session, now: Optional[datetime] = None) -> int:
    """Housekeeping: mark every issued coupon past its expiry as expired."""
    now = now or utcnow()
    count = (
        db.query(CartCoupon)
        .filter(CartCoupon.status == "issued", CartCoupon.expires_at <= now)
        .update({CartCoupon.status: "expired"}, synchronize_session=False)
    )
    db.commit()
    return count
