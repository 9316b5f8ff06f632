from datetime import datetime
from sqlalchemy import String, DateTime, Index, Numeric, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base
from .bundle import JSONType


class CartCoupon(Base):
    __tablename__ = "cart_coupons"

    __table_args__ = (
        UniqueConstraint('code', name='uq_cart_coupon_code'),
        # At most one live coupon per store and cart fingerprint
        Index(
            'uq_cart_coupon_issued_fingerprint',
            'store_merchant_key',
            'cart_fingerprint',
            unique=True,
            postgresql_where=text("status = 'issued'"),
            sqlite_where=text("status = 'issued'"),
        ),
        Index('ix_cart_coupons_store_status', 'store_merchant_key', 'status'),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, index=True)

    store_merchant_key: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # SHA-256 of cart lines + matched products + discount, see utils/signatures.py
    cart_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    code: Mapped[str] = mapped_column(String(32), nullable=False)
    platform_coupon_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="issued", index=True)

    discount_amount: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False, default="fixed")
    discount_value: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    include_product_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    order_id: Mapped[str | None] = mapped_column(String, nullable=True)
