from datetime import datetime
from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base
from .bundle import JSONType


class BundleEvaluationLog(Base):
    """One row per bundle applied to a cart evaluation."""

    __tablename__ = "bundle_evaluation_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    store_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    bundle_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    matched_variant_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    cart_snapshot_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
