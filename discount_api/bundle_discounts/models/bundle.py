from datetime import datetime
from sqlalchemy import JSON, Integer, String, Text, DateTime, Index, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Bundle(Base):
    __tablename__ = "bundles"

    __table_args__ = (
        Index('ix_bundles_store_status_deleted', 'store_id', 'status', 'deleted_at'),
        Index('ix_bundles_store_trigger', 'store_id', 'trigger_product_id', 'status'),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, index=True)

    # Scoping
    store_id: Mapped[str] = mapped_column(String, index=True, nullable=False)

    # Payload schema version, see schemas/migrate.py
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", index=True)
    kind: Mapped[str | None] = mapped_column(String(32), nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Content
    components: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)  # list of component dicts
    rules: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    presentation: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    trigger_product_id: Mapped[str | None] = mapped_column(String, nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
