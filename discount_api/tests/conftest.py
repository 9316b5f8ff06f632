import pytest
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bundle_discounts.db import Base
from bundle_discounts.models import bundle as _bundle_model  # noqa: F401
from bundle_discounts.models import cart_coupon as _coupon_model  # noqa: F401
from bundle_discounts.models import evaluation_log as _log_model  # noqa: F401
from bundle_discounts.schemas.bundle import BundleOut, VariantSnapshot


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """In-memory SQLite session with all tables created."""
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def prices():
    """Two products with one variant each, plus a second variant of p2."""
    return {
        "V-100-A": VariantSnapshot(variant_id="V-100-A", product_id="p1", price=100.0),
        "V-200-A": VariantSnapshot(variant_id="V-200-A", product_id="p2", price=50.0),
        "V-200-B": VariantSnapshot(variant_id="V-200-B", product_id="p2", price=80.0),
    }


@pytest.fixture
def make_bundle():
    """Factory for active bundle definitions."""
    def _make(bundle_id="b1", components=None, rules=None, **extra):
        payload = {
            "id": bundle_id,
            "store_id": "store-1",
            "name": f"Bundle {bundle_id}",
            "status": "active",
            "components": components if components is not None else [
                {"variant_id": "V-100-A", "quantity": 1, "group": "A"},
                {"variant_id": "V-200-A", "quantity": 1, "group": "B"},
            ],
            "rules": rules if rules is not None else {"type": "fixed", "value": 10},
        }
        payload.update(extra)
        return BundleOut.model_validate(payload)
    return _make


@pytest.fixture
def platform_client():
    client = MagicMock()
    client.create_coupon.return_value = {"data": {"id": 9001}}
    return client
