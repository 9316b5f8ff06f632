"""
End-to-end tests for the HTTP surface with the database and platform stubbed.
"""
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from bundle_discounts.db import get_db
from bundle_discounts.dependencies import get_platform_client, get_variant_cache
from bundle_discounts.errors import PlatformApiError
from bundle_discounts.main import app
from bundle_discounts.models.evaluation_log import BundleEvaluationLog
from bundle_discounts.utils.cache import TTLCache

HEADERS = {"X-Store-Id": "store-1", "X-Access-Token": "tok"}

VARIANTS = {
    "V-100-A": {"data": {"id": "V-100-A", "price": {"amount": 100}, "product_id": "p1"}},
    "V-200-A": {"data": {"id": "V-200-A", "price": {"amount": 50}, "product_id": "p2"}},
}

BUNDLE = {
    "name": "Shirt + cap",
    "status": "active",
    "components": [
        {"variantId": "V-100-A", "quantity": 1, "group": "A"},
        {"variantId": "V-200-A", "quantity": 1, "group": "B"},
    ],
    "rules": {"type": "fixed", "value": 10},
}

CART = {"items": [{"variantId": "V-100-A", "quantity": 1}, {"variantId": "V-200-A", "quantity": 1}]}


@pytest.fixture
def platform():
    def get_variant(access_token, variant_id):
        if variant_id not in VARIANTS:
            raise PlatformApiError(404, "not found", "PLATFORM_VARIANT_FETCH_FAILED")
        return VARIANTS[variant_id]

    client = MagicMock()
    client.get_product_variant.side_effect = get_variant
    client.create_coupon.return_value = {"data": {"id": 321}}
    return client


@pytest.fixture
def api(db, platform):
    cache = TTLCache(60)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_platform_client] = lambda: platform
    app.dependency_overrides[get_variant_cache] = lambda: cache
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def _create(api, body=BUNDLE):
    resp = api.post("/bundles", json=body, headers=HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestBundleEndpoints:
    """CRUD scoped by store header."""

    def test_health(self, api):
        assert api.get("/health").json() == {"status": "ok"}

    def test_store_header_required(self, api):
        assert api.get("/bundles").status_code == 400

    def test_create_resolves_trigger_product(self, api):
        bundle = _create(api)
        assert bundle["storeId"] == "store-1"
        assert bundle["triggerProductId"] == "p1"
        assert bundle["version"] == 2
        assert bundle["components"][0]["variantId"] == "V-100-A"

    def test_create_rejects_unknown_variants(self, api):
        body = dict(BUNDLE, components=[{"variantId": "NOPE", "quantity": 1, "group": "A"}])
        resp = api.post("/bundles", json=body, headers=HEADERS)

        assert resp.status_code == 400
        assert resp.json()["code"] == "BUNDLE_VARIANTS_INVALID"

    def test_create_rejects_unknown_rule_type(self, api):
        body = dict(BUNDLE, rules={"type": "bogus", "value": 1})
        assert api.post("/bundles", json=body, headers=HEADERS).status_code == 422

    def test_update_rejects_unknown_rule_type(self, api):
        bundle = _create(api)
        bundle_id = bundle["id"]

        for rules in ({"type": "bogus", "value": 10}, {"type": "fixed", "value": 10, "tiers": [{"minQty": 2, "type": "bogus", "value": 5}]}):
            resp = api.patch(f"/bundles/{bundle_id}", json={"rules": rules}, headers=HEADERS)
            assert resp.status_code == 422

        stored = api.get(f"/bundles/{bundle_id}", headers=HEADERS).json()
        assert stored["rules"]["type"] == "fixed"
        assert stored["rules"]["tiers"] == []

    def test_save_rechecks_cached_variants(self, api, platform, monkeypatch):
        api.post("/bundles/evaluate", json=CART, headers=HEADERS)
        hidden = {"data": dict(VARIANTS["V-200-A"]["data"], status="hidden")}
        monkeypatch.setitem(VARIANTS, "V-200-A", hidden)

        resp = api.post("/bundles", json=BUNDLE, headers=HEADERS)

        assert resp.status_code == 400
        assert "V-200-A" in resp.json()["detail"]

    def test_list_get_update_delete(self, api):
        bundle = _create(api)
        bundle_id = bundle["id"]

        listed = api.get("/bundles", headers=HEADERS)
        assert [b["id"] for b in listed.json()] == [bundle_id]
        assert listed.headers["X-Total-Count"] == "1"

        assert api.get("/bundles", headers={"X-Store-Id": "other"}).json() == []
        assert api.get(f"/bundles/{bundle_id}", headers=HEADERS).json()["name"] == "Shirt + cap"

        updated = api.patch(f"/bundles/{bundle_id}", json={"status": "paused"}, headers=HEADERS)
        assert updated.json()["status"] == "paused"

        assert api.delete(f"/bundles/{bundle_id}", headers=HEADERS).status_code == 204
        assert api.get(f"/bundles/{bundle_id}", headers=HEADERS).status_code == 404


class TestEvaluationEndpoints:
    """Evaluate, preview, banner and summary merge."""

    def test_evaluate_without_coupon(self, api, platform, db):
        _create(api)
        resp = api.post("/bundles/evaluate", json=CART, headers=HEADERS)

        body = resp.json()
        assert body["applied"]["totalDiscount"] == 10
        assert body["applied"]["matchedProductIds"] == ["p1", "p2"]
        assert body["coupon"] is None
        platform.create_coupon.assert_not_called()
        assert db.query(BundleEvaluationLog).count() == 1

    def test_evaluate_issues_and_reuses_coupon(self, api, platform):
        _create(api)
        first = api.post("/bundles/evaluate?create_coupon=true", json=CART, headers=HEADERS).json()
        second = api.post("/bundles/evaluate?create_coupon=true", json=CART, headers=HEADERS).json()

        assert first["coupon"]["code"].startswith("BNDL")
        assert first["coupon"]["code"] == second["coupon"]["code"]
        assert platform.create_coupon.call_count == 1

    def test_evaluate_without_discount_gives_no_coupon(self, api, platform):
        _create(api)
        cart = {"items": [{"variantId": "V-100-A", "quantity": 1}]}
        body = api.post("/bundles/evaluate?create_coupon=true", json=cart, headers=HEADERS).json()

        assert body["applied"]["totalDiscount"] == 0
        assert body["coupon"] is None
        platform.create_coupon.assert_not_called()

    def test_platform_failure_status_is_passed_through(self, api, platform):
        _create(api)
        platform.create_coupon.side_effect = PlatformApiError(422, "rejected", "PLATFORM_COUPON_CREATE_FAILED", {"error": "x"})
        resp = api.post("/bundles/evaluate?create_coupon=true", json=CART, headers=HEADERS)

        assert resp.status_code == 422
        assert resp.json()["code"] == "PLATFORM_COUPON_CREATE_FAILED"

    def test_stacking_policy_query(self, api):
        _create(api)
        _create(api, dict(BUNDLE, rules={"type": "fixed", "value": 30}))

        all_body = api.post("/bundles/evaluate", json=CART, headers=HEADERS).json()
        best_body = api.post("/bundles/evaluate?policy=best_only", json=CART, headers=HEADERS).json()

        assert all_body["applied"]["totalDiscount"] == 40
        assert best_body["applied"]["totalDiscount"] == 30

    def test_preview(self, api):
        body = {
            "components": BUNDLE["components"],
            "rules": {"type": "percentage", "value": 10},
            "items": CART["items"],
        }
        resp = api.post("/bundles/preview", json=body, headers=HEADERS)

        assert resp.status_code == 200, resp.text
        evaluation = resp.json()["evaluation"]
        assert evaluation["applied"] is True
        assert evaluation["discountAmount"] == 15

    def test_cart_banner(self, api):
        _create(api)
        banner = api.post("/bundles/cart-banner", json=CART, headers=HEADERS).json()

        assert banner["hasDiscount"] is True
        assert banner["discountAmount"] == 10
        assert banner["couponCode"] == banner["banner"]["code"]

    def test_cart_banner_without_discount(self, api):
        banner = api.post("/bundles/cart-banner", json=CART, headers=HEADERS).json()
        assert banner == {"hasDiscount": False, "discountAmount": 0.0, "couponCode": None, "banner": None}

    def test_summary_merge(self, api):
        body = {
            "existing": [{"bundleId": "b1", "discountAmount": 100}],
            "incoming": [{"bundleId": "b1", "discountAmount": 50}, {"bundleId": "b2", "discountAmount": 25}],
        }
        merged = api.post("/bundles/summary/merge", json=body).json()

        assert merged["discountAmount"] == 75
        assert merged["appliedBundleIds"] == ["b1", "b2"]
