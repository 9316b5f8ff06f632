"""
Tests for upgrading legacy bundle documents to the current schema.
"""
from datetime import datetime

from bundle_discounts.schemas.bundle import BundleCreate
from bundle_discounts.schemas.migrate import CURRENT_BUNDLE_VERSION, is_current_payload, upgrade_bundle_payload


class TestUpgradeBundlePayload:
    """Legacy shapes map onto components/rules/presentation."""

    def test_legacy_products_shape(self):
        doc = {
            "_id": "abc",
            "title": "Summer pair",
            "status": "active",
            "discountType": "percent",
            "discountValue": "15",
            "products": [
                {"variantId": "v1", "qty": 2, "groupName": "tops"},
                {"variant": {"id": "v2"}, "section": "bottoms"},
                {"variantId": "v1", "qty": 1, "groupName": "tops"},
                {"qty": 1},
            ],
            "deletedAt": "2026-03-01T10:00:00Z",
        }
        payload, degraded = upgrade_bundle_payload(doc)

        assert not degraded
        assert payload["version"] == CURRENT_BUNDLE_VERSION
        assert payload["name"] == "Summer pair"
        assert payload["status"] == "active"
        assert payload["components"] == [
            {"variant_id": "v1", "quantity": 3, "group": "tops"},
            {"variant_id": "v2", "quantity": 1, "group": "bottoms"},
        ]
        assert payload["rules"]["type"] == "percentage"
        assert payload["rules"]["value"] == 15
        assert payload["presentation"]["cover_variant_id"] == "v1"
        assert isinstance(payload["deleted_at"], datetime)

    def test_default_groups_per_position(self):
        payload, _ = upgrade_bundle_payload({"items": [{"id": "a"}, {"id": "b"}], "rules": {"type": "fixed", "value": 5}})
        assert [c["group"] for c in payload["components"]] == ["G1", "G2"]

    def test_missing_rule_pauses_bundle(self):
        payload, degraded = upgrade_bundle_payload({"status": "active", "variants": [{"variantId": "a"}]})

        assert degraded
        assert payload["status"] == "paused"
        assert payload["rules"]["value"] == 0

    def test_current_payload_is_untouched(self):
        doc = {
            "version": CURRENT_BUNDLE_VERSION,
            "components": [{"variant_id": "a", "quantity": 1, "group": "A"}],
            "rules": {"type": "fixed", "value": 5},
        }
        assert is_current_payload(doc)
        assert upgrade_bundle_payload(doc) == (doc, False)


class TestLegacyCreatePayload:
    """Bundle creation accepts the legacy document shape."""

    def test_bundle_create_upgrades_legacy_body(self):
        bundle = BundleCreate.model_validate({
            "name": "Old style",
            "status": "draft",
            "discountType": "fixed",
            "discountValue": 20,
            "items": [{"variantId": "v1", "quantity": 1}],
        })
        assert bundle.rules.type == "fixed"
        assert bundle.rules.value == 20
        assert bundle.components[0].variant_id == "v1"
        assert bundle.components[0].group == "G1"
