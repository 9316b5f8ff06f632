"""
Tests for merging per-bundle discount summaries.
"""
from bundle_discounts.schemas.evaluation import BundleDiscountEntry
from bundle_discounts.services.summary import merge_bundles_summary, normalize_bundles_summary


class TestMergeBundlesSummary:
    """Replacement by bundle id, accumulation across bundles."""

    def test_same_bundle_is_replaced(self):
        merged = merge_bundles_summary(
            [{"bundleId": "b1", "discountAmount": 200}],
            [{"bundleId": "b1", "discountAmount": 100}],
        )
        assert merged.discount_amount == 100
        assert merged.applied_bundle_ids == ["b1"]

    def test_distinct_bundles_accumulate(self):
        merged = merge_bundles_summary(
            [{"bundleId": "b1", "discountAmount": 100}],
            [{"bundle_id": "b2", "discount_amount": 200}],
        )
        assert merged.discount_amount == 300
        assert merged.applied_bundle_ids == ["b1", "b2"]

    def test_idempotent(self):
        summary = [{"bundleId": "b1", "discountAmount": 12.5}, {"bundleId": "b2", "discountAmount": 7.25}]
        once = merge_bundles_summary(summary, summary)
        twice = merge_bundles_summary(once.bundles_summary, summary)

        assert once == twice
        assert once.discount_amount == 19.75

    def test_accepts_evaluator_entries(self):
        entries = [BundleDiscountEntry(bundle_id="b9", discount_amount=4.5)]
        merged = merge_bundles_summary(None, entries)
        assert merged.discount_amount == 4.5

    def test_empty_inputs(self):
        merged = merge_bundles_summary(None, [])
        assert merged.bundles_summary == []
        assert merged.discount_amount == 0


class TestNormalizeBundlesSummary:
    """Malformed entries are dropped."""

    def test_drops_malformed(self):
        entries = normalize_bundles_summary([
            {"bundleId": "", "discountAmount": 5},
            {"bundleId": "b1", "discountAmount": -1},
            {"bundleId": "b2", "discountAmount": "abc"},
            {"bundleId": "b3", "discountAmount": float("inf")},
            {"bundleId": " b4 ", "discountAmount": "3.456"},
        ])
        assert [(e.bundle_id, e.discount_amount) for e in entries] == [("b4", 3.46)]
