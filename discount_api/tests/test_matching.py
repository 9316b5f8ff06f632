"""
Tests for cart normalization and grouped component matching.
"""
from bundle_discounts.schemas.bundle import BundleBase, CartLineItem, VariantSnapshot
from bundle_discounts.services.matching import consume_selection, match_bundle, normalize_cart_items


def _bundle(components, **rules):
    return BundleBase(components=components, rules={"type": "fixed", "value": 10, **rules})


TWO_GROUPS = [
    {"variant_id": "V-100-A", "quantity": 1, "group": "A"},
    {"variant_id": "V-200-A", "quantity": 1, "group": "B"},
]


class TestNormalizeCartItems:
    """Cart lines are merged, floored and sorted."""

    def test_merges_and_sorts(self):
        cart = normalize_cart_items([
            {"variantId": "b", "quantity": 1},
            {"variant_id": "a", "quantity": 2},
            {"variantId": " b ", "quantity": 2.7},
        ])
        assert cart == [CartLineItem(variant_id="a", quantity=2), CartLineItem(variant_id="b", quantity=3)]

    def test_drops_unusable_lines(self):
        cart = normalize_cart_items([
            {"variantId": "", "quantity": 1},
            {"variantId": "x", "quantity": 0},
            {"variantId": "y", "quantity": -2},
            {"variantId": "z", "quantity": 0.4},
            {"variantId": "w", "quantity": "lots"},
            {"variantId": "v", "quantity": float("nan")},
        ])
        assert cart == []

    def test_none_is_empty(self):
        assert normalize_cart_items(None) == []


class TestMatchBundle:
    """Grouped requirements against a priced cart."""

    def test_all_groups_present_is_eligible(self, prices):
        cart = [{"variantId": "V-100-A", "quantity": 1}, {"variantId": "V-200-A", "quantity": 1}]
        match = match_bundle(_bundle(TWO_GROUPS), cart, prices)

        assert match.eligible
        assert match.matched_variant_ids == ["V-100-A", "V-200-A"]
        assert match.matched_product_ids == ["p1", "p2"]
        assert match.eligible_subtotal == 150

    def test_missing_group_is_not_eligible(self, prices):
        match = match_bundle(_bundle(TWO_GROUPS), [{"variantId": "V-100-A", "quantity": 1}], prices)
        assert not match.eligible
        assert match.matched_product_ids == []

    def test_insufficient_quantity(self, prices):
        components = [{"variant_id": "V-100-A", "quantity": 2, "group": "A"}]
        match = match_bundle(_bundle(components), [{"variantId": "V-100-A", "quantity": 1}], prices)
        assert not match.eligible

    def test_unpriced_variant_does_not_match(self):
        lookup = {"V-100-A": VariantSnapshot(variant_id="V-100-A", product_id="p1", price=100.0)}
        cart = [{"variantId": "V-100-A", "quantity": 1}, {"variantId": "V-200-A", "quantity": 1}]
        assert not match_bundle(_bundle(TWO_GROUPS), cart, lookup).eligible

    def test_inactive_variant_does_not_match(self, prices):
        prices["V-200-A"] = VariantSnapshot(variant_id="V-200-A", product_id="p2", price=50.0, is_active=False)
        cart = [{"variantId": "V-100-A", "quantity": 1}, {"variantId": "V-200-A", "quantity": 1}]
        assert not match_bundle(_bundle(TWO_GROUPS), cart, prices).eligible

    def test_min_cart_qty(self, prices):
        bundle = _bundle(TWO_GROUPS, eligibility={"min_cart_qty": 3})
        cart = [{"variantId": "V-100-A", "quantity": 1}, {"variantId": "V-200-A", "quantity": 1}]
        assert not match_bundle(bundle, cart, prices).eligible

        cart.append({"variantId": "V-200-B", "quantity": 1})
        assert match_bundle(bundle, cart, prices).eligible

    def test_cheapest_option_within_group(self, prices):
        components = [
            {"variant_id": "V-100-A", "quantity": 1, "group": "A"},
            {"variant_id": "V-200-A", "quantity": 1, "group": "B"},
            {"variant_id": "V-200-B", "quantity": 1, "group": "B"},
        ]
        cart = [
            {"variantId": "V-100-A", "quantity": 1},
            {"variantId": "V-200-A", "quantity": 1},
            {"variantId": "V-200-B", "quantity": 1},
        ]
        match = match_bundle(_bundle(components), cart, prices)
        assert match.matched_variant_ids == ["V-100-A", "V-200-A"]
        assert match.eligible_subtotal == 150

    def test_any_group_when_not_all_required(self, prices):
        bundle = _bundle(TWO_GROUPS, eligibility={"must_include_all_groups": False})
        match = match_bundle(bundle, [{"variantId": "V-200-A", "quantity": 1}], prices)

        assert match.eligible
        assert match.matched_variant_ids == ["V-200-A"]
        assert match.eligible_subtotal == 50

    def test_product_reference_takes_highest_price_first(self, prices):
        components = [{"variant_id": "product:p2", "quantity": 2, "group": "A"}]
        cart = [{"variantId": "V-200-A", "quantity": 3}, {"variantId": "V-200-B", "quantity": 1}]
        match = match_bundle(_bundle(components), cart, prices)

        assert match.eligible
        assert [(l.variant_id, l.quantity) for l in match.selection] == [("V-200-B", 1), ("V-200-A", 1)]
        assert match.eligible_subtotal == 130
        assert match.matched_product_ids == ["p2"]

    def test_product_id_falls_back_to_variant_id(self):
        lookup = {"solo": VariantSnapshot(variant_id="solo", price=20.0)}
        components = [{"variant_id": "solo", "quantity": 1, "group": "A"}]
        match = match_bundle(_bundle(components), [{"variantId": "solo", "quantity": 1}], lookup)
        assert match.matched_product_ids == ["solo"]

    def test_available_pool_is_not_mutated(self, prices):
        cart = [{"variantId": "V-100-A", "quantity": 1}, {"variantId": "V-200-A", "quantity": 1}]
        pool = {"V-100-A": 1, "V-200-A": 1}
        match = match_bundle(_bundle(TWO_GROUPS), cart, prices, available=pool)

        assert pool == {"V-100-A": 1, "V-200-A": 1}
        assert consume_selection(pool, match.selection) == {"V-100-A": 0, "V-200-A": 0}

    def test_no_components(self, prices):
        assert not match_bundle(_bundle([]), [{"variantId": "V-100-A", "quantity": 1}], prices).eligible
