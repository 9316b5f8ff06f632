from .coupons import issue_or_reuse_coupon_for_cart
from .evaluator import evaluate_cart
from .summary import merge_bundles_summary

__all__ = ["evaluate_cart", "merge_bundles_summary", "issue_or_reuse_coupon_for_cart"]
