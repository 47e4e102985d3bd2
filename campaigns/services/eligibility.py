"""
Eligibility predicates shared by the coupon validator and the promotion resolver.

All functions are pure: they read the cart and the rule and never touch a
store. Numeric and date comparisons are inclusive.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from campaigns.rules import (
    ZERO, CartItem, Condition, MinAmountCondition, MinQuantityCondition,
    ProductVariantTarget, SpecificProductCondition,
)


def cart_quantity(cart_items: Iterable[CartItem]) -> int:
    """Total number of units in the cart."""
    return sum(item.quantity for item in cart_items)


def items_total(cart_items: Iterable[CartItem]) -> Decimal:
    """Sum of line totals."""
    return sum((item.line_total for item in cart_items), ZERO)


def is_within_window(now: datetime, start: datetime | None, end: datetime | None) -> bool:
    """True if ``now`` falls inside ``[start, end]``; a missing bound is open."""
    if start is not None and now < start:
        return False
    if end is not None and now > end:
        return False
    return True


def is_variant_eligible(
    cart_items: Sequence[CartItem],
    targets: Sequence[ProductVariantTarget],
) -> bool:
    """
    Check variant-level targeting.

    An empty target list means no restriction. Otherwise one satisfied
    target is enough: an ``ALL_VARIANTS`` target whose product is in the
    cart, or a ``SPECIFIC_VARIANTS`` target with a matching variant in the
    cart.
    """
    if not targets:
        return True
    return any(target.matches(item) for target in targets for item in cart_items)


def select_eligible_items(
    cart_items: Sequence[CartItem],
    targets: Sequence[ProductVariantTarget],
) -> list[CartItem]:
    """
    Return the cart items that form the discount base.

    Same matching rule as :func:`is_variant_eligible`; with no targets the
    whole cart is eligible.
    """
    if not targets:
        return list(cart_items)
    return [
        item for item in cart_items
        if any(target.matches(item) for target in targets)
    ]


def evaluate_condition(
    condition: Condition,
    cart_items: Sequence[CartItem],
    cart_total: Decimal,
) -> bool:
    """Evaluate one promotion condition against the cart."""
    if isinstance(condition, MinAmountCondition):
        return cart_total >= condition.value

    if isinstance(condition, MinQuantityCondition):
        return cart_quantity(cart_items) >= condition.value

    if isinstance(condition, SpecificProductCondition):
        product_ids = set(condition.product_ids)
        if condition.restricts_variants:
            return any(
                item.product_id in product_ids and item.variant_id in condition.variant_ids
                for item in cart_items
            )
        return any(item.product_id in product_ids for item in cart_items)

    raise TypeError(f"Unsupported condition: {condition!r}")


def evaluate_conditions(
    conditions: Sequence[Condition],
    cart_items: Sequence[CartItem],
    cart_total: Decimal,
) -> bool:
    """All conditions must hold (logical AND); no conditions means eligible."""
    return all(evaluate_condition(c, cart_items, cart_total) for c in conditions)
