"""
Unit tests for the eligibility predicates.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from campaigns.choices import VariantMode
from campaigns.rules import (
    CartItem, MinAmountCondition, MinQuantityCondition, ProductVariantTarget,
    SpecificProductCondition,
)
from campaigns.services.eligibility import (
    cart_quantity, evaluate_condition, evaluate_conditions, is_variant_eligible,
    is_within_window, items_total, select_eligible_items,
)


def specific(product_id, *variant_ids):
    return ProductVariantTarget(product_id, VariantMode.SPECIFIC_VARIANTS, frozenset(variant_ids))


def all_variants(product_id):
    return ProductVariantTarget(product_id, VariantMode.ALL_VARIANTS)


# ==============================================================================
# CART HELPERS
# ==============================================================================

class TestCartHelpers:
    """Tests for quantity and total helpers."""

    def test_cart_quantity(self, cart_items):
        """Test quantity sums all lines."""
        assert cart_quantity(cart_items) == 3

    def test_items_total(self, cart_items):
        """Test total sums line totals."""
        assert items_total(cart_items) == Decimal('250')

    def test_items_total_uses_upstream_discount(self):
        """Test per-unit discounts reduce the line total."""
        items = [CartItem(product_id='p1', quantity=2, price=Decimal('100'), discount=Decimal('15'))]
        assert items_total(items) == Decimal('170')

    def test_items_total_empty(self):
        """Test empty cart totals zero."""
        assert items_total([]) == Decimal('0')


# ==============================================================================
# DATE WINDOW
# ==============================================================================

class TestIsWithinWindow:
    """Tests for is_within_window."""

    def test_start_boundary_inclusive(self, now):
        """Test now == start is inside."""
        assert is_within_window(now, now, now + timedelta(days=1)) is True

    def test_end_boundary_inclusive(self, now):
        """Test now == end is inside."""
        assert is_within_window(now, now - timedelta(days=1), now) is True

    def test_before_start(self, now):
        """Test one second before start is outside."""
        assert is_within_window(now, now + timedelta(seconds=1), None) is False

    def test_after_end(self, now):
        """Test one second after end is outside."""
        assert is_within_window(now, None, now - timedelta(seconds=1)) is False

    def test_open_bounds(self, now):
        """Test missing bounds are open."""
        assert is_within_window(now, None, None) is True


# ==============================================================================
# VARIANT TARGETING
# ==============================================================================

class TestIsVariantEligible:
    """Tests for is_variant_eligible."""

    def test_no_targets_is_unrestricted(self, cart_items):
        """Test empty target list allows everything."""
        assert is_variant_eligible(cart_items, []) is True

    def test_all_variants_product_in_cart(self, cart_items):
        """Test ALL_VARIANTS matches any variant of the product."""
        assert is_variant_eligible(cart_items, [all_variants('p2')]) is True

    def test_specific_variant_in_cart(self, cart_items):
        """Test SPECIFIC_VARIANTS matches listed variant."""
        assert is_variant_eligible(cart_items, [specific('p1', 'v1', 'v3')]) is True

    def test_specific_variant_not_in_cart(self, cart_items):
        """Test SPECIFIC_VARIANTS rejects other variants of the product."""
        assert is_variant_eligible(cart_items, [specific('p1', 'v2')]) is False

    def test_product_not_in_cart(self, cart_items):
        """Test target for another product is not satisfied."""
        assert is_variant_eligible(cart_items, [all_variants('p9')]) is False

    def test_any_target_is_enough(self, cart_items):
        """Test targets are combined with OR."""
        targets = [specific('p1', 'v2'), all_variants('p9'), all_variants('p2')]
        assert is_variant_eligible(cart_items, targets) is True

    def test_item_without_variant_against_specific_target(self):
        """Test an item with no variant never matches a specific-variant target."""
        items = [CartItem(product_id='p1', quantity=1, price=Decimal('10'))]
        assert is_variant_eligible(items, [specific('p1', 'v1')]) is False

    def test_repeated_evaluation_is_stable(self, cart_items):
        """Test the predicate is a pure function of its inputs."""
        targets = [specific('p1', 'v1')]
        first = is_variant_eligible(cart_items, targets)
        assert is_variant_eligible(cart_items, targets) is first


class TestSelectEligibleItems:
    """Tests for select_eligible_items."""

    def test_no_targets_returns_whole_cart(self, cart_items):
        """Test empty targets select every item."""
        assert select_eligible_items(cart_items, []) == cart_items

    def test_selects_matching_items(self):
        """Test only matching variants are selected."""
        items = [
            CartItem(product_id='p1', variant_id='v1', quantity=1, price=Decimal('10')),
            CartItem(product_id='p1', variant_id='v2', quantity=1, price=Decimal('20')),
            CartItem(product_id='p2', quantity=1, price=Decimal('30')),
        ]
        selected = select_eligible_items(items, [specific('p1', 'v2'), all_variants('p2')])
        assert [(i.product_id, i.variant_id) for i in selected] == [('p1', 'v2'), ('p2', None)]

    def test_no_match_returns_empty(self, cart_items):
        """Test nothing is selected when no target matches."""
        assert select_eligible_items(cart_items, [all_variants('p9')]) == []


# ==============================================================================
# CONDITIONS
# ==============================================================================

class TestEvaluateCondition:
    """Tests for evaluate_condition."""

    def test_min_amount_met_at_boundary(self, cart_items):
        """Test MIN_AMOUNT is inclusive."""
        condition = MinAmountCondition(value=Decimal('250'))
        assert evaluate_condition(condition, cart_items, Decimal('250')) is True

    def test_min_amount_not_met(self, cart_items):
        """Test MIN_AMOUNT fails below value."""
        condition = MinAmountCondition(value=Decimal('250.01'))
        assert evaluate_condition(condition, cart_items, Decimal('250')) is False

    def test_min_amount_uses_cart_total(self, cart_items):
        """Test MIN_AMOUNT compares the given total, not the item sum."""
        condition = MinAmountCondition(value=Decimal('300'))
        assert evaluate_condition(condition, cart_items, Decimal('320')) is True

    def test_min_quantity_met_at_boundary(self, cart_items):
        """Test MIN_QUANTITY is inclusive."""
        condition = MinQuantityCondition(value=Decimal('3'))
        assert evaluate_condition(condition, cart_items, Decimal('250')) is True

    def test_min_quantity_not_met(self):
        """Test MIN_QUANTITY 3 with two units fails."""
        items = [
            CartItem(product_id='p1', quantity=1, price=Decimal('10')),
            CartItem(product_id='p2', quantity=1, price=Decimal('10')),
        ]
        condition = MinQuantityCondition(value=Decimal('3'))
        assert evaluate_condition(condition, items, Decimal('20')) is False

    def test_specific_product_present(self, cart_items):
        """Test SPECIFIC_PRODUCT matches a product in the cart."""
        condition = SpecificProductCondition(product_ids=('p9', 'p2'))
        assert evaluate_condition(condition, cart_items, Decimal('250')) is True

    def test_specific_product_absent(self, cart_items):
        """Test SPECIFIC_PRODUCT fails when no listed product is present."""
        condition = SpecificProductCondition(product_ids=('p9',))
        assert evaluate_condition(condition, cart_items, Decimal('250')) is False

    def test_specific_product_with_variant_restriction(self, cart_items):
        """Test SPECIFIC_VARIANTS requires product and variant together."""
        hit = SpecificProductCondition(
            product_ids=('p1',),
            variant_mode=VariantMode.SPECIFIC_VARIANTS,
            variant_ids=frozenset({'v1'}),
        )
        miss = SpecificProductCondition(
            product_ids=('p1',),
            variant_mode=VariantMode.SPECIFIC_VARIANTS,
            variant_ids=frozenset({'v2'}),
        )
        assert evaluate_condition(hit, cart_items, Decimal('250')) is True
        assert evaluate_condition(miss, cart_items, Decimal('250')) is False

    def test_variant_of_other_product_does_not_count(self):
        """Test the variant must belong to a listed product."""
        items = [CartItem(product_id='p2', variant_id='v1', quantity=1, price=Decimal('10'))]
        condition = SpecificProductCondition(
            product_ids=('p1',),
            variant_mode=VariantMode.SPECIFIC_VARIANTS,
            variant_ids=frozenset({'v1'}),
        )
        assert evaluate_condition(condition, items, Decimal('10')) is False

    def test_all_variants_mode_ignores_variant_ids(self, cart_items):
        """Test ALL_VARIANTS only needs the product."""
        condition = SpecificProductCondition(
            product_ids=('p1',),
            variant_mode=VariantMode.ALL_VARIANTS,
            variant_ids=frozenset({'v2'}),
        )
        assert evaluate_condition(condition, cart_items, Decimal('250')) is True

    def test_unsupported_condition_raises(self, cart_items):
        """Test unknown condition objects are rejected."""
        with pytest.raises(TypeError):
            evaluate_condition(object(), cart_items, Decimal('250'))


class TestEvaluateConditions:
    """Tests for evaluate_conditions."""

    def test_all_must_hold(self, cart_items):
        """Test conditions are combined with AND."""
        conditions = [
            MinAmountCondition(value=Decimal('100')),
            MinQuantityCondition(value=Decimal('5')),
        ]
        assert evaluate_conditions(conditions, cart_items, Decimal('250')) is False

    def test_all_hold(self, cart_items):
        """Test passing when every condition holds."""
        conditions = [
            MinAmountCondition(value=Decimal('100')),
            SpecificProductCondition(product_ids=('p2',)),
        ]
        assert evaluate_conditions(conditions, cart_items, Decimal('250')) is True

    def test_no_conditions(self, cart_items):
        """Test an empty condition list is satisfied."""
        assert evaluate_conditions([], cart_items, Decimal('250')) is True
