"""
Coupon Service for the Campaigns module.

Validates a coupon code against a cart and computes its discount.
Business-rule failures come back as an invalid ``CouponResult`` with a
message; only store or configuration errors raise.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Sequence

from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from campaigns.choices import CouponDiscountType, CouponStatus
from campaigns.rules import ZERO, CartItem, CouponRule, normalize_instant, to_decimal
from campaigns.services.eligibility import (
    cart_quantity, is_variant_eligible, items_total, select_eligible_items,
)
from campaigns.services.stores import CampaignStore, OrderHistory, ProductCatalog

logger = logging.getLogger(__name__)


@dataclass
class CouponResult:
    """Outcome of validating a coupon against a cart."""
    valid: bool
    discount: Decimal = ZERO
    message: str | None = None
    coupon: CouponRule | None = None
    # The coupon is fine but does not apply to what is in the cart
    restricted: bool = False
    free_shipping: bool = False


class CouponService:
    """
    Coupon validation and creation.

    Handles:
    - Status, date window and usage limit checks
    - User restrictions (allow-list, per-user limit, first order)
    - Cart restrictions (amount, quantity, products, variants, categories)
    - Discount computation for fixed and percentage coupons
    """

    def __init__(
        self,
        store: CampaignStore,
        catalog: ProductCatalog | None = None,
        order_history: OrderHistory | None = None,
        clock: Callable = timezone.now,
    ):
        self.store = store
        self.catalog = catalog
        self.order_history = order_history
        self.clock = clock

    def validate_coupon(
        self,
        code: str,
        user_id: str | None,
        cart_total: Decimal,
        cart_items: Sequence[CartItem],
    ) -> CouponResult:
        """
        Validate a coupon code for a cart.

        Checks run in a fixed order and stop at the first failure, so the
        message tells the customer the most fundamental problem first.

        Args:
            code: Coupon code, matched exactly
            user_id: Signed-in user, or None for guest checkout
            cart_total: Precomputed cart total
            cart_items: Items in the cart

        Returns:
            CouponResult
        """
        cart_total = to_decimal(cart_total) or ZERO

        coupon = self.store.get_coupon_by_code(code)
        if coupon is None:
            return self._invalid(code, "Invalid coupon code")

        if coupon.status != CouponStatus.ACTIVE:
            return self._invalid(code, "Coupon is not active")

        now = normalize_instant(self.clock())
        if coupon.start_date and now < coupon.start_date:
            return self._invalid(code, "Coupon is not yet valid")
        if coupon.end_date and now > coupon.end_date:
            return self._invalid(code, "Coupon has expired")

        if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
            return self._invalid(code, "Coupon usage limit reached")

        if coupon.restricted_to_users and (
            user_id is None or user_id not in coupon.restricted_to_users
        ):
            return self._invalid(code, "This coupon is not available for your account")

        if coupon.per_user_limit and user_id is not None:
            used = self.store.count_user_usages(coupon.id, user_id)
            if used >= coupon.per_user_limit:
                return self._invalid(code, "You have already used this coupon")

        if coupon.min_order_amount and cart_total < coupon.min_order_amount:
            return self._invalid(
                code, f"Minimum order amount of {coupon.min_order_amount} required"
            )

        if coupon.min_quantity and cart_quantity(cart_items) < coupon.min_quantity:
            return self._invalid(
                code, f"Minimum quantity of {coupon.min_quantity} items required"
            )

        reason = self._check_cart_contents(coupon, cart_items)
        if reason:
            return self._invalid(code, reason, restricted=True)

        if coupon.first_order_only:
            if user_id is None:
                return self._invalid(code, "Please sign in to use this coupon")
            if self._get_order_history().has_prior_orders(user_id):
                return self._invalid(code, "This coupon is only valid for your first order")

        discount = self.calculate_discount(coupon, cart_total, cart_items)
        return CouponResult(
            valid=True,
            discount=discount,
            message="Coupon applied",
            coupon=coupon,
            free_shipping=coupon.discount_type == CouponDiscountType.FREE_SHIPPING,
        )

    def calculate_discount(
        self,
        coupon: CouponRule,
        cart_total: Decimal,
        cart_items: Sequence[CartItem],
    ) -> Decimal:
        """
        Discount amount of an already validated coupon.

        Percentage coupons are computed on the discount base: the targeted
        items (variant targeting first, then the product list) or the whole
        cart total, less any excluded products.
        """
        if coupon.discount_type == CouponDiscountType.FIXED:
            return coupon.discount_value

        if coupon.discount_type == CouponDiscountType.PERCENTAGE:
            excluded = set(coupon.excluded_products)
            if coupon.applicable_product_variants:
                base_items = select_eligible_items(cart_items, coupon.applicable_product_variants)
            elif coupon.applicable_products:
                applicable = set(coupon.applicable_products)
                base_items = [i for i in cart_items if i.product_id in applicable]
            else:
                base_items = None

            if base_items is None:
                base = cart_total - items_total(i for i in cart_items if i.product_id in excluded)
            else:
                base = items_total(i for i in base_items if i.product_id not in excluded)

            discount = max(base, ZERO) * coupon.discount_value / 100
            if coupon.max_discount:
                discount = min(discount, coupon.max_discount)
            return discount

        # Free shipping is reported through CouponResult.free_shipping
        return ZERO

    def create_coupon(self, rule: CouponRule) -> CouponRule:
        """Create a coupon. Raises DuplicateCouponCodeError if the code is taken."""
        if not rule.code or not rule.code.strip():
            raise ValueError("Coupon code is required")
        coupon = self.store.create_coupon(rule)
        logger.info("Created coupon %s (%s)", coupon.code, coupon.id)
        return coupon

    def _check_cart_contents(self, coupon: CouponRule, cart_items: Sequence[CartItem]) -> str | None:
        """Return the reason the cart does not qualify, or None."""
        if coupon.applicable_product_variants:
            if not is_variant_eligible(cart_items, coupon.applicable_product_variants):
                return "Coupon does not apply to the items in your cart"
        elif coupon.applicable_products:
            applicable = set(coupon.applicable_products)
            if not any(item.product_id in applicable for item in cart_items):
                return "Coupon is not valid for the products in your cart"

        if coupon.applicable_categories:
            categories = set(coupon.applicable_categories)
            catalog = self._get_catalog()
            product_ids = {item.product_id for item in cart_items}
            if not any(catalog.get_category(pid) in categories for pid in product_ids):
                return "Coupon is not valid for the categories in your cart"

        if coupon.excluded_products and cart_items:
            excluded = set(coupon.excluded_products)
            if all(item.product_id in excluded for item in cart_items):
                return "Coupon cannot be applied to the products in your cart"

        return None

    def _get_catalog(self) -> ProductCatalog:
        if self.catalog is None:
            raise ImproperlyConfigured(
                "A product catalog is required to validate category-restricted coupons"
            )
        return self.catalog

    def _get_order_history(self) -> OrderHistory:
        if self.order_history is None:
            raise ImproperlyConfigured(
                "An order history is required to validate first-order coupons"
            )
        return self.order_history

    def _invalid(self, code: str, message: str, restricted: bool = False) -> CouponResult:
        logger.debug("Coupon %r rejected: %s", code, message)
        return CouponResult(valid=False, discount=ZERO, message=message, restricted=restricted)
