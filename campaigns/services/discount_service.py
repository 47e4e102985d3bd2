"""
Discount Service for the Campaigns module.

Entry point for checkout and POS: combines automatic promotions and an
optional coupon into one order-level result, and records coupon usage once
the order is placed.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional, Sequence

from django.utils import timezone

from campaigns.conf import get_setting
from campaigns.rules import ZERO, CartItem, CouponUsageRecord, to_decimal
from campaigns.services.coupon_service import CouponResult, CouponService
from campaigns.services.promotion_service import PromotionResult, PromotionService
from campaigns.services.stores import CampaignStore, OrderHistory, ProductCatalog
from campaigns.services.usage_tracker import UsageTracker


@dataclass
class AppliedDiscount:
    """Represents a discount applied to an order."""
    source: str  # 'coupon' or 'promotion'
    source_id: str
    source_name: str
    discount_type: str
    discount_amount: Decimal


@dataclass
class DiscountResult:
    """Result of applying discounts to an order."""
    original_total: Decimal
    discounted_total: Decimal
    total_discount: Decimal
    applied_discounts: list[AppliedDiscount]
    errors: list[str]
    free_shipping: bool = False
    coupon_result: CouponResult | None = None
    promotion_result: PromotionResult = field(default_factory=PromotionResult)


# Singleton instance
_discount_service: Optional['DiscountService'] = None


def get_discount_service() -> 'DiscountService':
    """Get or create the singleton DiscountService wired to the Django store."""
    global _discount_service
    if _discount_service is None:
        from campaigns.services.orm_store import DjangoCampaignStore, load_collaborator
        _discount_service = DiscountService(
            store=DjangoCampaignStore(),
            catalog=load_collaborator('PRODUCT_CATALOG'),
            order_history=load_collaborator('ORDER_HISTORY'),
        )
    return _discount_service


class DiscountService:
    """
    Service for applying discounts at checkout.

    Handles:
    - Automatic promotion resolution
    - Coupon validation
    - Coupon/promotion combination rules
    - Coupon usage recording
    """

    def __init__(
        self,
        store: CampaignStore,
        catalog: ProductCatalog | None = None,
        order_history: OrderHistory | None = None,
        clock: Callable = timezone.now,
    ):
        self.store = store
        self.coupons = CouponService(store, catalog=catalog, order_history=order_history, clock=clock)
        self.promotions = PromotionService(store, clock=clock)
        self.usage_tracker = UsageTracker(store, clock=clock)

    def validate_coupon(
        self,
        code: str,
        user_id: str | None,
        cart_total: Decimal,
        cart_items: Sequence[CartItem],
    ) -> CouponResult:
        return self.coupons.validate_coupon(code, user_id, cart_total, cart_items)

    def calculate_cart_discount(
        self,
        cart_items: Sequence[CartItem],
        cart_total: Decimal,
    ) -> PromotionResult:
        return self.promotions.calculate_cart_discount(cart_items, cart_total)

    def calculate_order_discounts(
        self,
        cart_items: Sequence[CartItem],
        cart_total: Decimal,
        coupon_code: str | None = None,
        user_id: str | None = None,
    ) -> DiscountResult:
        """
        Calculate all applicable discounts for an order.

        Args:
            cart_items: Items in the cart
            cart_total: Precomputed cart total
            coupon_code: Optional coupon code to apply
            user_id: Optional signed-in user

        Returns:
            DiscountResult with all applied discounts
        """
        order_total = to_decimal(cart_total) or ZERO
        applied_discounts: list[AppliedDiscount] = []
        errors: list[str] = []

        promotion_result = PromotionResult()
        if get_setting('enable_promotions'):
            promotion_result = self.promotions.calculate_cart_discount(cart_items, order_total)

        coupon_result = None
        if coupon_code:
            if not get_setting('enable_coupons'):
                errors.append("Coupons are disabled")
            else:
                coupon_result = self.coupons.validate_coupon(
                    coupon_code, user_id, order_total, cart_items
                )
                if not coupon_result.valid:
                    errors.append(coupon_result.message)

        coupon_applied = coupon_result is not None and coupon_result.valid
        if coupon_applied and not get_setting('combine_coupon_with_promotions'):
            promotion_result = PromotionResult()

        for applied in promotion_result.applied:
            action = applied.promotion.primary_action
            applied_discounts.append(AppliedDiscount(
                source='promotion',
                source_id=applied.promotion.id,
                source_name=applied.promotion.name,
                discount_type=str(action.kind),
                discount_amount=applied.discount,
            ))

        if coupon_applied and coupon_result.discount > 0:
            coupon = coupon_result.coupon
            applied_discounts.append(AppliedDiscount(
                source='coupon',
                source_id=coupon.id,
                source_name=coupon.name or coupon.code,
                discount_type=str(coupon.discount_type),
                discount_amount=coupon_result.discount,
            ))

        total_discount = sum((d.discount_amount for d in applied_discounts), ZERO)
        return DiscountResult(
            original_total=order_total,
            discounted_total=max(ZERO, order_total - total_discount),
            total_discount=total_discount,
            applied_discounts=applied_discounts,
            errors=errors,
            free_shipping=coupon_applied and coupon_result.free_shipping,
            coupon_result=coupon_result,
            promotion_result=promotion_result,
        )

    def record_coupon_usage(
        self,
        coupon_id: str,
        user_id: str | None,
        order_id: str,
        discount_applied: Decimal,
    ) -> CouponUsageRecord:
        """
        Record that a coupon was used.

        Call this after the order is committed.
        """
        return self.usage_tracker.track_coupon_usage(coupon_id, user_id, order_id, discount_applied)
