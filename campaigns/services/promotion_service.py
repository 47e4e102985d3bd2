"""
Promotion Service for the Campaigns module.

Resolves which automatic promotions apply to a cart, in two phases:

1. ``find_eligible_promotions``: every active promotion whose date window,
   variant targeting and conditions hold, with its computed discount,
   highest priority first.
2. ``select_applied_promotions``: the first eligible promotion decides. If
   it is not stackable it applies alone; if it is, every stackable
   eligible promotion applies and their discounts add up.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Sequence

from django.utils import timezone

from campaigns.rules import (
    ZERO, CartItem, FixedOffAction, PercentageOffAction, PromotionRule, normalize_instant,
    to_decimal,
)
from campaigns.services.eligibility import (
    evaluate_conditions, is_variant_eligible, is_within_window, items_total,
    select_eligible_items,
)
from campaigns.services.stores import PromotionStore

logger = logging.getLogger(__name__)


@dataclass
class AppliedPromotion:
    """A promotion together with the discount it gives this cart."""
    promotion: PromotionRule
    discount: Decimal


@dataclass
class PromotionResult:
    """Outcome of resolving promotions for a cart."""
    applied: list[AppliedPromotion] = field(default_factory=list)

    @property
    def promotions(self) -> list[PromotionRule]:
        return [a.promotion for a in self.applied]

    @property
    def total_discount(self) -> Decimal:
        return sum((a.discount for a in self.applied), ZERO)

    @property
    def promotion(self) -> PromotionRule | None:
        """First applied promotion, for callers that handle a single one."""
        return self.applied[0].promotion if self.applied else None

    @property
    def discount(self) -> Decimal:
        return self.total_discount


def promotion_discount(
    promotion: PromotionRule,
    cart_items: Sequence[CartItem],
    cart_total: Decimal,
) -> Decimal:
    """
    Discount given by the promotion's first action.

    Further actions are not evaluated. Free shipping and BOGO actions give
    no cart discount.
    """
    action = promotion.primary_action
    if isinstance(action, PercentageOffAction):
        if promotion.applicable_product_variants:
            base = items_total(
                select_eligible_items(cart_items, promotion.applicable_product_variants)
            )
        else:
            base = cart_total
        discount = base * action.value / 100
        if action.max_discount:
            discount = min(discount, action.max_discount)
        return discount
    if isinstance(action, FixedOffAction):
        return action.value
    return ZERO


def is_promotion_eligible(
    promotion: PromotionRule,
    cart_items: Sequence[CartItem],
    cart_total: Decimal,
    now: datetime,
) -> bool:
    """Date window (both bounds required), variant targeting, then all conditions."""
    if promotion.start_date is None or promotion.end_date is None:
        return False
    if not is_within_window(now, promotion.start_date, promotion.end_date):
        return False
    if not is_variant_eligible(cart_items, promotion.applicable_product_variants):
        return False
    return evaluate_conditions(promotion.conditions, cart_items, cart_total)


def select_applied_promotions(eligible: Sequence[AppliedPromotion]) -> list[AppliedPromotion]:
    """
    Pick the promotions that apply from the eligible list (priority order).

    Stackability is decided by the first eligible promotion: a non-stackable
    winner applies alone, a stackable one pulls in every other stackable
    promotion and skips the non-stackable ones.
    """
    if not eligible:
        return []
    winner = eligible[0]
    if not winner.promotion.stackable:
        return [winner]
    return [e for e in eligible if e.promotion.stackable]


class PromotionService:
    """Automatic promotion resolution over a promotion store."""

    def __init__(self, store: PromotionStore, clock: Callable = timezone.now):
        self.store = store
        self.clock = clock

    def find_eligible_promotions(
        self,
        cart_items: Sequence[CartItem],
        cart_total: Decimal,
    ) -> list[AppliedPromotion]:
        """Eligible promotions with a positive discount, highest priority first."""
        cart_total = to_decimal(cart_total) or ZERO
        now = normalize_instant(self.clock())

        # sorted() is stable: equal priorities keep store order
        promotions = sorted(self.store.active_promotions(), key=lambda p: p.priority, reverse=True)

        eligible = []
        for promotion in promotions:
            if not is_promotion_eligible(promotion, cart_items, cart_total, now):
                logger.debug("Promotion %s not eligible", promotion.id)
                continue
            discount = promotion_discount(promotion, cart_items, cart_total)
            if discount <= 0:
                logger.debug("Promotion %s gives no discount", promotion.id)
                continue
            eligible.append(AppliedPromotion(promotion=promotion, discount=discount))
        return eligible

    def calculate_cart_discount(
        self,
        cart_items: Sequence[CartItem],
        cart_total: Decimal,
    ) -> PromotionResult:
        """
        Resolve the promotions that apply to a cart.

        Args:
            cart_items: Items in the cart
            cart_total: Precomputed cart total

        Returns:
            PromotionResult; empty (zero discount) when nothing applies
        """
        eligible = self.find_eligible_promotions(cart_items, cart_total)
        result = PromotionResult(applied=select_applied_promotions(eligible))
        if result.applied:
            logger.debug(
                "Applied promotions %s, total discount %s",
                [p.id for p in result.promotions], result.total_discount,
            )
        return result
