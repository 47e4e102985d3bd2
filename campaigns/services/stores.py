"""
Collaborator interfaces for the discount engine.

The validator and resolver only read through these protocols, so they can
run against the Django ORM (:mod:`campaigns.services.orm_store`) or fully in
memory (:mod:`campaigns.services.memory_store`).
"""

from typing import Protocol

from campaigns.rules import CouponRule, CouponUsageRecord, PromotionRule


class CouponStore(Protocol):

    def get_coupon_by_code(self, code: str) -> CouponRule | None:
        """Exact, case-sensitive lookup. Soft-deleted coupons are not returned."""

    def create_coupon(self, rule: CouponRule) -> CouponRule:
        """Persist a new coupon. Raises DuplicateCouponCodeError."""

    def soft_delete_coupon(self, coupon_id: str) -> None:
        ...


class PromotionStore(Protocol):

    def active_promotions(self) -> list[PromotionRule]:
        """All ACTIVE, non-deleted promotions."""

    def create_promotion(self, rule: PromotionRule) -> PromotionRule:
        ...

    def soft_delete_promotion(self, promotion_id: str) -> None:
        ...


class UsageStore(Protocol):

    def count_user_usages(self, coupon_id: str, user_id: str) -> int:
        ...

    def record_usage(self, record: CouponUsageRecord) -> bool:
        """
        Increment the coupon's usage counter and append ``record``, as one unit.

        The increment only happens while the counter is below the coupon's
        ``usage_limit`` (no limit, or 0, means always). Returns False, writing
        nothing, otherwise.
        """


class ProductCatalog(Protocol):

    def get_category(self, product_id: str) -> str | None:
        ...


class OrderHistory(Protocol):

    def has_prior_orders(self, user_id: str) -> bool:
        """True if the user has at least one order that was not cancelled."""


class CampaignStore(CouponStore, PromotionStore, UsageStore, Protocol):
    """Coupons, promotions and usage records behind one object."""
