"""
In-memory collaborators.

Dict-backed implementations of the store protocols, seeded from rules or
from exported documents. A lock makes ``record_usage`` a real
compare-and-increment, so concurrent redemptions cannot overshoot a limit.
"""

import threading
import uuid
from dataclasses import replace

from campaigns.choices import PromotionStatus
from campaigns.exceptions import DuplicateCouponCodeError
from campaigns.rules import CouponRule, CouponUsageRecord, PromotionRule


class InMemoryCampaignStore:
    """Coupons, promotions and usage records held in process memory."""

    def __init__(self, coupons=(), promotions=()):
        self._lock = threading.Lock()
        self._coupons: dict[str, CouponRule] = {}
        self._promotions: dict[str, PromotionRule] = {}
        self._usages: list[CouponUsageRecord] = []
        for coupon in coupons:
            self.create_coupon(coupon)
        for promotion in promotions:
            self.create_promotion(promotion)

    @classmethod
    def from_documents(
        cls,
        coupons: dict[str, dict] | None = None,
        promotions: dict[str, dict] | None = None,
    ) -> 'InMemoryCampaignStore':
        """Build a store from ``{document_id: document}`` mappings."""
        return cls(
            coupons=[CouponRule.from_document(k, v) for k, v in (coupons or {}).items()],
            promotions=[PromotionRule.from_document(k, v) for k, v in (promotions or {}).items()],
        )

    # Coupons

    def get_coupon(self, coupon_id: str) -> CouponRule:
        return self._coupons[coupon_id]

    def get_coupon_by_code(self, code: str) -> CouponRule | None:
        with self._lock:
            for coupon in self._coupons.values():
                if coupon.code == code and not coupon.is_deleted:
                    return coupon
        return None

    def create_coupon(self, rule: CouponRule) -> CouponRule:
        with self._lock:
            # Soft-deleted coupons keep their code
            if any(c.code == rule.code for c in self._coupons.values()):
                raise DuplicateCouponCodeError(rule.code)
            if not rule.id:
                rule = replace(rule, id=uuid.uuid4().hex)
            self._coupons[rule.id] = rule
        return rule

    def soft_delete_coupon(self, coupon_id: str) -> None:
        with self._lock:
            self._coupons[coupon_id] = replace(self._coupons[coupon_id], is_deleted=True)

    # Promotions

    def active_promotions(self) -> list[PromotionRule]:
        with self._lock:
            return [
                p for p in self._promotions.values()
                if p.status == PromotionStatus.ACTIVE and not p.is_deleted
            ]

    def create_promotion(self, rule: PromotionRule) -> PromotionRule:
        with self._lock:
            if not rule.id:
                rule = replace(rule, id=uuid.uuid4().hex)
            self._promotions[rule.id] = rule
        return rule

    def soft_delete_promotion(self, promotion_id: str) -> None:
        with self._lock:
            self._promotions[promotion_id] = replace(
                self._promotions[promotion_id], is_deleted=True
            )

    # Usage

    @property
    def usages(self) -> list[CouponUsageRecord]:
        return list(self._usages)

    def count_user_usages(self, coupon_id: str, user_id: str) -> int:
        with self._lock:
            return sum(
                1 for u in self._usages
                if u.coupon_id == coupon_id and u.user_id == user_id
            )

    def record_usage(self, record: CouponUsageRecord) -> bool:
        with self._lock:
            coupon = self._coupons[record.coupon_id]
            if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
                return False
            self._coupons[coupon.id] = replace(coupon, usage_count=coupon.usage_count + 1)
            self._usages.append(record)
        return True


class InMemoryCatalog:
    """Product to category mapping."""

    def __init__(self, categories: dict[str, str] | None = None):
        self._categories = dict(categories or {})

    def add_product(self, product_id: str, category: str) -> None:
        self._categories[product_id] = category

    def get_category(self, product_id: str) -> str | None:
        return self._categories.get(product_id)


class InMemoryOrderHistory:
    """Per-user order statuses."""

    CANCELLED_STATUSES = frozenset({'cancelled', 'canceled'})

    def __init__(self):
        self._orders: dict[str, list[tuple[str, str]]] = {}

    def add_order(self, user_id: str, order_id: str, status: str = 'COMPLETED') -> None:
        self._orders.setdefault(user_id, []).append((order_id, status))

    def has_prior_orders(self, user_id: str) -> bool:
        return any(
            status.lower() not in self.CANCELLED_STATUSES
            for _, status in self._orders.get(user_id, ())
        )
