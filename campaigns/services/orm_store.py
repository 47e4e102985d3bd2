"""
Django ORM collaborators.

``DjangoCampaignStore`` reads and writes coupons, promotions and usage
records through the Campaigns models and hands the services normalized
rules. Product catalog and order history live in other modules; wire them
with the ``PRODUCT_CATALOG`` / ``ORDER_HISTORY`` settings.
"""

import logging

from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone
from django.utils.module_loading import import_string

from campaigns.choices import PromotionStatus
from campaigns.conf import get_setting
from campaigns.exceptions import DuplicateCouponCodeError
from campaigns.rules import CouponRule, CouponUsageRecord, PromotionRule

logger = logging.getLogger(__name__)


class DjangoCampaignStore:
    """Campaign store backed by the Django ORM."""

    def __init__(self):
        self._coupon_model = None
        self._usage_model = None
        self._promotion_model = None

    @property
    def Coupon(self):
        """Lazy-load Coupon model."""
        if self._coupon_model is None:
            from campaigns.models import Coupon
            self._coupon_model = Coupon
        return self._coupon_model

    @property
    def CouponUsage(self):
        """Lazy-load CouponUsage model."""
        if self._usage_model is None:
            from campaigns.models import CouponUsage
            self._usage_model = CouponUsage
        return self._usage_model

    @property
    def Promotion(self):
        """Lazy-load Promotion model."""
        if self._promotion_model is None:
            from campaigns.models import Promotion
            self._promotion_model = Promotion
        return self._promotion_model

    # Coupons

    def get_coupon_by_code(self, code: str) -> CouponRule | None:
        try:
            coupon = self.Coupon.objects.get(code=code, is_deleted=False)
        except self.Coupon.DoesNotExist:
            return None
        return coupon.to_rule()

    def create_coupon(self, rule: CouponRule) -> CouponRule:
        """Insert a coupon; the database assigns a new id."""
        if self.Coupon.objects.filter(code=rule.code).exists():
            raise DuplicateCouponCodeError(rule.code)
        coupon = self.Coupon.from_rule(rule)
        try:
            with transaction.atomic():
                coupon.save(force_insert=True)
        except IntegrityError as exc:
            # Lost a race with a concurrent insert of the same code
            raise DuplicateCouponCodeError(rule.code) from exc
        return coupon.to_rule()

    def soft_delete_coupon(self, coupon_id: str) -> None:
        self.Coupon.objects.filter(pk=coupon_id).update(
            is_deleted=True, updated_at=timezone.now()
        )

    # Promotions

    def active_promotions(self) -> list[PromotionRule]:
        promotions = self.Promotion.objects.filter(
            status=PromotionStatus.ACTIVE,
            is_deleted=False,
        ).order_by('-priority', '-created_at')
        return [p.to_rule() for p in promotions]

    def create_promotion(self, rule: PromotionRule) -> PromotionRule:
        promotion = self.Promotion.from_rule(rule)
        promotion.save(force_insert=True)
        return promotion.to_rule()

    def soft_delete_promotion(self, promotion_id: str) -> None:
        self.Promotion.objects.filter(pk=promotion_id).update(
            is_deleted=True, updated_at=timezone.now()
        )

    # Usage

    def count_user_usages(self, coupon_id: str, user_id: str) -> int:
        return self.CouponUsage.objects.filter(coupon_id=coupon_id, user_id=user_id).count()

    def record_usage(self, record: CouponUsageRecord) -> bool:
        """
        Conditionally increment ``usage_count`` and insert the usage row.

        The increment is a single UPDATE guarded by the limit, so two
        checkouts racing for the last use cannot both succeed.
        """
        below_limit = (
            Q(usage_limit__isnull=True)
            | Q(usage_limit=0)
            | Q(usage_count__lt=F('usage_limit'))
        )
        with transaction.atomic():
            updated = self.Coupon.objects.filter(below_limit, pk=record.coupon_id).update(
                usage_count=F('usage_count') + 1,
                updated_at=timezone.now(),
            )
            if not updated:
                if not self.Coupon.objects.filter(pk=record.coupon_id).exists():
                    raise self.Coupon.DoesNotExist(f"Coupon {record.coupon_id} not found")
                return False
            self.CouponUsage.objects.create(
                id=record.id,
                coupon_id=record.coupon_id,
                user_id=record.user_id,
                order_id=record.order_id,
                discount_applied=record.discount_applied,
                used_at=record.used_at,
            )
        return True


def load_collaborator(setting_name: str):
    """
    Instantiate the collaborator class named by a dotted-path setting.

    Returns None when the setting is empty.
    """
    path = get_setting(setting_name)
    if not path:
        return None
    try:
        collaborator_class = import_string(path)
    except ImportError as exc:
        raise ImproperlyConfigured(f"CAMPAIGNS[{setting_name!r}] = {path!r}: {exc}") from exc
    return collaborator_class()
