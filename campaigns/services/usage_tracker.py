"""Coupon redemption tracking."""

import logging
import uuid
from decimal import Decimal
from typing import Callable

from django.utils import timezone

from campaigns.exceptions import CouponUsageLimitError
from campaigns.rules import CouponUsageRecord, to_decimal
from campaigns.services.stores import UsageStore

logger = logging.getLogger(__name__)


class UsageTracker:
    """
    Records coupon redemptions.

    Call this once, after the order is committed. There is no
    deduplication: calling twice records two usages.
    """

    def __init__(self, store: UsageStore, clock: Callable = timezone.now):
        self.store = store
        self.clock = clock

    def track_coupon_usage(
        self,
        coupon_id: str,
        user_id: str | None,
        order_id: str,
        discount_applied: Decimal,
    ) -> CouponUsageRecord:
        """
        Append a usage record and increment the coupon's usage counter.

        The store increments only while the coupon is below its usage limit;
        if another checkout took the last use first, nothing is written and
        CouponUsageLimitError is raised.
        """
        record = CouponUsageRecord(
            id=uuid.uuid4().hex,
            coupon_id=str(coupon_id),
            user_id=user_id,
            order_id=str(order_id),
            discount_applied=to_decimal(discount_applied),
            used_at=self.clock(),
        )
        if not self.store.record_usage(record):
            logger.warning(
                "Coupon %s usage limit reached, order %s not recorded", coupon_id, order_id
            )
            raise CouponUsageLimitError(str(coupon_id))
        logger.info("Recorded coupon %s usage for order %s", coupon_id, order_id)
        return record
