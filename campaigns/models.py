"""
Models for Campaigns module.

Supports:
- Coupons (code-activated discounts with usage limits)
- Coupon usage history
- Promotions (automatic discounts with conditions and actions)

Targeting lists, conditions and actions are stored as JSON in the same
shape the storefront writes them; ``to_rule()`` turns a row into the
normalized rule the services evaluate.
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from campaigns.choices import (
    CouponDiscountType, CouponStatus, PromotionStatus,
)
from campaigns.exceptions import MalformedRecordError
from campaigns.rules import (
    CouponRule, CouponUsageRecord, PromotionRule,
    normalize_instant, parse_action, parse_condition, parse_target,
)


class Coupon(models.Model):
    """
    Coupon codes for discounts.

    Never hard-deleted; ``is_deleted`` hides a coupon from lookups while its
    code stays reserved.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Coupon identification
    code = models.CharField(max_length=50, unique=True, db_index=True)
    name = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)

    # Discount configuration
    discount_type = models.CharField(
        max_length=20,
        choices=CouponDiscountType.choices,
        default=CouponDiscountType.PERCENTAGE
    )
    discount_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    max_discount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Maximum discount amount (for percentage discounts)"
    )

    # Conditions
    min_order_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Minimum order amount to apply coupon"
    )
    min_quantity = models.PositiveIntegerField(null=True, blank=True)
    applicable_products = models.JSONField(default=list, blank=True)
    applicable_product_variants = models.JSONField(
        default=list,
        blank=True,
        help_text="Variant targets; takes precedence over applicable products"
    )
    applicable_categories = models.JSONField(default=list, blank=True)
    excluded_products = models.JSONField(default=list, blank=True)

    # Usage limits
    usage_limit = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum total uses (null = unlimited)"
    )
    usage_count = models.PositiveIntegerField(default=0)
    per_user_limit = models.PositiveIntegerField(null=True, blank=True)

    # Users
    restricted_to_users = models.JSONField(
        default=list,
        blank=True,
        help_text="User IDs allowed to redeem (empty = all users)"
    )
    first_order_only = models.BooleanField(default=False)

    # Validity period
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)

    # Status
    status = models.CharField(
        max_length=20,
        choices=CouponStatus.choices,
        default=CouponStatus.ACTIVE
    )
    is_deleted = models.BooleanField(default=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'start_date', 'end_date']),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}" if self.name else self.code

    @property
    def remaining_uses(self) -> int | None:
        """Get remaining uses, or None if unlimited."""
        if not self.usage_limit:
            return None
        return max(0, self.usage_limit - self.usage_count)

    def to_rule(self) -> CouponRule:
        """Normalized rule. Raises MalformedRecordError for unreadable JSON fields."""
        try:
            return CouponRule(
                id=str(self.id),
                code=self.code,
                name=self.name,
                discount_type=self.discount_type,
                discount_value=self.discount_value,
                status=self.status,
                start_date=normalize_instant(self.start_date),
                end_date=normalize_instant(self.end_date),
                max_discount=self.max_discount,
                min_order_amount=self.min_order_amount,
                min_quantity=self.min_quantity,
                usage_limit=self.usage_limit,
                usage_count=self.usage_count,
                per_user_limit=self.per_user_limit,
                restricted_to_users=tuple(str(u) for u in self.restricted_to_users or ()),
                applicable_products=tuple(str(p) for p in self.applicable_products or ()),
                applicable_product_variants=tuple(
                    parse_target(t) for t in self.applicable_product_variants or ()
                ),
                applicable_categories=tuple(str(c) for c in self.applicable_categories or ()),
                excluded_products=tuple(str(p) for p in self.excluded_products or ()),
                first_order_only=self.first_order_only,
                is_deleted=self.is_deleted,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedRecordError(f"Malformed coupon {self.id}: {exc}") from exc

    @classmethod
    def from_rule(cls, rule: CouponRule) -> 'Coupon':
        """Unsaved instance carrying the rule's fields."""
        coupon = cls(
            code=rule.code,
            name=rule.name,
            discount_type=rule.discount_type,
            discount_value=rule.discount_value,
            max_discount=rule.max_discount,
            min_order_amount=rule.min_order_amount,
            min_quantity=rule.min_quantity,
            applicable_products=list(rule.applicable_products),
            applicable_product_variants=[t.to_document() for t in rule.applicable_product_variants],
            applicable_categories=list(rule.applicable_categories),
            excluded_products=list(rule.excluded_products),
            usage_limit=rule.usage_limit,
            usage_count=rule.usage_count,
            per_user_limit=rule.per_user_limit,
            restricted_to_users=list(rule.restricted_to_users),
            first_order_only=rule.first_order_only,
            end_date=rule.end_date,
            status=rule.status,
            is_deleted=rule.is_deleted,
        )
        if rule.start_date:
            coupon.start_date = rule.start_date
        return coupon


class CouponUsage(models.Model):
    """Coupon redemption history. Rows are only ever appended."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, related_name='usages')
    user_id = models.CharField(max_length=50, null=True, blank=True)
    order_id = models.CharField(max_length=50)
    discount_applied = models.DecimalField(max_digits=10, decimal_places=2)
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-used_at']
        indexes = [
            models.Index(fields=['coupon', 'user_id']),
        ]

    def __str__(self):
        return f"{self.coupon_id} - {self.order_id}"

    def to_record(self) -> CouponUsageRecord:
        return CouponUsageRecord(
            id=str(self.id),
            coupon_id=str(self.coupon_id),
            user_id=self.user_id,
            order_id=self.order_id,
            discount_applied=self.discount_applied,
            used_at=self.used_at,
        )


class Promotion(models.Model):
    """
    Automatic promotions.

    Unlike coupons, promotions don't require a code. Higher priority is
    evaluated first.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Promotion identification
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)

    # Rules
    conditions = models.JSONField(
        default=list,
        blank=True,
        help_text="All conditions must hold: [{type, value, productIds?, variantMode?, variantIds?}]"
    )
    actions = models.JSONField(
        default=list,
        blank=True,
        help_text="[{type, value, maxDiscount?}]; only the first action is applied"
    )
    applicable_product_variants = models.JSONField(default=list, blank=True)

    # Validity period
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()

    # Priority (higher = applied first)
    priority = models.IntegerField(default=0)

    # Stacking
    stackable = models.BooleanField(
        default=False,
        help_text="Can this promotion stack with others?"
    )

    # Status
    status = models.CharField(
        max_length=20,
        choices=PromotionStatus.choices,
        default=PromotionStatus.ACTIVE
    )
    usage_count = models.PositiveIntegerField(default=0)
    is_deleted = models.BooleanField(default=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-priority', '-created_at']
        indexes = [
            models.Index(fields=['status', 'start_date', 'end_date']),
            models.Index(fields=['priority']),
        ]

    def __str__(self):
        return self.name

    def to_rule(self) -> PromotionRule:
        """Normalized rule. Raises MalformedRecordError for unreadable JSON fields."""
        try:
            return PromotionRule(
                id=str(self.id),
                name=self.name,
                status=self.status,
                start_date=normalize_instant(self.start_date),
                end_date=normalize_instant(self.end_date),
                priority=self.priority,
                stackable=self.stackable,
                conditions=tuple(parse_condition(c) for c in self.conditions or ()),
                actions=tuple(parse_action(a) for a in self.actions or ()),
                applicable_product_variants=tuple(
                    parse_target(t) for t in self.applicable_product_variants or ()
                ),
                usage_count=self.usage_count,
                is_deleted=self.is_deleted,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedRecordError(f"Malformed promotion {self.id}: {exc}") from exc

    @classmethod
    def from_rule(cls, rule: PromotionRule) -> 'Promotion':
        """Unsaved instance carrying the rule's fields."""
        return cls(
            name=rule.name,
            conditions=[c.to_document() for c in rule.conditions],
            actions=[a.to_document() for a in rule.actions],
            applicable_product_variants=[t.to_document() for t in rule.applicable_product_variants],
            start_date=rule.start_date,
            end_date=rule.end_date,
            priority=rule.priority,
            stackable=rule.stackable,
            status=rule.status,
            usage_count=rule.usage_count,
            is_deleted=rule.is_deleted,
        )
