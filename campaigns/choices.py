"""Choice enums shared by the models and the in-memory rules."""
from django.db import models


class CouponStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    INACTIVE = 'INACTIVE', 'Inactive'
    EXPIRED = 'EXPIRED', 'Expired'


class PromotionStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    INACTIVE = 'INACTIVE', 'Inactive'
    SCHEDULED = 'SCHEDULED', 'Scheduled'


class CouponDiscountType(models.TextChoices):
    """Types of coupon discounts."""
    PERCENTAGE = 'PERCENTAGE', 'Percentage'
    FIXED = 'FIXED', 'Fixed Amount'
    FREE_SHIPPING = 'FREE_SHIPPING', 'Free Shipping'


class VariantMode(models.TextChoices):
    ALL_VARIANTS = 'ALL_VARIANTS', 'All Variants'
    SPECIFIC_VARIANTS = 'SPECIFIC_VARIANTS', 'Specific Variants'


class ConditionType(models.TextChoices):
    """What a promotion requires from the cart."""
    MIN_AMOUNT = 'MIN_AMOUNT', 'Minimum Amount'
    MIN_QUANTITY = 'MIN_QUANTITY', 'Minimum Quantity'
    SPECIFIC_PRODUCT = 'SPECIFIC_PRODUCT', 'Specific Product'


class ActionType(models.TextChoices):
    """What a promotion gives once its conditions hold."""
    PERCENTAGE_OFF = 'PERCENTAGE_OFF', 'Percentage Off'
    FIXED_OFF = 'FIXED_OFF', 'Fixed Amount Off'
    FREE_SHIPPING = 'FREE_SHIPPING', 'Free Shipping'
    BOGO = 'BOGO', 'Buy One Get One'
