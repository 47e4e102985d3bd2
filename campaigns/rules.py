"""
Rule types for the Campaigns module.

Coupons and promotions are evaluated as frozen, normalized rules. Stored
records (Django rows or documents exported from the store) are converted
here, at the data-access boundary, so the eligibility predicates only ever
see Decimals and aware datetimes.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal, InvalidOperation
from typing import ClassVar, Union

from django.utils.dateparse import parse_datetime

from campaigns.choices import (
    ActionType, ConditionType, CouponStatus, PromotionStatus, VariantMode,
)
from campaigns.exceptions import MalformedRecordError


ZERO = Decimal('0')


# ==============================================================================
# VALUE NORMALIZATION
# ==============================================================================

def to_decimal(value) -> Decimal | None:
    """Convert a stored number (int, float, str, Decimal) to Decimal."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise MalformedRecordError(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise MalformedRecordError(f"Expected a number, got {value!r}") from exc


def to_int(value) -> int | None:
    number = to_decimal(value)
    if number is None:
        return None
    if number != number.to_integral_value():
        raise MalformedRecordError(f"Expected a whole number, got {value!r}")
    return int(number)


def normalize_instant(value) -> datetime | None:
    """
    Normalize a stored timestamp to an aware datetime.

    Accepts datetimes (naive ones are read as UTC), dates, ISO-8601 strings,
    epoch seconds and serialized document timestamps such as
    ``{"seconds": 1700000000, "nanoseconds": 0}``.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            return value.replace(tzinfo=dt_timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=dt_timezone.utc)
    if isinstance(value, bool):
        raise MalformedRecordError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        return datetime.fromtimestamp(float(value), tz=dt_timezone.utc)
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value.strip())
        except ValueError as exc:
            raise MalformedRecordError(f"Not a timestamp: {value!r}") from exc
        if parsed is None:
            raise MalformedRecordError(f"Not a timestamp: {value!r}")
        return normalize_instant(parsed)
    if isinstance(value, dict):
        seconds = value.get('seconds', value.get('_seconds'))
        if seconds is None:
            raise MalformedRecordError(f"Not a timestamp: {value!r}")
        nanos = value.get('nanoseconds', value.get('_nanoseconds')) or 0
        instant = datetime.fromtimestamp(int(seconds), tz=dt_timezone.utc)
        return instant + timedelta(microseconds=int(nanos) // 1000)
    raise MalformedRecordError(f"Not a timestamp: {value!r}")


def _required_decimal(doc: dict, key: str) -> Decimal:
    number = to_decimal(doc[key])
    if number is None:
        raise MalformedRecordError(f"Missing {key!r} in {doc!r}")
    return number


def _id_tuple(values) -> tuple[str, ...]:
    return tuple(str(v) for v in (values or ()))


# ==============================================================================
# CART
# ==============================================================================

@dataclass(frozen=True)
class CartItem:
    """A line in the cart being evaluated."""
    product_id: str
    quantity: int
    price: Decimal
    variant_id: str | None = None
    discount: Decimal = ZERO  # per-unit discount already applied upstream

    def __post_init__(self):
        object.__setattr__(self, 'price', to_decimal(self.price))
        object.__setattr__(self, 'discount', to_decimal(self.discount) or ZERO)
        if self.price is None or self.price < 0:
            raise ValueError(f"Invalid price for {self.product_id}: {self.price}")
        if self.discount < 0:
            raise ValueError(f"Invalid discount for {self.product_id}: {self.discount}")
        if self.quantity < 1:
            raise ValueError(f"Invalid quantity for {self.product_id}: {self.quantity}")

    @property
    def line_total(self) -> Decimal:
        return max(self.price - self.discount, ZERO) * self.quantity

    @classmethod
    def from_dict(cls, data: dict) -> 'CartItem':
        """Build a cart item from the checkout payload shape."""
        return cls(
            product_id=str(data['productId']),
            variant_id=data.get('variantId') or None,
            quantity=to_int(data['quantity']),
            price=data['price'],
            discount=data.get('discount') or ZERO,
        )


# ==============================================================================
# TARGETING
# ==============================================================================

@dataclass(frozen=True)
class ProductVariantTarget:
    """Restricts a coupon or promotion to a product, or some of its variants."""
    product_id: str
    variant_mode: str = VariantMode.ALL_VARIANTS
    variant_ids: frozenset[str] = frozenset()

    def __post_init__(self):
        if self.variant_mode == VariantMode.ALL_VARIANTS:
            object.__setattr__(self, 'variant_ids', frozenset())
        elif self.variant_mode == VariantMode.SPECIFIC_VARIANTS:
            object.__setattr__(self, 'variant_ids', frozenset(self.variant_ids))
            if not self.variant_ids:
                raise ValueError(f"No variants given for target {self.product_id}")
        else:
            raise ValueError(f"Unknown variant mode: {self.variant_mode!r}")

    def matches(self, item: CartItem) -> bool:
        if item.product_id != self.product_id:
            return False
        if self.variant_mode == VariantMode.ALL_VARIANTS:
            return True
        return item.variant_id in self.variant_ids

    def to_document(self) -> dict:
        doc = {'productId': self.product_id, 'variantMode': str(self.variant_mode)}
        if self.variant_ids:
            doc['variantIds'] = sorted(self.variant_ids)
        return doc


def parse_target(doc: dict) -> ProductVariantTarget:
    return ProductVariantTarget(
        product_id=str(doc['productId']),
        variant_mode=doc.get('variantMode') or VariantMode.ALL_VARIANTS,
        variant_ids=frozenset(_id_tuple(doc.get('variantIds'))),
    )


# ==============================================================================
# PROMOTION CONDITIONS
# ==============================================================================

@dataclass(frozen=True)
class MinAmountCondition:
    value: Decimal
    kind: ClassVar[str] = ConditionType.MIN_AMOUNT

    def to_document(self) -> dict:
        return {'type': str(self.kind), 'value': str(self.value)}


@dataclass(frozen=True)
class MinQuantityCondition:
    value: Decimal
    kind: ClassVar[str] = ConditionType.MIN_QUANTITY

    def to_document(self) -> dict:
        return {'type': str(self.kind), 'value': str(self.value)}


@dataclass(frozen=True)
class SpecificProductCondition:
    """At least one of ``product_ids`` must be in the cart (optionally as one of ``variant_ids``)."""
    product_ids: tuple[str, ...]
    variant_mode: str | None = None
    variant_ids: frozenset[str] = frozenset()
    kind: ClassVar[str] = ConditionType.SPECIFIC_PRODUCT

    @property
    def restricts_variants(self) -> bool:
        return self.variant_mode == VariantMode.SPECIFIC_VARIANTS and bool(self.variant_ids)

    def to_document(self) -> dict:
        doc = {
            'type': str(self.kind),
            'value': self.product_ids[0] if self.product_ids else '',
            'productIds': list(self.product_ids),
        }
        if self.variant_mode:
            doc['variantMode'] = str(self.variant_mode)
        if self.variant_ids:
            doc['variantIds'] = sorted(self.variant_ids)
        return doc


Condition = Union[MinAmountCondition, MinQuantityCondition, SpecificProductCondition]


def parse_condition(doc: dict) -> Condition:
    kind = doc.get('type')
    if kind == ConditionType.MIN_AMOUNT:
        return MinAmountCondition(value=_required_decimal(doc, 'value'))
    if kind == ConditionType.MIN_QUANTITY:
        return MinQuantityCondition(value=_required_decimal(doc, 'value'))
    if kind == ConditionType.SPECIFIC_PRODUCT:
        product_ids = doc.get('productIds') or [doc['value']]
        return SpecificProductCondition(
            product_ids=_id_tuple(product_ids),
            variant_mode=doc.get('variantMode') or None,
            variant_ids=frozenset(_id_tuple(doc.get('variantIds'))),
        )
    raise MalformedRecordError(f"Unknown condition type: {kind!r}")


# ==============================================================================
# PROMOTION ACTIONS
# ==============================================================================

@dataclass(frozen=True)
class PercentageOffAction:
    value: Decimal
    max_discount: Decimal | None = None
    kind: ClassVar[str] = ActionType.PERCENTAGE_OFF

    def to_document(self) -> dict:
        doc = {'type': str(self.kind), 'value': str(self.value)}
        if self.max_discount is not None:
            doc['maxDiscount'] = str(self.max_discount)
        return doc


@dataclass(frozen=True)
class FixedOffAction:
    value: Decimal
    kind: ClassVar[str] = ActionType.FIXED_OFF

    def to_document(self) -> dict:
        return {'type': str(self.kind), 'value': str(self.value)}


@dataclass(frozen=True)
class FreeShippingAction:
    kind: ClassVar[str] = ActionType.FREE_SHIPPING

    def to_document(self) -> dict:
        return {'type': str(self.kind), 'value': '0'}


@dataclass(frozen=True)
class BogoAction:
    value: Decimal | None = None
    kind: ClassVar[str] = ActionType.BOGO

    def to_document(self) -> dict:
        return {'type': str(self.kind), 'value': str(self.value or ZERO)}


Action = Union[PercentageOffAction, FixedOffAction, FreeShippingAction, BogoAction]


def parse_action(doc: dict) -> Action:
    kind = doc.get('type')
    if kind == ActionType.PERCENTAGE_OFF:
        return PercentageOffAction(
            value=_required_decimal(doc, 'value'),
            max_discount=to_decimal(doc.get('maxDiscount')),
        )
    if kind == ActionType.FIXED_OFF:
        return FixedOffAction(value=_required_decimal(doc, 'value'))
    if kind == ActionType.FREE_SHIPPING:
        return FreeShippingAction()
    if kind == ActionType.BOGO:
        return BogoAction(value=to_decimal(doc.get('value')))
    raise MalformedRecordError(f"Unknown action type: {kind!r}")


# ==============================================================================
# COUPONS AND PROMOTIONS
# ==============================================================================

@dataclass(frozen=True)
class CouponRule:
    """A code-activated discount, as seen by the validator."""
    id: str
    code: str
    discount_type: str
    discount_value: Decimal
    status: str = CouponStatus.ACTIVE
    name: str = ''
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_discount: Decimal | None = None
    min_order_amount: Decimal | None = None
    min_quantity: int | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    per_user_limit: int | None = None
    restricted_to_users: tuple[str, ...] = ()
    applicable_products: tuple[str, ...] = ()
    applicable_product_variants: tuple[ProductVariantTarget, ...] = ()
    applicable_categories: tuple[str, ...] = ()
    excluded_products: tuple[str, ...] = ()
    first_order_only: bool = False
    is_deleted: bool = False

    @classmethod
    def from_document(cls, coupon_id: str, doc: dict) -> 'CouponRule':
        """Parse a stored coupon document (camelCase keys)."""
        try:
            return cls(
                id=str(coupon_id),
                code=str(doc['code']),
                name=doc.get('name') or '',
                discount_type=doc['discountType'],
                discount_value=_required_decimal(doc, 'discountValue'),
                status=doc.get('status') or CouponStatus.ACTIVE,
                start_date=normalize_instant(doc.get('startDate')),
                end_date=normalize_instant(doc.get('endDate')),
                max_discount=to_decimal(doc.get('maxDiscount')),
                min_order_amount=to_decimal(doc.get('minOrderAmount')),
                min_quantity=to_int(doc.get('minQuantity')),
                usage_limit=to_int(doc.get('usageLimit')),
                usage_count=to_int(doc.get('usageCount')) or 0,
                per_user_limit=to_int(doc.get('perUserLimit')),
                restricted_to_users=_id_tuple(doc.get('restrictedToUsers')),
                applicable_products=_id_tuple(doc.get('applicableProducts')),
                applicable_product_variants=tuple(
                    parse_target(t) for t in doc.get('applicableProductVariants') or ()
                ),
                applicable_categories=_id_tuple(doc.get('applicableCategories')),
                excluded_products=_id_tuple(doc.get('excludedProducts')),
                first_order_only=bool(doc.get('firstOrderOnly')),
                is_deleted=bool(doc.get('isDeleted')),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedRecordError(f"Malformed coupon {coupon_id}: {exc}") from exc


@dataclass(frozen=True)
class PromotionRule:
    """An automatic, code-less discount."""
    id: str
    name: str = ''
    status: str = PromotionStatus.ACTIVE
    start_date: datetime | None = None
    end_date: datetime | None = None
    priority: int = 0
    stackable: bool = False
    conditions: tuple[Condition, ...] = ()
    actions: tuple[Action, ...] = ()
    applicable_product_variants: tuple[ProductVariantTarget, ...] = ()
    usage_count: int = 0
    is_deleted: bool = False

    @property
    def primary_action(self) -> Action | None:
        # Only the first action is evaluated
        return self.actions[0] if self.actions else None

    @classmethod
    def from_document(cls, promotion_id: str, doc: dict) -> 'PromotionRule':
        """Parse a stored promotion document (camelCase keys)."""
        try:
            return cls(
                id=str(promotion_id),
                name=doc.get('name') or '',
                status=doc.get('status') or PromotionStatus.ACTIVE,
                start_date=normalize_instant(doc.get('startDate')),
                end_date=normalize_instant(doc.get('endDate')),
                priority=to_int(doc.get('priority')) or 0,
                stackable=bool(doc.get('stackable')),
                conditions=tuple(parse_condition(c) for c in doc.get('conditions') or ()),
                actions=tuple(parse_action(a) for a in doc.get('actions') or ()),
                applicable_product_variants=tuple(
                    parse_target(t) for t in doc.get('applicableProductVariants') or ()
                ),
                usage_count=to_int(doc.get('usageCount')) or 0,
                is_deleted=bool(doc.get('isDeleted')),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedRecordError(f"Malformed promotion {promotion_id}: {exc}") from exc


@dataclass(frozen=True)
class CouponUsageRecord:
    """Immutable audit record of one coupon redemption."""
    id: str
    coupon_id: str
    user_id: str | None
    order_id: str
    discount_applied: Decimal
    used_at: datetime
