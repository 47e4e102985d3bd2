"""
Pytest configuration for Campaigns module tests.
"""

import django
from django.conf import settings

# Configure Django before any campaigns imports
if not settings.configured:
    settings.configure(
        DATABASES={
            'default': {
                'ENGINE': 'django.db.backends.sqlite3',
                'NAME': ':memory:',
            }
        },
        INSTALLED_APPS=[
            'django.contrib.contenttypes',
            'campaigns',
        ],
        USE_TZ=True,
        TIME_ZONE='UTC',
        DEFAULT_AUTO_FIELD='django.db.models.BigAutoField',
        CAMPAIGNS={},
    )
django.setup()

# Import pytest and fixtures
import pytest
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from campaigns.choices import CouponDiscountType
from campaigns.rules import CartItem, CouponRule, FixedOffAction, PromotionRule
from campaigns.services.coupon_service import CouponService
from campaigns.services.memory_store import (
    InMemoryCampaignStore, InMemoryCatalog, InMemoryOrderHistory,
)
from campaigns.services.promotion_service import PromotionService


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Fixed clock for the services."""
    return lambda: NOW


@pytest.fixture
def store():
    return InMemoryCampaignStore()


@pytest.fixture
def catalog():
    return InMemoryCatalog({'p1': 'shoes', 'p2': 'shirts', 'p3': 'hats'})


@pytest.fixture
def order_history():
    return InMemoryOrderHistory()


@pytest.fixture
def coupon_service(store, catalog, order_history, clock):
    return CouponService(store, catalog=catalog, order_history=order_history, clock=clock)


@pytest.fixture
def promotion_service(store, clock):
    return PromotionService(store, clock=clock)


@pytest.fixture
def cart_items():
    """Two lines of p1 (variants v1) and one p2: total 250."""
    return [
        CartItem(product_id='p1', variant_id='v1', quantity=2, price=Decimal('100')),
        CartItem(product_id='p2', quantity=1, price=Decimal('50')),
    ]


@pytest.fixture
def make_coupon(store):
    """Create a coupon in the in-memory store; 10% off by default."""
    def _make(code='SAVE10', **overrides):
        fields = {
            'id': '',
            'code': code,
            'name': f'{code} coupon',
            'discount_type': CouponDiscountType.PERCENTAGE,
            'discount_value': Decimal('10'),
            'start_date': NOW - timedelta(days=1),
            'end_date': NOW + timedelta(days=30),
        }
        fields.update(overrides)
        return store.create_coupon(CouponRule(**fields))
    return _make


@pytest.fixture
def make_promotion(store):
    """Create a promotion in the in-memory store; 100 off by default."""
    def _make(name='Promo', **overrides):
        fields = {
            'id': '',
            'name': name,
            'start_date': NOW - timedelta(days=1),
            'end_date': NOW + timedelta(days=30),
            'actions': (FixedOffAction(value=Decimal('100')),),
        }
        fields.update(overrides)
        return store.create_promotion(PromotionRule(**fields))
    return _make
