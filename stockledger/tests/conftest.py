"""
Pytest fixtures for StockLedger tests.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone

from stockledger.adapters.catalog import reset_catalog
from stockledger.models import InventoryItem, Warehouse


User = get_user_model()


@pytest.fixture(autouse=True)
def clean_cache():
    """Catalog entries and totals must not leak between tests."""
    cache.clear()
    reset_catalog()
    yield
    cache.clear()
    reset_catalog()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='testuser',
        password='testpass123'
    )


@pytest.fixture
def item(db):
    """Trackable item: low at <= 10, overstocked above 100."""
    return InventoryItem.objects.create(
        sku='WID-001',
        name='Widget',
        unit_cost=Decimal('10.00'),
        min_stock_level=5,
        max_stock_level=100,
        reorder_point=10,
        reorder_quantity=50,
    )


@pytest.fixture
def other_item(db):
    return InventoryItem.objects.create(
        sku='GAD-002',
        name='Gadget',
        unit_cost=Decimal('4.00'),
        max_stock_level=500,
        reorder_point=20,
    )


@pytest.fixture
def service_item(db):
    """Non-trackable item (a service, not a good)."""
    return InventoryItem.objects.create(
        sku='SRV-001',
        name='Installation',
        is_trackable=False,
    )


@pytest.fixture
def main_wh(db):
    return Warehouse.objects.create(code='MAIN', name='Main warehouse')


@pytest.fixture
def north_wh(db):
    return Warehouse.objects.create(code='NORTH', name='North depot')


@pytest.fixture
def today():
    """Return today's date."""
    return timezone.localdate()


@pytest.fixture
def in_ten_days(today):
    return today + timedelta(days=10)


@pytest.fixture
def last_week(today):
    return today - timedelta(days=7)
