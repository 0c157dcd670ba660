"""
Tests for stock.reserve() / stock.release_reservation().
"""

import pytest

from stockledger import stock, StockError
from stockledger.models import StockMovement, WarehouseStock


pytestmark = pytest.mark.django_db


@pytest.fixture
def stocked(item, main_wh):
    stock.receive(40, item, main_wh)
    return WarehouseStock.objects.get(item=item, warehouse=main_wh)


class TestReserve:

    def test_reserve_earmarks_units(self, item, main_wh, stocked):
        """A reservation writes no ledger entry and keeps the balance."""
        row = stock.reserve(15, item, main_wh, reference=('order', 'SO-1'))

        assert row.quantity_reserved == 15
        assert row.quantity_available == 40
        assert row.unreserved == 25
        assert StockMovement.objects.count() == 1

    def test_reserve_more_than_unreserved(self, item, main_wh, stocked):
        stock.reserve(30, item, main_wh)

        with pytest.raises(StockError) as exc:
            stock.reserve(11, item, main_wh)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert exc.value.available == 10
        assert exc.value.data['reserved'] == 30
        assert WarehouseStock.objects.get(pk=stocked.pk).quantity_reserved == 30

    def test_reserve_invalid_quantity(self, item, main_wh, stocked):
        with pytest.raises(StockError) as exc:
            stock.reserve(0, item, main_wh)

        assert exc.value.code == 'INVALID_QUANTITY'

    def test_non_trackable_item_is_noop(self, service_item, main_wh):
        """Non-trackable items never get a balance row, not even for reservations."""
        assert stock.reserve(5, service_item, main_wh) is None
        assert stock.release_reservation(5, service_item, main_wh) is None

        assert not WarehouseStock.objects.filter(item=service_item).exists()
        assert not StockMovement.objects.exists()


class TestReservedStockIsProtected:
    """Unreserved removals may only take unreserved units."""

    def test_ship_cannot_take_reserved_units(self, item, main_wh, stocked):
        stock.reserve(30, item, main_wh)

        with pytest.raises(StockError) as exc:
            stock.ship(11, item, main_wh)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert exc.value.available == 10
        assert exc.value.balance == 40

    def test_negative_adjustment_cannot_take_reserved_units(self, item, main_wh, stocked):
        stock.reserve(30, item, main_wh)

        with pytest.raises(StockError):
            stock.adjust(-11, item, main_wh)

    def test_ship_from_reservation(self, item, main_wh, stocked):
        """Shipping a reservation consumes it."""
        stock.reserve(30, item, main_wh)

        stock.ship(30, item, main_wh, from_reservation=True)

        row = WarehouseStock.objects.get(pk=stocked.pk)
        assert row.quantity_available == 10
        assert row.quantity_reserved == 0

    def test_ship_from_reservation_beyond_reserved(self, item, main_wh, stocked):
        stock.reserve(5, item, main_wh)

        with pytest.raises(StockError) as exc:
            stock.ship(6, item, main_wh, from_reservation=True)

        assert exc.value.code == 'INSUFFICIENT_RESERVED'
        assert exc.value.data['reserved'] == 5


class TestRelease:

    def test_release(self, item, main_wh, stocked):
        stock.reserve(20, item, main_wh)

        row = stock.release_reservation(15, item, main_wh)

        assert row.quantity_reserved == 5
        assert StockMovement.objects.count() == 1

    def test_release_more_than_reserved(self, item, main_wh, stocked):
        stock.reserve(5, item, main_wh)

        with pytest.raises(StockError) as exc:
            stock.release_reservation(6, item, main_wh)

        assert exc.value.code == 'INSUFFICIENT_RESERVED'
        assert WarehouseStock.objects.get(pk=stocked.pk).quantity_reserved == 5


class TestReservedTotals:

    def test_available_quantity_excludes_reservations(self, item, main_wh, north_wh, stocked):
        stock.receive(10, item, north_wh)
        stock.reserve(15, item, main_wh)
        stock.reserve(4, item, north_wh)

        assert stock.total_quantity(item) == 50
        assert stock.reserved_quantity(item) == 19
        assert stock.available_quantity(item) == 31
