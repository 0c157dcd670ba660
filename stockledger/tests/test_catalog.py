"""
Tests for the catalog adapter, references and error payloads.
"""

from decimal import Decimal

import pytest
from django.core.exceptions import ImproperlyConfigured

from stockledger import StockError
from stockledger.adapters.catalog import ModelCatalog, get_catalog, reset_catalog
from stockledger.models import InventoryItem
from stockledger.protocols import CatalogReference, ItemInfo
from stockledger.references import Reference


@pytest.mark.django_db
class TestModelCatalog:

    def test_default_backend(self):
        catalog = get_catalog()

        assert isinstance(catalog, ModelCatalog)
        assert isinstance(catalog, CatalogReference)
        assert get_catalog() is catalog

    def test_get_item(self, item):
        info = get_catalog().get_item(item.pk)

        assert info == ItemInfo(
            id=item.pk,
            sku='WID-001',
            unit_of_measure='piece',
            min_stock_level=5,
            max_stock_level=100,
            reorder_point=10,
            reorder_quantity=50,
            is_trackable=True,
            is_active=True,
        )

    def test_get_warehouse(self, main_wh):
        info = get_catalog().get_warehouse(main_wh.pk)

        assert info.code == 'MAIN'
        assert get_catalog().get_warehouse(999999) is None

    def test_lookups_are_cached(self, item):
        catalog = get_catalog()
        catalog.get_item(item.pk)

        InventoryItem.objects.filter(pk=item.pk).update(reorder_point=3)

        assert catalog.get_item(item.pk).reorder_point == 10

    def test_save_invalidates(self, item):
        catalog = get_catalog()
        catalog.get_item(item.pk)

        item.reorder_point = 3
        item.save()

        assert catalog.get_item(item.pk).reorder_point == 3

    def test_delete_invalidates(self, db):
        doomed = InventoryItem.objects.create(sku='TMP-1', name='Temporary')
        catalog = get_catalog()
        assert catalog.get_item(doomed.pk) is not None
        pk = doomed.pk

        doomed.delete()

        assert catalog.get_item(pk) is None


class TestGetCatalog:

    def test_bad_backend(self, settings):
        settings.STOCKLEDGER = {'CATALOG_BACKEND': 'stockledger.adapters.missing.Catalog'}
        reset_catalog()

        with pytest.raises(ImproperlyConfigured):
            get_catalog()

    def test_empty_backend(self, settings):
        settings.STOCKLEDGER = {'CATALOG_BACKEND': ''}
        reset_catalog()

        with pytest.raises(ImproperlyConfigured):
            get_catalog()


class TestReference:

    def test_of(self):
        assert Reference.of(None) is None
        assert Reference.of(('shipment', 42)) == Reference('shipment', '42')
        ref = Reference('po', 'PO-1')
        assert Reference.of(ref) is ref

    def test_of_rejects_strings(self):
        with pytest.raises(TypeError):
            Reference.of('PO-1')

    def test_transfer_references_are_unique(self):
        first, second = Reference.transfer(), Reference.transfer()

        assert first.type == 'transfer'
        assert first != second

    def test_str(self):
        assert str(Reference('po', 'PO-1')) == 'po:PO-1'


class TestStockError:

    def test_default_message(self):
        error = StockError('BUSY', key=(1, 2))

        assert error.message == 'Stock is being modified by another operation, retry'
        assert error.is_retryable

    def test_as_dict(self):
        error = StockError('INSUFFICIENT_STOCK', available=3, requested=5, balance=3,
                           unit_cost=Decimal('1.50'))

        assert error.as_dict() == {
            'code': 'INSUFFICIENT_STOCK',
            'message': 'Not enough stock available',
            'data': {'available': 3, 'requested': 5, 'balance': 3, 'unit_cost': '1.50'},
        }
        assert not error.is_retryable

    def test_custom_message(self):
        assert str(StockError('INVALID_QUANTITY', message='Nope')) == 'Nope'
