"""
StockLedger Catalog Adapter — item/warehouse lookups.

This module loads the configured CatalogReference from settings and ships
the default implementation backed by the app's reference tables.

Usage:
    from stockledger.adapters import get_catalog

    catalog = get_catalog()
    info = catalog.get_item(item.pk)

Settings:
    STOCKLEDGER = {
        "CATALOG_BACKEND": "stockledger.adapters.catalog.ModelCatalog",
    }
"""

from __future__ import annotations

import logging
import threading

from django.core.cache import caches
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from stockledger.conf import ledger_settings
from stockledger.protocols.catalog import CatalogReference, ItemInfo, WarehouseInfo

logger = logging.getLogger(__name__)

# Cached backend instance
_lock = threading.Lock()
_catalog: CatalogReference | None = None


class ModelCatalog:
    """
    CatalogReference over InventoryItem / Warehouse rows.

    Lookups go through the Django cache. Entries are dropped by the
    post_save / post_delete receivers in stockledger.receivers.
    """

    item_key = "stockledger:catalog:item:{}"
    warehouse_key = "stockledger:catalog:warehouse:{}"

    @property
    def cache(self):
        return caches[ledger_settings.CACHE_ALIAS]

    def get_item(self, item_id: int) -> ItemInfo | None:
        key = self.item_key.format(item_id)
        info = self.cache.get(key)
        if info is not None:
            return info

        from stockledger.models.catalog import InventoryItem

        item = InventoryItem.objects.filter(pk=item_id).first()
        if item is None:
            return None

        info = ItemInfo(
            id=item.pk,
            sku=item.sku,
            unit_of_measure=item.unit_of_measure,
            min_stock_level=item.min_stock_level,
            max_stock_level=item.max_stock_level,
            reorder_point=item.reorder_point,
            reorder_quantity=item.reorder_quantity,
            is_trackable=item.is_trackable,
            is_active=item.is_active,
        )
        self.cache.set(key, info, ledger_settings.CACHE_TIMEOUT)
        return info

    def get_warehouse(self, warehouse_id: int) -> WarehouseInfo | None:
        key = self.warehouse_key.format(warehouse_id)
        info = self.cache.get(key)
        if info is not None:
            return info

        from stockledger.models.catalog import Warehouse

        warehouse = Warehouse.objects.filter(pk=warehouse_id).first()
        if warehouse is None:
            return None

        info = WarehouseInfo(id=warehouse.pk, code=warehouse.code, is_active=warehouse.is_active)
        self.cache.set(key, info, ledger_settings.CACHE_TIMEOUT)
        return info

    def invalidate(self, item_id: int | None = None, warehouse_id: int | None = None) -> None:
        if item_id is not None:
            self.cache.delete(self.item_key.format(item_id))
        if warehouse_id is not None:
            self.cache.delete(self.warehouse_key.format(warehouse_id))


def get_catalog() -> CatalogReference:
    """
    Return the configured catalog backend.

    Returns:
        CatalogReference instance

    Raises:
        ImproperlyConfigured: If CATALOG_BACKEND is empty or import fails
    """
    global _catalog

    if _catalog is None:
        with _lock:
            if _catalog is None:  # double-checked
                backend_path = ledger_settings.CATALOG_BACKEND

                if not backend_path:
                    raise ImproperlyConfigured(
                        "STOCKLEDGER['CATALOG_BACKEND'] must be configured. "
                        "Example: 'stockledger.adapters.catalog.ModelCatalog'"
                    )

                try:
                    backend_class = import_string(backend_path)
                    _catalog = backend_class()
                    logger.debug("Loaded catalog backend: %s", backend_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import catalog backend '{backend_path}': {e}"
                    ) from e

    return _catalog


def reset_catalog() -> None:
    """Reset the cached backend. Useful for testing."""
    global _catalog
    _catalog = None
