"""
Catalog Reference Protocol — interface for item and warehouse identities.

StockLedger defines this protocol; the catalog service implements it.
The ledger only ever reads through it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ItemInfo:
    """Identity and replenishment thresholds of an inventory item."""

    id: int
    sku: str
    unit_of_measure: str = "piece"
    min_stock_level: int = 0
    max_stock_level: int = 1000
    reorder_point: int = 10
    reorder_quantity: int = 50
    is_trackable: bool = True
    is_active: bool = True


@dataclass(frozen=True)
class WarehouseInfo:
    """Identity of a warehouse."""

    id: int
    code: str
    is_active: bool = True


@runtime_checkable
class CatalogReference(Protocol):
    """
    Protocol for catalog lookups.

    Implementations should:
    - Return None for identities that do not exist
    - Cache lookups and drop the cache on invalidate()
    """

    def get_item(self, item_id: int) -> ItemInfo | None:
        """
        Get item identity and thresholds.

        Args:
            item_id: Inventory item primary key

        Returns:
            ItemInfo or None if not found
        """
        ...

    def get_warehouse(self, warehouse_id: int) -> WarehouseInfo | None:
        """
        Get warehouse identity.

        Args:
            warehouse_id: Warehouse primary key

        Returns:
            WarehouseInfo or None if not found
        """
        ...

    def invalidate(self, item_id: int | None = None, warehouse_id: int | None = None) -> None:
        """Drop cached entries after a catalog change notification."""
        ...
