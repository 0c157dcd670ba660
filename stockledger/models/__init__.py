"""
StockLedger Models.

Core models for stock management:
- InventoryItem / Warehouse: catalog reference data (read-only here)
- WarehouseStock: balance per (item, warehouse)
- StockMovement: immutable ledger of changes
- StockAlert: derived threshold alerts
"""

from stockledger.models.alert import StockAlert
from stockledger.models.catalog import InventoryItem, Warehouse
from stockledger.models.enums import (
    AlertPriority,
    AlertStatus,
    AlertType,
    MovementType,
    StockStatus,
)
from stockledger.models.movement import StockMovement
from stockledger.models.stock import WarehouseStock

__all__ = [
    'MovementType',
    'AlertType',
    'AlertStatus',
    'AlertPriority',
    'StockStatus',
    'InventoryItem',
    'Warehouse',
    'WarehouseStock',
    'StockMovement',
    'StockAlert',
]
