"""
Django StockLedger — multi-warehouse inventory stock ledger.

Usage:
    from stockledger import stock, StockError

    stock.receive(50, item, warehouse, unit_cost=Decimal('10'))
    stock.ship(5, item, warehouse)
    stock.total_quantity(item)  # 45
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'stock':
        from stockledger.service import Stock
        return Stock
    elif name == 'StockError':
        from stockledger.exceptions import StockError
        return StockError
    elif name == 'Reference':
        from stockledger.references import Reference
        return Reference
    elif name == 'InventoryItem':
        from stockledger.models.catalog import InventoryItem
        return InventoryItem
    elif name == 'Warehouse':
        from stockledger.models.catalog import Warehouse
        return Warehouse
    elif name == 'WarehouseStock':
        from stockledger.models.stock import WarehouseStock
        return WarehouseStock
    elif name == 'StockMovement':
        from stockledger.models.movement import StockMovement
        return StockMovement
    elif name == 'StockAlert':
        from stockledger.models.alert import StockAlert
        return StockAlert
    elif name == 'MovementType':
        from stockledger.models.enums import MovementType
        return MovementType
    elif name == 'AlertType':
        from stockledger.models.enums import AlertType
        return AlertType
    elif name == 'AlertStatus':
        from stockledger.models.enums import AlertStatus
        return AlertStatus
    elif name == 'AlertPriority':
        from stockledger.models.enums import AlertPriority
        return AlertPriority
    elif name == 'StockStatus':
        from stockledger.models.enums import StockStatus
        return StockStatus
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'stock',
    'StockError',
    'Reference',
    'InventoryItem',
    'Warehouse',
    'WarehouseStock',
    'StockMovement',
    'StockAlert',
    'MovementType',
    'AlertType',
    'AlertStatus',
    'AlertPriority',
    'StockStatus',
]

__version__ = '0.1.0'
