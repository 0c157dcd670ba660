"""
StockLedger Protocols.

Defines interfaces for external system integration.
"""

from stockledger.protocols.catalog import (
    CatalogReference,
    ItemInfo,
    WarehouseInfo,
)

__all__ = [
    "CatalogReference",
    "ItemInfo",
    "WarehouseInfo",
]
