"""
Stock reservations — earmark available units for an order.

A reservation does not change quantity_available (so it writes no ledger
entry); it raises quantity_reserved, which unreserved removals must
respect. Shipping with from_reservation=True consumes it.
"""

import logging

from django.db import transaction

from stockledger.exceptions import StockError
from stockledger.services.movements import (
    StockMovements,
    _check_quantity,
    _pk,
    critical_section,
    invalidate_item_cache,
)

logger = logging.getLogger('stockledger')


class StockReservations:
    """Reservation methods."""

    @classmethod
    def reserve(cls, quantity, item, warehouse, reference=None, actor=None):
        """
        Earmark units at a warehouse.

        Raises:
            StockError('INSUFFICIENT_STOCK'): If quantity > unreserved stock

        Returns:
            The updated WarehouseStock, or None for non-trackable items
        """
        _check_quantity(quantity)
        item_info, _ = StockMovements._resolve(item, warehouse)
        if not item_info.is_trackable:
            return None
        key = (item_info.id, _pk(warehouse))

        with critical_section(key):
            with transaction.atomic():
                stock = StockMovements._lock_stock(key)
                if quantity > stock.unreserved:
                    raise StockError(
                        'INSUFFICIENT_STOCK',
                        available=stock.unreserved,
                        requested=quantity,
                        balance=stock.quantity_available,
                        reserved=stock.quantity_reserved,
                    )
                stock.quantity_reserved += quantity
                stock.save(update_fields=['quantity_reserved', 'updated_at'])
                invalidate_item_cache(key[0])

        logger.info(
            "stock.reserve",
            extra={
                "item_id": key[0],
                "warehouse_id": key[1],
                "qty": quantity,
                "reference": str(reference) if reference is not None else "",
                "actor": getattr(actor, 'pk', None),
            },
        )
        return stock

    @classmethod
    def release_reservation(cls, quantity, item, warehouse, reference=None, actor=None):
        """
        Return earmarked units to unreserved stock.

        Raises:
            StockError('INSUFFICIENT_RESERVED'): If quantity > quantity_reserved
        """
        _check_quantity(quantity)
        item_info, _ = StockMovements._resolve(item, warehouse)
        if not item_info.is_trackable:
            return None
        key = (item_info.id, _pk(warehouse))

        with critical_section(key):
            with transaction.atomic():
                stock = StockMovements._lock_stock(key)
                if quantity > stock.quantity_reserved:
                    raise StockError(
                        'INSUFFICIENT_RESERVED',
                        reserved=stock.quantity_reserved,
                        requested=quantity,
                        balance=stock.quantity_available,
                    )
                stock.quantity_reserved -= quantity
                stock.save(update_fields=['quantity_reserved', 'updated_at'])
                invalidate_item_cache(key[0])

        logger.info(
            "stock.release_reservation",
            extra={
                "item_id": key[0],
                "warehouse_id": key[1],
                "qty": quantity,
                "reference": str(reference) if reference is not None else "",
                "actor": getattr(actor, 'pk', None),
            },
        )
        return stock
