"""
Stock Service — the single public interface for all stock operations.

Usage:
    from stockledger import stock, StockError

    stock.receive(50, item, warehouse, unit_cost=Decimal('10'))
    stock.transfer(10, item, north, south)
    stock.total_quantity(item)
    stock.active_alerts(priority='critical')

Downstream consumers (dashboards, notification triggers, exports) read
through the query methods only; they never write WarehouseStock,
StockMovement or StockAlert rows.
"""

from stockledger.services.alerts import StockAlerts
from stockledger.services.movements import StockMovements
from stockledger.services.queries import StockQueries
from stockledger.services.reservations import StockReservations


class Stock(StockQueries, StockMovements, StockReservations, StockAlerts):
    """
    Single interface for all stock operations.

    Parameter convention: (quantity, item, warehouse, ...)
    Follows natural language: "Receive 50 boxes at the north warehouse"

    IMPORTANT: All state-changing methods serialize on the
    (item, warehouse) pair and write inside atomic transactions.
    See each method's docstring.
    """
