"""
Stock services — modular organization of stock operations.

Re-exports all public methods:
    from stockledger.services import StockQueries, StockMovements, StockReservations, StockAlerts
"""

from stockledger.services.alerts import StockAlerts
from stockledger.services.movements import StockMovements
from stockledger.services.queries import StockQueries
from stockledger.services.reservations import StockReservations

__all__ = [
    'StockQueries',
    'StockMovements',
    'StockReservations',
    'StockAlerts',
]
