"""
Exceptions for StockLedger.

All errors are StockError with a structured code for programmatic handling.
"""

from decimal import Decimal
from typing import Any


class BaseError(Exception):
    """Exception with a machine-readable code and structured context."""

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, data={self.data!r})"

    def as_dict(self) -> dict[str, Any]:
        return {'code': self.code, 'message': self.message, 'data': dict(self.data)}


class StockError(BaseError):
    """
    Structured exception for stock operations.

    Usage:
        try:
            stock.ship(10, item, warehouse)
        except StockError as e:
            if e.code == 'INSUFFICIENT_STOCK':
                print(f"Only {e.available} available")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data (always includes the unchanged
              ``balance`` when the error concerns a stock row)
    """

    _default_messages = {
        'INVALID_QUANTITY': 'Quantity must be a positive integer',
        'UNKNOWN_ITEM_OR_WAREHOUSE': 'Item or warehouse not found in catalog',
        'INSUFFICIENT_STOCK': 'Not enough stock available',
        'INSUFFICIENT_RESERVED': 'Not enough reserved stock',
        'BUSY': 'Stock is being modified by another operation, retry',
        'TRANSFER_FAILED': 'Transfer could not be completed',
        'INVALID_TRANSFER': 'Source and destination warehouse must differ',
        'ALERT_NOT_FOUND': 'Stock alert not found',
    }

    @property
    def available(self) -> int:
        """Shortcut for data['available']."""
        return self.data.get('available', 0)

    @property
    def requested(self) -> int:
        """Shortcut for data['requested']."""
        return self.data.get('requested', 0)

    @property
    def balance(self) -> int | None:
        """Current (unchanged) quantity_available, when known."""
        return self.data.get('balance')

    @property
    def is_retryable(self) -> bool:
        return self.code == 'BUSY'

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }
