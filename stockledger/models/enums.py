"""
Enums for StockLedger models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementType(models.TextChoices):
    """
    Kind of stock-affecting event.

    IN, FOUND:            add to quantity_available
    OUT, LOST, DAMAGED:   remove from quantity_available
                          (DAMAGED also parks the units in quantity_damaged)
    ADJUSTMENT:           signed correction supplied by the caller
    TRANSFER:             never stored; a transfer is an OUT leg + an IN leg
    """
    IN = 'in', _('Stock In')
    OUT = 'out', _('Stock Out')
    ADJUSTMENT = 'adjustment', _('Adjustment')
    TRANSFER = 'transfer', _('Transfer')
    DAMAGED = 'damaged', _('Damaged')
    LOST = 'lost', _('Lost')
    FOUND = 'found', _('Found')

    @classmethod
    def inbound(cls):
        return (cls.IN, cls.FOUND)

    @classmethod
    def outbound(cls):
        return (cls.OUT, cls.LOST, cls.DAMAGED)


class AlertType(models.TextChoices):
    LOW_STOCK = 'low_stock', _('Low Stock')
    OUT_OF_STOCK = 'out_of_stock', _('Out of Stock')
    OVERSTOCK = 'overstock', _('Overstock')
    EXPIRING = 'expiring', _('Expiring Soon')
    EXPIRED = 'expired', _('Expired')


class AlertStatus(models.TextChoices):
    """Alert lifecycle status."""
    ACTIVE = 'active', _('Active')              # Condition holds, nobody looked yet
    ACKNOWLEDGED = 'acknowledged', _('Acknowledged')  # Seen by someone, still open
    RESOLVED = 'resolved', _('Resolved')        # Condition cleared or closed by hand

    @classmethod
    def open(cls):
        return (cls.ACTIVE, cls.ACKNOWLEDGED)


class AlertPriority(models.TextChoices):
    LOW = 'low', _('Low')
    MEDIUM = 'medium', _('Medium')
    HIGH = 'high', _('High')
    CRITICAL = 'critical', _('Critical')


class StockStatus(models.TextChoices):
    """Global stock health of an item (sum over all warehouses)."""
    IN_STOCK = 'in_stock', _('In Stock')
    LOW_STOCK = 'low_stock', _('Low Stock')
    OUT_OF_STOCK = 'out_of_stock', _('Out of Stock')
    OVERSTOCK = 'overstock', _('Overstock')
