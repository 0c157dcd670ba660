"""
WarehouseStock model — current balance per (item, warehouse).
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _


class WarehouseStockQuerySet(models.QuerySet):
    """QuerySet with helper methods for balance queries."""

    def for_item(self, item):
        return self.filter(item=item)

    def in_warehouse(self, warehouse):
        return self.filter(warehouse=warehouse)

    def non_empty(self):
        return self.filter(Q(quantity_available__gt=0) | Q(quantity_damaged__gt=0))

    def low_stock(self):
        """Rows at or below their item's reorder point (but not empty)."""
        return self.filter(
            quantity_available__gt=0,
            quantity_available__lte=F('item__reorder_point'),
        )

    def out_of_stock(self):
        return self.filter(quantity_available=0)


class WarehouseStock(models.Model):
    """
    Balance of one item at one warehouse.

    Rules:
    - Only the mutation engine (stockledger.services) writes these rows
    - Created lazily on the first movement for the pair, never deleted
    - quantity_reserved earmarks part of quantity_available, so
      quantity_reserved <= quantity_available always holds
    - quantity_available equals the sum of the ledger deltas for the pair;
      use recalculate() for audit/correction
    """

    item = models.ForeignKey(
        'stockledger.InventoryItem',
        on_delete=models.PROTECT,
        related_name='stock_rows',
        verbose_name=_('Item'),
    )
    warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.PROTECT,
        related_name='stock_rows',
        verbose_name=_('Warehouse'),
    )

    quantity_available = models.PositiveIntegerField(default=0, verbose_name=_('Available'))
    quantity_reserved = models.PositiveIntegerField(default=0, verbose_name=_('Reserved'))
    quantity_damaged = models.PositiveIntegerField(default=0, verbose_name=_('Damaged'))

    average_cost = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Average cost'),
        help_text=_('Quantity-weighted moving average of inbound unit costs'),
    )
    location = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name=_('Location'),
        help_text=_('Aisle / shelf / bin'),
    )
    last_counted_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Last counted at'))
    last_counted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Last counted by'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WarehouseStockQuerySet.as_manager()

    class Meta:
        verbose_name = _('Warehouse stock')
        verbose_name_plural = _('Warehouse stock')
        constraints = [
            models.UniqueConstraint(
                fields=['item', 'warehouse'],
                name='unique_stock_item_warehouse',
            ),
            models.CheckConstraint(
                condition=Q(quantity_reserved__lte=F('quantity_available')),
                name='stock_reserved_within_available',
            ),
        ]
        indexes = [
            models.Index(fields=['warehouse', 'quantity_available'], name='sl_stock_wh_qty_idx'),
            models.Index(fields=['last_counted_at'], name='sl_stock_counted_idx'),
        ]

    # ══════════════════════════════════════════════════════════════
    # PROPERTIES
    # ══════════════════════════════════════════════════════════════

    @property
    def key(self) -> tuple[int, int]:
        return (self.item_id, self.warehouse_id)

    @property
    def unreserved(self) -> int:
        """Units that can still be reserved or shipped without a reservation."""
        return self.quantity_available - self.quantity_reserved

    @property
    def on_hand(self) -> int:
        """Units physically held, sellable or not."""
        return self.quantity_available + self.quantity_damaged

    @property
    def stock_value(self) -> Decimal:
        return self.average_cost * self.quantity_available

    # ══════════════════════════════════════════════════════════════
    # METHODS
    # ══════════════════════════════════════════════════════════════

    def movements(self):
        from stockledger.models.movement import StockMovement
        return StockMovement.objects.filter(item_id=self.item_id, warehouse_id=self.warehouse_id)

    def ledger_balance(self) -> int:
        """Balance obtained by replaying every ledger entry from zero."""
        return self.movements().aggregate(t=Coalesce(Sum('delta'), 0))['t']

    def recalculate(self) -> int:
        """
        Recalculate quantity_available from the ledger.

        Use for:
        - Integrity audit
        - Correction after detected inconsistency

        The repair runs under the row's key, then this instance is
        reloaded.

        Returns:
            New calculated quantity
        """
        from stockledger.services.movements import StockMovements

        total = StockMovements.recalculate(self.item_id, self.warehouse_id)
        self.refresh_from_db()
        return total

    def __str__(self) -> str:
        return f"{self.item} @ {self.warehouse}: {self.quantity_available}"
