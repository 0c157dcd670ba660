"""
Catalog reference models — InventoryItem and Warehouse.

These rows are owned by the catalog. The ledger only reads them (through
the CatalogReference adapter) and points foreign keys at them.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class InventoryItemQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def trackable(self):
        return self.filter(is_trackable=True)


class InventoryItem(models.Model):
    """
    Stock keeping unit with its replenishment thresholds.

    Non-trackable items (is_trackable=False) are exempt from the ledger:
    movements against them are accepted as no-ops.
    """

    sku = models.CharField(max_length=64, unique=True, verbose_name=_('SKU'))
    name = models.CharField(max_length=200, verbose_name=_('Name'))
    unit_of_measure = models.CharField(
        max_length=20,
        default='piece',
        verbose_name=_('Unit of measure'),
    )
    unit_cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Unit cost'),
    )

    min_stock_level = models.PositiveIntegerField(default=0, verbose_name=_('Minimum stock level'))
    max_stock_level = models.PositiveIntegerField(default=1000, verbose_name=_('Maximum stock level'))
    reorder_point = models.PositiveIntegerField(
        default=10,
        verbose_name=_('Reorder point'),
        help_text=_('At or below this quantity the item is low on stock'),
    )
    reorder_quantity = models.PositiveIntegerField(default=50, verbose_name=_('Reorder quantity'))

    is_trackable = models.BooleanField(default=True, verbose_name=_('Trackable'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InventoryItemQuerySet.as_manager()

    class Meta:
        verbose_name = _('Inventory item')
        verbose_name_plural = _('Inventory items')
        ordering = ['sku']
        indexes = [
            models.Index(fields=['is_active', 'is_trackable'], name='sl_item_active_track_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.sku} {self.name}"


class Warehouse(models.Model):
    """Physical stock location. Only its identity matters to the ledger."""

    code = models.CharField(max_length=32, unique=True, verbose_name=_('Code'))
    name = models.CharField(max_length=100, verbose_name=_('Name'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Warehouse')
        verbose_name_plural = _('Warehouses')
        ordering = ['code']

    def __str__(self) -> str:
        return self.name
