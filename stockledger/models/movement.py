"""
StockMovement model — immutable ledger of balance changes.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import MovementType
from stockledger.references import Reference


class StockMovementQuerySet(models.QuerySet):

    def for_key(self, item, warehouse):
        return self.filter(item=item, warehouse=warehouse)

    def inbound(self):
        return self.filter(delta__gt=0)

    def outbound(self):
        return self.filter(delta__lt=0)

    def of_type(self, movement_type):
        return self.filter(type=movement_type)

    def in_date_range(self, start, end):
        return self.filter(movement_date__gte=start, movement_date__lte=end)

    def for_reference(self, reference):
        ref = Reference.of(reference)
        return self.filter(reference_type=ref.type, reference_id=ref.id)

    def recent(self):
        return self.order_by('-movement_date', '-id')


class StockMovement(models.Model):
    """
    Immutable record of a balance change at one (item, warehouse).

    Rules:
    - NEVER update() or delete()
    - Corrections are new movements with the opposite sign
    - quantity is always a positive magnitude; delta carries the sign
    - quantity_before + delta == quantity_after, derived by the engine
      under the per-key critical section

    Only the mutation engine creates movements.
    """

    item = models.ForeignKey(
        'stockledger.InventoryItem',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Item'),
    )
    warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Warehouse'),
    )

    type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        verbose_name=_('Type'),
    )
    quantity = models.PositiveIntegerField(verbose_name=_('Quantity'))
    delta = models.IntegerField(
        verbose_name=_('Delta'),
        help_text=_('Signed change applied to quantity_available'),
    )
    quantity_before = models.PositiveIntegerField(verbose_name=_('Quantity before'))
    quantity_after = models.PositiveIntegerField(verbose_name=_('Quantity after'))

    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Unit cost'),
    )

    # Opaque correlation token to the causing business event
    reference_type = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Reference type'))
    reference_id = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Reference id'))

    batch_number = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Batch'))
    expiry_date = models.DateField(null=True, blank=True, verbose_name=_('Expiry date'))

    movement_date = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Date/time'))
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Actor'),
    )
    notes = models.TextField(blank=True, default='', verbose_name=_('Notes'))

    objects = StockMovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock movement')
        verbose_name_plural = _('Stock movements')
        ordering = ['movement_date', 'id']
        indexes = [
            models.Index(fields=['item', 'warehouse', 'movement_date'], name='sl_move_key_date_idx'),
            models.Index(fields=['type', 'movement_date'], name='sl_move_type_date_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='sl_move_ref_idx'),
        ]

    @property
    def reference(self) -> Reference | None:
        if not self.reference_type:
            return None
        return Reference(self.reference_type, self.reference_id)

    @property
    def is_inbound(self) -> bool:
        return self.delta > 0

    @property
    def is_outbound(self) -> bool:
        return self.delta < 0

    def save(self, *args, **kwargs):
        """Insert once; movements are immutable."""
        if self.pk:
            raise ValueError(
                "Stock movements are immutable. "
                "To correct one, record a new movement with the opposite sign."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Prevent deletion — movements are immutable."""
        raise ValueError(
            "Stock movements are immutable. "
            "To reverse one, record a new movement with the opposite sign."
        )

    def __str__(self) -> str:
        sign = '+' if self.delta > 0 else ''
        return f"{self.get_type_display()} {sign}{self.delta} | {self.quantity_before} -> {self.quantity_after}"
