"""
StockAlert model — derived threshold alerts per (item, warehouse).

Alerts are written only by the alert engine (stockledger.services.alerts)
in reaction to balance changes and periodic sweeps. Humans move them
through acknowledge/resolve.

Usage:
    from stockledger import stock

    stock.active_alerts(priority='critical')
    stock.acknowledge(alert.pk, by=user)
"""

from django.conf import settings
from django.db import models
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import AlertPriority, AlertStatus, AlertType

PRIORITY_RANK = {
    AlertPriority.LOW: 0,
    AlertPriority.MEDIUM: 1,
    AlertPriority.HIGH: 2,
    AlertPriority.CRITICAL: 3,
}


class StockAlertQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=AlertStatus.ACTIVE)

    def open(self):
        """Active or acknowledged — condition not yet cleared."""
        return self.filter(status__in=AlertStatus.open())

    def critical(self):
        return self.filter(priority=AlertPriority.CRITICAL)

    def high_priority(self):
        return self.filter(priority__in=[AlertPriority.HIGH, AlertPriority.CRITICAL])

    def for_key(self, item, warehouse):
        return self.filter(item=item, warehouse=warehouse)

    def by_priority(self):
        """Most urgent first, newest first within a priority."""
        return self.annotate(
            priority_rank=Case(
                *[When(priority=p, then=Value(rank)) for p, rank in PRIORITY_RANK.items()],
                default=Value(-1),
                output_field=IntegerField(),
            )
        ).order_by('-priority_rank', '-triggered_at', '-id')


class StockAlert(models.Model):
    """
    One alert per (item, warehouse, type) while open.

    LIFECYCLE:

        ACTIVE ──acknowledge()──► ACKNOWLEDGED
          │                           │
          │ condition clears          │ condition clears
          │ or resolve()              │ or resolve()
          ▼                           ▼
        RESOLVED ◄────────────────────┘

    Repeated breaches of the same threshold update current_quantity and
    triggered_at of the open alert instead of creating a new one.
    """

    item = models.ForeignKey(
        'stockledger.InventoryItem',
        on_delete=models.CASCADE,
        related_name='alerts',
        verbose_name=_('Item'),
    )
    warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.CASCADE,
        related_name='alerts',
        verbose_name=_('Warehouse'),
    )

    type = models.CharField(max_length=20, choices=AlertType.choices, verbose_name=_('Type'))
    status = models.CharField(
        max_length=20,
        choices=AlertStatus.choices,
        default=AlertStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Status'),
    )
    priority = models.CharField(
        max_length=10,
        choices=AlertPriority.choices,
        default=AlertPriority.MEDIUM,
        verbose_name=_('Priority'),
    )

    current_quantity = models.IntegerField(verbose_name=_('Current quantity'))
    threshold_quantity = models.IntegerField(null=True, blank=True, verbose_name=_('Threshold'))
    message = models.TextField(verbose_name=_('Message'))

    triggered_at = models.DateTimeField(verbose_name=_('Triggered at'))
    acknowledged_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Acknowledged at'))
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Acknowledged by'),
    )
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Resolved at'))
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Resolved by'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock alert')
        verbose_name_plural = _('Stock alerts')
        constraints = [
            models.UniqueConstraint(
                fields=['item', 'warehouse', 'type'],
                condition=Q(status__in=['active', 'acknowledged']),
                name='unique_open_alert_per_key_type',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'priority', 'triggered_at'], name='sl_alert_prio_idx'),
            models.Index(fields=['item', 'warehouse', 'status'], name='sl_alert_key_status_idx'),
            models.Index(fields=['type', 'status'], name='sl_alert_type_status_idx'),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == AlertStatus.ACTIVE

    @property
    def is_acknowledged(self) -> bool:
        return self.status == AlertStatus.ACKNOWLEDGED

    @property
    def is_resolved(self) -> bool:
        return self.status == AlertStatus.RESOLVED

    @property
    def is_open(self) -> bool:
        return self.status in AlertStatus.open()

    def __str__(self) -> str:
        return f"[{self.priority}] {self.get_type_display()}: {self.item} @ {self.warehouse}"
