"""
Signal receivers — wired in StockLedgerConfig.ready().

- balance_changed -> alert re-evaluation for the touched row
- catalog row saved/deleted -> drop cached catalog entries and totals
"""

import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from stockledger.adapters.catalog import get_catalog
from stockledger.conf import ledger_settings
from stockledger.models.catalog import InventoryItem, Warehouse
from stockledger.models.stock import WarehouseStock
from stockledger.signals import balance_changed

logger = logging.getLogger('stockledger')


@receiver(balance_changed, sender=WarehouseStock, dispatch_uid='stockledger.evaluate_alerts')
def evaluate_alerts(sender, stock, movement, **kwargs):
    """Runs inside the mutation's critical section."""
    if not ledger_settings.ALERTS_ENABLED:
        return
    from stockledger.services.alerts import StockAlerts

    with transaction.atomic():
        StockAlerts.evaluate_stock(stock)


@receiver(post_save, sender=InventoryItem, dispatch_uid='stockledger.item_saved')
@receiver(post_delete, sender=InventoryItem, dispatch_uid='stockledger.item_deleted')
def item_changed(sender, instance, **kwargs):
    from stockledger.services.queries import StockQueries

    get_catalog().invalidate(item_id=instance.pk)
    StockQueries.invalidate(instance.pk)
    logger.debug("catalog.item_changed", extra={"item_id": instance.pk})


@receiver(post_save, sender=Warehouse, dispatch_uid='stockledger.warehouse_saved')
@receiver(post_delete, sender=Warehouse, dispatch_uid='stockledger.warehouse_deleted')
def warehouse_changed(sender, instance, **kwargs):
    get_catalog().invalidate(warehouse_id=instance.pk)
    logger.debug("catalog.warehouse_changed", extra={"warehouse_id": instance.pk})
