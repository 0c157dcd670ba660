"""
Stock alerts — derive stock health and raise/resolve threshold alerts.

Usage:
    from stockledger import stock

    # After every movement this runs automatically (balance_changed).
    # Run periodically (celery beat, cron) for expiry and missed alerts:
    stock.sweep_alerts()

    result = stock.evaluate(item)
    result.status   # StockStatus.LOW_STOCK
    result.alerts   # open StockAlert rows for the item

Rules per (item, warehouse), on quantity_available:
    == 0                        out_of_stock  critical
    0 < q <= reorder_point      low_stock     medium (high if q <= reorder_point / 2)
    q > max_stock_level         overstock     low
    batch expiry in window      expiring      medium
    batch expiry passed         expired       high
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from django.db import transaction
from django.db.models import Max, Sum
from django.utils import timezone

from stockledger.adapters.catalog import get_catalog
from stockledger.conf import ledger_settings
from stockledger.exceptions import StockError
from stockledger.models.alert import StockAlert
from stockledger.models.catalog import InventoryItem
from stockledger.models.enums import AlertPriority, AlertStatus, AlertType, StockStatus
from stockledger.models.movement import StockMovement
from stockledger.models.stock import WarehouseStock
from stockledger.protocols.catalog import ItemInfo
from stockledger.services.movements import _pk, critical_section
from stockledger.signals import alert_raised, alert_resolved

logger = logging.getLogger('stockledger')


@dataclass(frozen=True)
class Condition:
    """A threshold currently breached at one (item, warehouse)."""

    priority: str
    current_quantity: int
    threshold_quantity: int | None
    message: str


@dataclass
class Evaluation:
    status: StockStatus
    total: int
    alerts: list = field(default_factory=list)


def classify(total: int, item_info: ItemInfo) -> StockStatus:
    """Global stock health from the sum over all warehouses."""
    if total <= 0:
        return StockStatus.OUT_OF_STOCK
    if total <= item_info.reorder_point:
        return StockStatus.LOW_STOCK
    if total > item_info.max_stock_level:
        return StockStatus.OVERSTOCK
    return StockStatus.IN_STOCK


def _send_on_commit(signal, **kwargs) -> None:
    def send():
        for receiver, result in signal.send_robust(sender=StockAlert, **kwargs):
            if isinstance(result, Exception):
                logger.error(
                    "stock.alert.receiver_failed",
                    exc_info=result,
                    extra={"receiver": repr(receiver)},
                )
    transaction.on_commit(send)


class StockAlerts:
    """Status derivation and alert lifecycle methods."""

    # ══════════════════════════════════════════════════════════════
    # EVALUATION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def evaluate(cls, item, warehouse=None, today: date | None = None) -> Evaluation:
        """
        Re-evaluate alerts for an item (one warehouse or all of them).

        Takes the per-key critical section for every evaluated row.

        Returns:
            Evaluation with the global status and the open alerts in scope
        """
        item_info = get_catalog().get_item(_pk(item))
        if item_info is None:
            raise StockError('UNKNOWN_ITEM_OR_WAREHOUSE', item_id=_pk(item))

        rows = WarehouseStock.objects.filter(item_id=item_info.id)
        if warehouse is not None:
            rows = rows.filter(warehouse_id=_pk(warehouse))

        if item_info.is_trackable:
            for row in rows:
                with critical_section(row.key):
                    row.refresh_from_db()
                    cls.evaluate_stock(row, item_info=item_info, today=today)

        total = WarehouseStock.objects.filter(item_id=item_info.id).aggregate(
            t=Sum('quantity_available')
        )['t'] or 0

        alerts = StockAlert.objects.open().filter(item_id=item_info.id)
        if warehouse is not None:
            alerts = alerts.filter(warehouse_id=_pk(warehouse))

        return Evaluation(
            status=classify(total, item_info),
            total=total,
            alerts=list(alerts.by_priority()),
        )

    @classmethod
    def evaluate_stock(cls, stock: WarehouseStock, item_info: ItemInfo | None = None,
                       today: date | None = None) -> list[StockAlert]:
        """
        Apply every alert rule to one balance row.

        The caller must hold the row's critical section.

        Returns:
            Alerts created, updated or resolved by this call
        """
        catalog = get_catalog()
        item_info = item_info or catalog.get_item(stock.item_id)
        if item_info is None or not item_info.is_trackable:
            return []
        warehouse_info = catalog.get_warehouse(stock.warehouse_id)
        label = f"{item_info.sku} @ {warehouse_info.code if warehouse_info else stock.warehouse_id}"

        conditions = cls._threshold_conditions(item_info, stock.quantity_available, label)
        conditions.update(cls._expiry_conditions(stock, label, today or timezone.localdate()))

        touched = []
        now = timezone.now()
        with transaction.atomic():
            open_alerts = {
                AlertType(alert.type): alert
                for alert in StockAlert.objects.select_for_update().open().filter(
                    item_id=stock.item_id, warehouse_id=stock.warehouse_id,
                )
            }
            for alert_type in AlertType:
                condition = conditions.get(alert_type)
                existing = open_alerts.get(alert_type)
                if condition is not None:
                    alert = cls._raise(stock, alert_type, condition, existing, now)
                elif existing is not None:
                    alert = cls._auto_resolve(existing, now)
                else:
                    alert = None
                if alert is not None:
                    touched.append(alert)
        return touched

    @classmethod
    def _threshold_conditions(cls, item_info: ItemInfo, qty: int, label: str) -> dict:
        conditions = {}
        if qty == 0:
            conditions[AlertType.OUT_OF_STOCK] = Condition(
                priority=AlertPriority.CRITICAL,
                current_quantity=0,
                threshold_quantity=0,
                message=f"{label} is out of stock",
            )
        elif qty <= item_info.reorder_point:
            high = qty * 2 <= item_info.reorder_point
            conditions[AlertType.LOW_STOCK] = Condition(
                priority=AlertPriority.HIGH if high else AlertPriority.MEDIUM,
                current_quantity=qty,
                threshold_quantity=item_info.reorder_point,
                message=(
                    f"{label} is low on stock: {qty} left, "
                    f"reorder point {item_info.reorder_point}, "
                    f"suggested reorder {item_info.reorder_quantity}"
                ),
            )
        if qty > item_info.max_stock_level:
            conditions[AlertType.OVERSTOCK] = Condition(
                priority=AlertPriority.LOW,
                current_quantity=qty,
                threshold_quantity=item_info.max_stock_level,
                message=f"{label} is overstocked: {qty} above maximum {item_info.max_stock_level}",
            )
        return conditions

    @classmethod
    def outstanding_batches(cls, stock: WarehouseStock) -> list[dict]:
        """
        Batches with units still on hand, oldest expiry first.

        A batch's remaining quantity is the net of the ledger entries that
        carry its batch_number, capped by the current balance.
        """
        if stock.quantity_available <= 0:
            return []
        rows = (
            StockMovement.objects
            .filter(item_id=stock.item_id, warehouse_id=stock.warehouse_id)
            .exclude(batch_number='')
            .values('batch_number')
            .annotate(net=Sum('delta'), expires=Max('expiry_date'))
            .filter(net__gt=0)
            .order_by('expires', 'batch_number')
        )
        return [
            {
                'batch_number': row['batch_number'],
                'expiry_date': row['expires'],
                'quantity': min(row['net'], stock.quantity_available),
            }
            for row in rows
        ]

    @classmethod
    def _expiry_conditions(cls, stock: WarehouseStock, label: str, today: date) -> dict:
        horizon = today + timedelta(days=ledger_settings.EXPIRY_LOOKAHEAD_DAYS)
        expiring, expired = [], []
        for batch in cls.outstanding_batches(stock):
            expiry = batch['expiry_date']
            if expiry is None:
                continue
            if expiry < today:
                expired.append(batch)
            elif expiry <= horizon:
                expiring.append(batch)

        def describe(batches):
            return ", ".join(f"{b['batch_number']} ({b['expiry_date']:%Y-%m-%d})" for b in batches)

        def total(batches):
            return min(sum(b['quantity'] for b in batches), stock.quantity_available)

        conditions = {}
        if expiring:
            conditions[AlertType.EXPIRING] = Condition(
                priority=AlertPriority.MEDIUM,
                current_quantity=total(expiring),
                threshold_quantity=None,
                message=f"{label}: batches expiring by {horizon:%Y-%m-%d}: {describe(expiring)}",
            )
        if expired:
            conditions[AlertType.EXPIRED] = Condition(
                priority=AlertPriority.HIGH,
                current_quantity=total(expired),
                threshold_quantity=None,
                message=f"{label}: expired batches on hand: {describe(expired)}",
            )
        return conditions

    @classmethod
    def _raise(cls, stock, alert_type, condition: Condition, existing, now):
        """Create the open alert for the tuple, or update the one that exists."""
        if existing is None:
            alert = StockAlert.objects.create(
                item_id=stock.item_id,
                warehouse_id=stock.warehouse_id,
                type=alert_type,
                status=AlertStatus.ACTIVE,
                priority=condition.priority,
                current_quantity=condition.current_quantity,
                threshold_quantity=condition.threshold_quantity,
                message=condition.message,
                triggered_at=now,
            )
            created = True
        else:
            unchanged = (
                existing.current_quantity == condition.current_quantity
                and existing.priority == condition.priority
                and existing.threshold_quantity == condition.threshold_quantity
            )
            if unchanged:
                return None
            alert = existing
            alert.current_quantity = condition.current_quantity
            alert.threshold_quantity = condition.threshold_quantity
            alert.priority = condition.priority
            alert.message = condition.message
            alert.triggered_at = now
            alert.save(update_fields=['current_quantity', 'threshold_quantity', 'priority',
                                      'message', 'triggered_at', 'updated_at'])
            created = False

        logger.warning(
            "stock.alert.raised",
            extra={
                "alert_id": alert.pk,
                "type": alert_type,
                "priority": alert.priority,
                "item_id": stock.item_id,
                "warehouse_id": stock.warehouse_id,
                "current_quantity": alert.current_quantity,
                "is_new": created,
            },
        )
        _send_on_commit(alert_raised, alert=alert, created=created)
        return alert

    @classmethod
    def _auto_resolve(cls, alert: StockAlert, now, by=None) -> StockAlert:
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = now
        alert.resolved_by = by
        alert.save(update_fields=['status', 'resolved_at', 'resolved_by', 'updated_at'])
        logger.info(
            "stock.alert.resolved",
            extra={
                "alert_id": alert.pk,
                "type": alert.type,
                "item_id": alert.item_id,
                "warehouse_id": alert.warehouse_id,
                "manual": by is not None,
            },
        )
        _send_on_commit(alert_resolved, alert=alert)
        return alert

    # ══════════════════════════════════════════════════════════════
    # MANUAL WORKFLOW
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def acknowledge(cls, alert_id: int, by=None) -> StockAlert:
        """
        Mark an active alert as seen.

        Acknowledging an acknowledged or resolved alert is a no-op.

        Raises:
            StockError('ALERT_NOT_FOUND')
        """
        alert = cls._get_alert(alert_id)
        with critical_section((alert.item_id, alert.warehouse_id)):
            with transaction.atomic():
                alert = StockAlert.objects.select_for_update().get(pk=alert.pk)
                if alert.status != AlertStatus.ACTIVE:
                    return alert
                alert.status = AlertStatus.ACKNOWLEDGED
                alert.acknowledged_at = timezone.now()
                alert.acknowledged_by = by
                alert.save(update_fields=['status', 'acknowledged_at', 'acknowledged_by', 'updated_at'])

        logger.info("stock.alert.acknowledged", extra={"alert_id": alert.pk})
        return alert

    @classmethod
    def resolve(cls, alert_id: int, by=None) -> StockAlert:
        """
        Close an alert by hand.

        Resolving a resolved alert is a no-op. If the condition still holds,
        the next evaluation opens a new alert.

        Raises:
            StockError('ALERT_NOT_FOUND')
        """
        alert = cls._get_alert(alert_id)
        with critical_section((alert.item_id, alert.warehouse_id)):
            with transaction.atomic():
                alert = StockAlert.objects.select_for_update().get(pk=alert.pk)
                if alert.status == AlertStatus.RESOLVED:
                    return alert
                return cls._auto_resolve(alert, timezone.now(), by=by)

    @classmethod
    def _get_alert(cls, alert_id) -> StockAlert:
        alert = StockAlert.objects.filter(pk=_pk(alert_id)).first()
        if alert is None:
            raise StockError('ALERT_NOT_FOUND', alert_id=alert_id)
        return alert

    # ══════════════════════════════════════════════════════════════
    # SWEEP
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def sweep_alerts(cls, item=None, today: date | None = None) -> dict[str, int]:
        """
        Re-evaluate every balance row of active, trackable items.

        Catches alerts missed by best-effort evaluation and applies the
        time-based expiry rules. A row that is busy or fails is skipped
        and logged; the sweep goes on.

        Returns:
            {'evaluated': n, 'skipped': m, 'touched': k}
        """
        rows = WarehouseStock.objects.filter(
            item__in=InventoryItem.objects.active().trackable()
        ).order_by('item_id', 'warehouse_id')
        if item is not None:
            rows = rows.filter(item_id=_pk(item))

        summary = {'evaluated': 0, 'skipped': 0, 'touched': 0}
        for row in rows.iterator():
            try:
                with critical_section(row.key):
                    row.refresh_from_db()
                    summary['touched'] += len(cls.evaluate_stock(row, today=today))
                summary['evaluated'] += 1
            except Exception:
                summary['skipped'] += 1
                logger.exception("stock.alert.sweep_failed", extra={"stock_id": row.pk})

        logger.info("stock.alert.sweep", extra=summary)
        return summary
