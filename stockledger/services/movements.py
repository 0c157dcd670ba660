"""
Stock movements — the mutation engine (receive, ship, adjust, transfer).

This is the only writer of WarehouseStock balances and StockMovement rows.

Every mutation:
    1. validates input and resolves identities through the catalog
    2. enters the per-(item, warehouse) critical section (bounded wait)
    3. under transaction.atomic() and a bounded select_for_update(nowait)
       row lock, writes the balance and its ledger entry together
    4. sends balance_changed while still holding the critical section
"""

import logging
import time
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Decimal
from functools import partial

from django.db import OperationalError, connection, transaction
from django.utils import timezone

from stockledger.adapters.catalog import get_catalog
from stockledger.conf import ledger_settings
from stockledger.exceptions import StockError
from stockledger.models.enums import MovementType
from stockledger.models.movement import StockMovement
from stockledger.models.stock import WarehouseStock
from stockledger.references import Reference
from stockledger.services.locks import key_locks
from stockledger.signals import balance_changed

logger = logging.getLogger('stockledger')

COST_PRECISION = Decimal('0.0001')
ROW_LOCK_RETRY_INTERVAL = 0.05


def _pk(obj) -> int:
    """Accept a model instance or a raw primary key."""
    return obj.pk if hasattr(obj, 'pk') else int(obj)


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise StockError('INVALID_QUANTITY', requested=quantity)


def _as_cost(value) -> Decimal | None:
    if value is None:
        return None
    cost = value if isinstance(value, Decimal) else Decimal(str(value))
    if cost < 0:
        raise StockError('INVALID_QUANTITY', unit_cost=value)
    return cost


def weighted_average_cost(old_avg: Decimal, old_qty: int, unit_cost: Decimal, quantity: int) -> Decimal:
    """Quantity-weighted moving average of unit cost."""
    total_qty = old_qty + quantity
    if total_qty <= 0:
        return unit_cost
    value = old_avg * old_qty + unit_cost * quantity
    return (value / total_qty).quantize(COST_PRECISION, rounding=ROUND_HALF_UP)


def invalidate_item_cache(item_id: int) -> None:
    """Drop cached read models now and again once the change is committed."""
    from stockledger.services.queries import StockQueries
    StockQueries.invalidate(item_id)
    transaction.on_commit(partial(StockQueries.invalidate, item_id))


def current_balance(key) -> int:
    stock = WarehouseStock.objects.filter(item_id=key[0], warehouse_id=key[1]).first()
    return stock.quantity_available if stock else 0


@contextmanager
def critical_section(*keys):
    """Hold the per-key locks; BUSY errors report the unchanged balance."""
    try:
        with key_locks.hold(*keys, timeout=ledger_settings.LOCK_TIMEOUT):
            yield
    except StockError as exc:
        if exc.code == 'BUSY' and 'balance' not in exc.data:
            exc.data['balance'] = current_balance(exc.data['key'])
        raise


class StockMovements:
    """State-changing stock movement methods."""

    # ══════════════════════════════════════════════════════════════
    # ENTRY POINT
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def apply_movement(cls, item, warehouse, movement_type, quantity=None, *,
                       delta=None, unit_cost=None, reference=None,
                       batch_number='', expiry_date=None, actor=None, notes='',
                       destination=None, from_reservation=False):
        """
        Apply one stock-affecting event.

        Args:
            item: InventoryItem (or pk)
            warehouse: Warehouse (or pk); the source for transfers
            movement_type: MovementType value
            quantity: Positive magnitude (every type except adjustment)
            delta: Signed, non-zero correction (adjustment only)
            destination: Destination warehouse (transfer only)
            from_reservation: Removal consumes reserved units (out only)

        Returns:
            StockMovement, or (out_leg, in_leg) for transfers,
            or None for non-trackable items

        Raises:
            StockError('INVALID_QUANTITY'): quantity/delta missing or not positive
            StockError('UNKNOWN_ITEM_OR_WAREHOUSE'): catalog lookup failed
            StockError('INSUFFICIENT_STOCK'): removal exceeds unreserved stock
            StockError('BUSY'): critical section or row lock not acquired in time
        """
        try:
            movement_type = MovementType(movement_type)
        except ValueError:
            raise StockError('INVALID_QUANTITY', message=f"Unknown movement type {movement_type!r}")

        extra = dict(unit_cost=unit_cost, reference=Reference.of(reference), batch_number=batch_number,
                     expiry_date=expiry_date, actor=actor, notes=notes)

        if movement_type == MovementType.TRANSFER:
            if destination is None:
                raise StockError('INVALID_TRANSFER', message='Transfer requires a destination warehouse')
            return cls.transfer(quantity, item, warehouse, destination,
                                from_reservation=from_reservation, **extra)

        if movement_type == MovementType.ADJUSTMENT:
            if quantity is not None:
                raise StockError('INVALID_QUANTITY', message='Adjustments take a signed delta, not a quantity')
            if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
                raise StockError('INVALID_QUANTITY', requested=delta)
            signed = delta
        else:
            if delta is not None:
                raise StockError('INVALID_QUANTITY', message='Only adjustments take a signed delta')
            _check_quantity(quantity)
            signed = quantity if movement_type in MovementType.inbound() else -quantity

        if from_reservation and movement_type != MovementType.OUT:
            raise StockError('INVALID_QUANTITY', message='Only shipments can consume a reservation')

        item_info, _ = cls._resolve(item, warehouse)
        if not item_info.is_trackable:
            logger.debug("stock.skip_non_trackable", extra={"item_id": item_info.id})
            return None

        key = (item_info.id, _pk(warehouse))
        with critical_section(key):
            with transaction.atomic():
                movement, stock = cls._write(
                    key, movement_type, signed, from_reservation=from_reservation, **extra
                )
            cls._notify(stock, movement)

        logger.info(
            f"stock.{movement_type.value}",
            extra={
                "item_id": key[0],
                "warehouse_id": key[1],
                "delta": signed,
                "balance": movement.quantity_after,
                "movement_id": movement.pk,
            },
        )
        return movement

    # ══════════════════════════════════════════════════════════════
    # CONVENIENCE
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def receive(cls, quantity, item, warehouse, unit_cost=None, **kwargs):
        """Stock entry (purchase order receipt, return to stock...)."""
        return cls.apply_movement(item, warehouse, MovementType.IN, quantity,
                                  unit_cost=unit_cost, **kwargs)

    @classmethod
    def ship(cls, quantity, item, warehouse, from_reservation=False, **kwargs):
        """Stock exit. With from_reservation=True the reservation is consumed."""
        return cls.apply_movement(item, warehouse, MovementType.OUT, quantity,
                                  from_reservation=from_reservation, **kwargs)

    @classmethod
    def mark_damaged(cls, quantity, item, warehouse, **kwargs):
        """Move sellable units into quantity_damaged."""
        return cls.apply_movement(item, warehouse, MovementType.DAMAGED, quantity, **kwargs)

    @classmethod
    def mark_lost(cls, quantity, item, warehouse, **kwargs):
        return cls.apply_movement(item, warehouse, MovementType.LOST, quantity, **kwargs)

    @classmethod
    def mark_found(cls, quantity, item, warehouse, **kwargs):
        return cls.apply_movement(item, warehouse, MovementType.FOUND, quantity, **kwargs)

    @classmethod
    def adjust(cls, delta, item, warehouse, **kwargs):
        """
        Signed correction.

        A negative delta may only remove unreserved units.
        """
        return cls.apply_movement(item, warehouse, MovementType.ADJUSTMENT, delta=delta, **kwargs)

    # ══════════════════════════════════════════════════════════════
    # TRANSFER
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def transfer(cls, quantity, item, source, destination, *, unit_cost=None,
                 reference=None, batch_number='', expiry_date=None, actor=None,
                 notes='', from_reservation=False):
        """
        Move stock between warehouses: OUT at source + IN at destination.

        Both critical sections are held (acquired in key order) and both
        legs are written in one atomic block. If the destination leg fails
        after the source leg was written, the block rolls back and
        StockError('TRANSFER_FAILED') is raised; no half transfer is ever
        visible.

        The IN leg carries the source average cost unless unit_cost is given.

        Returns:
            (out_movement, in_movement), both sharing one reference
        """
        _check_quantity(quantity)
        given_cost = _as_cost(unit_cost)
        if _pk(source) == _pk(destination):
            raise StockError('INVALID_TRANSFER', warehouse=_pk(source))

        item_info, _ = cls._resolve(item, source)
        cls._resolve(item, destination)
        if not item_info.is_trackable:
            return None

        ref = Reference.of(reference) or Reference.transfer()
        src_key = (item_info.id, _pk(source))
        dst_key = (item_info.id, _pk(destination))
        common = dict(reference=ref, batch_number=batch_number, expiry_date=expiry_date,
                      actor=actor, notes=notes)

        with critical_section(src_key, dst_key):
            try:
                with transaction.atomic():
                    # row locks in key order, like the critical sections
                    rows = {key: cls._lock_stock(key) for key in sorted((src_key, dst_key))}
                    out_move, src_stock = cls._write(
                        src_key, MovementType.OUT, -quantity, stock=rows[src_key],
                        from_reservation=from_reservation, unit_cost=None, **common
                    )
                    in_cost = given_cost
                    if in_cost is None and src_stock.average_cost:
                        in_cost = src_stock.average_cost
                    try:
                        in_move, dst_stock = cls._write(
                            dst_key, MovementType.IN, quantity, stock=rows[dst_key],
                            unit_cost=in_cost, **common
                        )
                    except Exception as exc:
                        logger.error(
                            "stock.transfer.rollback",
                            extra={"reference": str(ref), "item_id": item_info.id, "error": repr(exc)},
                        )
                        raise StockError('TRANSFER_FAILED', reference=str(ref), cause=repr(exc)) from exc
            except StockError as exc:
                if exc.code == 'TRANSFER_FAILED':
                    # read after the rollback: both balances are unchanged
                    exc.data['source_balance'] = current_balance(src_key)
                    exc.data['destination_balance'] = current_balance(dst_key)
                raise

            cls._notify(src_stock, out_move)
            cls._notify(dst_stock, in_move)

        logger.info(
            "stock.transfer",
            extra={
                "item_id": item_info.id,
                "source_id": src_key[1],
                "destination_id": dst_key[1],
                "qty": quantity,
                "reference": str(ref),
            },
        )
        return out_move, in_move

    # ══════════════════════════════════════════════════════════════
    # STOCK COUNT / LOCATION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def count(cls, counted_quantity, item, warehouse, actor=None, notes='Stock count'):
        """
        Record a physical count.

        Writes an adjustment for the difference (none if the count matches)
        and stamps last_counted_at / last_counted_by. Reservations larger
        than the counted quantity are cut down to it.

        Returns:
            The adjustment StockMovement, or None when nothing changed
        """
        if isinstance(counted_quantity, bool) or not isinstance(counted_quantity, int) or counted_quantity < 0:
            raise StockError('INVALID_QUANTITY', requested=counted_quantity)

        item_info, _ = cls._resolve(item, warehouse)
        if not item_info.is_trackable:
            return None

        key = (item_info.id, _pk(warehouse))
        movement = None
        with critical_section(key):
            with transaction.atomic():
                stock = cls._lock_stock(key)
                delta = counted_quantity - stock.quantity_available
                if counted_quantity < stock.quantity_reserved:
                    logger.warning(
                        "stock.count.reservation_cut",
                        extra={"stock_id": stock.pk, "reserved": stock.quantity_reserved,
                               "counted": counted_quantity},
                    )
                    stock.quantity_reserved = counted_quantity
                if delta:
                    movement, stock = cls._write(
                        key, MovementType.ADJUSTMENT, delta, stock=stock,
                        actor=actor, notes=notes, allow_reserved=True,
                    )
                stock.last_counted_at = timezone.now()
                stock.last_counted_by = actor
                stock.save(update_fields=['last_counted_at', 'last_counted_by',
                                          'quantity_reserved', 'updated_at'])
                invalidate_item_cache(key[0])
            if movement is not None:
                cls._notify(stock, movement)

        logger.info(
            "stock.count",
            extra={"item_id": key[0], "warehouse_id": key[1], "counted": counted_quantity},
        )
        return movement

    @classmethod
    def set_location(cls, item, warehouse, location: str) -> WarehouseStock | None:
        """Set the shelf/bin label of a balance row (created if missing)."""
        item_info, _ = cls._resolve(item, warehouse)
        if not item_info.is_trackable:
            return None
        key = (_pk(item), _pk(warehouse))
        with critical_section(key):
            with transaction.atomic():
                stock = cls._lock_stock(key)
                stock.location = location
                stock.save(update_fields=['location', 'updated_at'])
        return stock

    @classmethod
    def recalculate(cls, item, warehouse) -> int:
        """
        Rewrite quantity_available from the ledger.

        Use for:
        - Integrity audit
        - Correction after detected inconsistency

        The row is re-read under the key, so reservations and costs
        written since the caller loaded it are kept. Reservations above
        the repaired balance are cut down to it.

        Returns:
            Balance obtained by replaying the ledger
        """
        key = (_pk(item), _pk(warehouse))
        with critical_section(key):
            with transaction.atomic():
                stock = cls._lock_stock(key)
                total = stock.ledger_balance()
                old = stock.quantity_available
                if total == old:
                    return total
                stock.quantity_available = max(total, 0)
                stock.quantity_reserved = min(stock.quantity_reserved, stock.quantity_available)
                stock.save(update_fields=['quantity_available', 'quantity_reserved', 'updated_at'])
                invalidate_item_cache(key[0])
            cls._notify(stock, None)

        logger.warning(
            "stock.recalculated",
            extra={"stock_id": stock.pk, "old": old, "new": total, "diff": total - old},
        )
        return total

    # ══════════════════════════════════════════════════════════════
    # INTERNALS (caller holds the key)
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _resolve(cls, item, warehouse):
        catalog = get_catalog()
        item_info = catalog.get_item(_pk(item))
        warehouse_info = catalog.get_warehouse(_pk(warehouse))
        if item_info is None or warehouse_info is None:
            raise StockError(
                'UNKNOWN_ITEM_OR_WAREHOUSE',
                item_id=_pk(item),
                warehouse_id=_pk(warehouse),
                item_found=item_info is not None,
                warehouse_found=warehouse_info is not None,
            )
        return item_info, warehouse_info

    @classmethod
    def _lock_stock(cls, key) -> WarehouseStock:
        """
        Load (creating lazily) and row-lock the balance for key.

        The row lock is taken with NOWAIT and retried until LOCK_TIMEOUT,
        so a row held by another process raises StockError('BUSY') instead
        of blocking on the database. Each attempt runs in its own savepoint
        so a refused lock leaves the outer transaction usable.
        """
        item_id, warehouse_id = key
        WarehouseStock.objects.get_or_create(item_id=item_id, warehouse_id=warehouse_id)
        timeout = ledger_settings.LOCK_TIMEOUT
        deadline = time.monotonic() + timeout
        while True:
            try:
                with transaction.atomic():
                    return cls._select_row(key)
            except OperationalError:
                if time.monotonic() >= deadline:
                    logger.warning(
                        "stock.row_lock.timeout",
                        extra={"item_id": item_id, "warehouse_id": warehouse_id},
                    )
                    raise StockError('BUSY', key=key, timeout=timeout)
                time.sleep(ROW_LOCK_RETRY_INTERVAL)

    @classmethod
    def _select_row(cls, key) -> WarehouseStock:
        nowait = connection.features.has_select_for_update_nowait
        return WarehouseStock.objects.select_for_update(nowait=nowait).get(
            item_id=key[0], warehouse_id=key[1]
        )

    @classmethod
    def _write(cls, key, movement_type, signed, *, stock=None, unit_cost=None,
               reference=None, batch_number='', expiry_date=None, actor=None,
               notes='', from_reservation=False, allow_reserved=False):
        """
        Write one balance change and its ledger entry.

        Must run inside transaction.atomic() with the key held.
        Rejections leave the row untouched.
        """
        if stock is None:
            stock = cls._lock_stock(key)
        quantity = abs(signed)
        before = stock.quantity_available

        if signed < 0:
            if from_reservation:
                if quantity > stock.quantity_reserved:
                    raise StockError(
                        'INSUFFICIENT_RESERVED',
                        reserved=stock.quantity_reserved,
                        requested=quantity,
                        balance=before,
                    )
                removable = before
            elif allow_reserved:
                removable = before
            else:
                removable = stock.unreserved
            if quantity > removable:
                raise StockError(
                    'INSUFFICIENT_STOCK',
                    available=removable,
                    requested=quantity,
                    balance=before,
                    reserved=stock.quantity_reserved,
                )

        cost = _as_cost(unit_cost)
        if cost is not None and movement_type in MovementType.inbound():
            stock.average_cost = weighted_average_cost(stock.average_cost, before, cost, quantity)

        stock.quantity_available = before + signed
        if movement_type == MovementType.DAMAGED:
            stock.quantity_damaged += quantity
        if from_reservation:
            stock.quantity_reserved -= quantity
        stock.save(update_fields=['quantity_available', 'quantity_damaged',
                                  'quantity_reserved', 'average_cost', 'updated_at'])

        ref = Reference.of(reference)
        movement = StockMovement.objects.create(
            item_id=key[0],
            warehouse_id=key[1],
            type=movement_type,
            quantity=quantity,
            delta=signed,
            quantity_before=before,
            quantity_after=stock.quantity_available,
            unit_cost=cost,
            reference_type=ref.type if ref else '',
            reference_id=ref.id if ref else '',
            batch_number=batch_number or '',
            expiry_date=expiry_date,
            actor=actor,
            notes=notes or '',
        )
        invalidate_item_cache(key[0])
        return movement, stock

    @classmethod
    def _notify(cls, stock, movement) -> None:
        """Send balance_changed; receiver failures never undo the movement."""
        for receiver, result in balance_changed.send_robust(
            sender=WarehouseStock, stock=stock, movement=movement
        ):
            if isinstance(result, Exception):
                logger.error(
                    "stock.balance_changed.receiver_failed",
                    exc_info=result,
                    extra={"receiver": repr(receiver), "stock_id": stock.pk},
                )
