"""
Stock queries — read-only projections (read models).

All methods are classmethod on Stock and use no locking. Per-item totals
are cached outside transactions only, under a key carrying the item's
cache generation. Every mutation bumps the generation (once when written
and again on commit), so a fill computed before a commit lands under a
retired key and a reader never sees a balance from before the last
completed mutation.
"""

from decimal import Decimal

from django.core.cache import caches
from django.db import connection
from django.db.models import DecimalField, ExpressionWrapper, F, Sum
from django.db.models.functions import Coalesce

from stockledger.adapters.catalog import get_catalog
from stockledger.conf import ledger_settings
from stockledger.exceptions import StockError
from stockledger.models.alert import StockAlert
from stockledger.models.catalog import InventoryItem
from stockledger.models.enums import AlertStatus, StockStatus
from stockledger.models.movement import StockMovement
from stockledger.models.stock import WarehouseStock
from stockledger.services.alerts import classify
from stockledger.services.movements import _pk

TOTALS_KEY = "stockledger:totals:{}:{}"
GENERATION_KEY = "stockledger:totals:gen:{}"


class StockQueries:
    """Read-only stock query methods."""

    # ══════════════════════════════════════════════════════════════
    # CACHE
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _cache(cls):
        return caches[ledger_settings.CACHE_ALIAS]

    @classmethod
    def invalidate(cls, item_id: int) -> None:
        """Retire every totals entry filled so far for the item."""
        cache = cls._cache()
        gen_key = GENERATION_KEY.format(item_id)
        cache.add(gen_key, 0, None)
        try:
            cache.incr(gen_key)
        except ValueError:
            # evicted between add() and incr()
            cache.set(gen_key, 1, None)

    @classmethod
    def _totals(cls, item) -> dict[str, int]:
        """Sums of available/reserved/damaged over all warehouses."""
        item_id = _pk(item)
        use_cache = not connection.in_atomic_block
        if use_cache:
            # generation is read before the aggregate, so a commit racing
            # the fill bumps it and the fill is never read back
            generation = cls._cache().get_or_set(GENERATION_KEY.format(item_id), 0, None)
            key = TOTALS_KEY.format(item_id, generation)
            cached = cls._cache().get(key)
            if cached is not None:
                return cached

        totals = WarehouseStock.objects.filter(item_id=item_id).aggregate(
            available=Coalesce(Sum('quantity_available'), 0),
            reserved=Coalesce(Sum('quantity_reserved'), 0),
            damaged=Coalesce(Sum('quantity_damaged'), 0),
        )
        if use_cache:
            cls._cache().set(key, totals, ledger_settings.CACHE_TIMEOUT)
        return totals

    # ══════════════════════════════════════════════════════════════
    # QUANTITIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def total_quantity(cls, item) -> int:
        """Sum of quantity_available across warehouses."""
        return cls._totals(item)['available']

    @classmethod
    def reserved_quantity(cls, item) -> int:
        return cls._totals(item)['reserved']

    @classmethod
    def damaged_quantity(cls, item) -> int:
        return cls._totals(item)['damaged']

    @classmethod
    def available_quantity(cls, item) -> int:
        """Units free to promise: total minus reservations."""
        totals = cls._totals(item)
        return totals['available'] - totals['reserved']

    @classmethod
    def stock_status(cls, item) -> StockStatus:
        """Global stock health of the item."""
        item_info = get_catalog().get_item(_pk(item))
        if item_info is None:
            raise StockError('UNKNOWN_ITEM_OR_WAREHOUSE', item_id=_pk(item))
        return classify(cls.total_quantity(item), item_info)

    # ══════════════════════════════════════════════════════════════
    # ROWS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def get_stock(cls, item, warehouse) -> WarehouseStock | None:
        """Balance row for (item, warehouse), None if nothing ever moved."""
        return WarehouseStock.objects.filter(
            item_id=_pk(item), warehouse_id=_pk(warehouse)
        ).select_related('warehouse').first()

    @classmethod
    def breakdown(cls, item, include_empty: bool = True):
        """Per-warehouse balance rows of an item."""
        qs = WarehouseStock.objects.filter(item_id=_pk(item)).select_related('warehouse')
        if not include_empty:
            qs = qs.non_empty()
        return qs.order_by('warehouse__code')

    @classmethod
    def recent_movements(cls, item=None, warehouse=None, limit: int = 20):
        """Newest ledger entries first, for an item, a warehouse or both."""
        if item is None and warehouse is None:
            raise ValueError("recent_movements() needs an item or a warehouse")
        qs = StockMovement.objects.select_related('item', 'warehouse')
        if item is not None:
            qs = qs.filter(item_id=_pk(item))
        if warehouse is not None:
            qs = qs.filter(warehouse_id=_pk(warehouse))
        return list(qs.recent()[:limit])

    @classmethod
    def active_alerts(cls, status=AlertStatus.ACTIVE, priority=None, type=None,
                      item=None, warehouse=None):
        """
        Alerts filtered by status/priority/type, most urgent first.

        status, priority and type accept a single value or a list;
        status=None means any status.
        """
        qs = StockAlert.objects.select_related('item', 'warehouse')
        for field_name, value in (('status', status), ('priority', priority), ('type', type)):
            if value is None:
                continue
            if isinstance(value, (list, tuple, set)):
                qs = qs.filter(**{f'{field_name}__in': list(value)})
            else:
                qs = qs.filter(**{field_name: value})
        if item is not None:
            qs = qs.filter(item_id=_pk(item))
        if warehouse is not None:
            qs = qs.filter(warehouse_id=_pk(warehouse))
        return qs.by_priority()

    # ══════════════════════════════════════════════════════════════
    # DASHBOARD
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def inventory_value(cls, warehouse=None) -> Decimal:
        """Σ quantity_available × average_cost over active items."""
        qs = WarehouseStock.objects.filter(item__is_active=True)
        if warehouse is not None:
            qs = qs.filter(warehouse_id=_pk(warehouse))
        value = qs.aggregate(
            v=Coalesce(
                Sum(ExpressionWrapper(
                    F('quantity_available') * F('average_cost'),
                    output_field=DecimalField(max_digits=20, decimal_places=4),
                )),
                Decimal('0'),
                output_field=DecimalField(max_digits=20, decimal_places=4),
            )
        )['v']
        return Decimal(value)

    @classmethod
    def status_summary(cls) -> dict[str, int]:
        """Number of active, trackable items per global stock status."""
        totals = dict(
            WarehouseStock.objects.values('item_id')
            .annotate(total=Sum('quantity_available'))
            .values_list('item_id', 'total')
        )
        summary = {status.value: 0 for status in StockStatus}
        catalog = get_catalog()
        for item_id in InventoryItem.objects.active().trackable().values_list('pk', flat=True):
            item_info = catalog.get_item(item_id)
            summary[classify(totals.get(item_id) or 0, item_info).value] += 1
        return summary
