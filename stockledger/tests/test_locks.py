"""
Tests for per-key critical sections.
"""

import threading
import time

import pytest
from django.db import OperationalError, connection

from stockledger import stock, StockError
from stockledger.models import MovementType, StockMovement, WarehouseStock
from stockledger.services.locks import KeyLocks, key_locks
from stockledger.services.movements import StockMovements


class TestKeyLocks:
    """KeyLocks without the database."""

    def test_hold_and_release(self):
        locks = KeyLocks()

        with locks.hold((1, 1), timeout=1):
            assert locks.is_held((1, 1))
            assert len(locks) == 1

        assert not locks.is_held((1, 1))
        assert len(locks) == 0

    def test_distinct_keys_do_not_block(self):
        locks = KeyLocks()

        with locks.hold((1, 1), timeout=1):
            with locks.hold((1, 2), timeout=0.1):
                assert locks.is_held((1, 2))

    def test_busy_after_timeout(self):
        locks = KeyLocks()
        entered, release = threading.Event(), threading.Event()

        def holder():
            with locks.hold((1, 1), timeout=1):
                entered.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait(5)
        try:
            started = time.monotonic()
            with pytest.raises(StockError) as exc:
                with locks.hold((1, 1), timeout=0.1):
                    pass
            assert time.monotonic() - started < 2
        finally:
            release.set()
            thread.join(5)

        assert exc.value.code == 'BUSY'
        assert exc.value.is_retryable
        assert exc.value.data['key'] == (1, 1)
        assert len(locks) == 0

    def test_multi_key_failure_releases_acquired_keys(self):
        locks = KeyLocks()
        entered, release = threading.Event(), threading.Event()

        def holder():
            with locks.hold((1, 2), timeout=1):
                entered.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait(5)
        try:
            with pytest.raises(StockError):
                with locks.hold((1, 1), (1, 2), timeout=0.1):
                    pass
            assert not locks.is_held((1, 1))
        finally:
            release.set()
            thread.join(5)

    def test_opposite_order_does_not_deadlock(self):
        """Keys are taken in sorted order whatever the call order."""
        locks = KeyLocks()
        counter = []

        def worker(keys):
            for _ in range(50):
                with locks.hold(*keys, timeout=5):
                    counter.append(1)

        threads = [
            threading.Thread(target=worker, args=([(1, 1), (1, 2)],)),
            threading.Thread(target=worker, args=([(1, 2), (1, 1)],)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert len(counter) == 100
        assert len(locks) == 0

    def test_mutual_exclusion(self):
        locks = KeyLocks()
        inside = []
        overlaps = []

        def worker():
            for _ in range(20):
                with locks.hold((7, 7), timeout=5):
                    inside.append(1)
                    if len(inside) > 1:
                        overlaps.append(1)
                    time.sleep(0.001)
                    inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert overlaps == []


@pytest.mark.django_db
class TestBusyMutation:
    """A mutation that cannot enter its critical section fails with BUSY."""

    def test_ship_busy(self, item, main_wh, settings):
        stock.receive(10, item, main_wh)
        settings.STOCKLEDGER = {'LOCK_TIMEOUT': 0.1}
        entered, release = threading.Event(), threading.Event()

        def holder():
            with key_locks.hold((item.pk, main_wh.pk), timeout=1):
                entered.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait(5)
        try:
            with pytest.raises(StockError) as exc:
                stock.ship(3, item, main_wh)
        finally:
            release.set()
            thread.join(5)

        assert exc.value.code == 'BUSY'
        assert exc.value.balance == 10
        assert StockMovement.objects.count() == 1

    def test_transfer_busy_on_destination(self, item, main_wh, north_wh, settings):
        stock.receive(10, item, main_wh)
        settings.STOCKLEDGER = {'LOCK_TIMEOUT': 0.1}
        entered, release = threading.Event(), threading.Event()

        def holder():
            with key_locks.hold((item.pk, north_wh.pk), timeout=1):
                entered.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait(5)
        try:
            with pytest.raises(StockError) as exc:
                stock.transfer(3, item, main_wh, north_wh)
        finally:
            release.set()
            thread.join(5)

        assert exc.value.code == 'BUSY'
        assert exc.value.balance == 0
        assert StockMovement.objects.count() == 1

    def test_lock_released_after_error(self, item, main_wh):
        with pytest.raises(StockError):
            stock.ship(3, item, main_wh)

        assert not key_locks.is_held((item.pk, main_wh.pk))
        assert stock.receive(3, item, main_wh) is not None


@pytest.mark.django_db
class TestRowLock:
    """The database row lock is bounded like the critical section."""

    def test_row_locked_elsewhere_is_busy(self, item, main_wh, settings, monkeypatch):
        stock.receive(10, item, main_wh)
        settings.STOCKLEDGER = {'LOCK_TIMEOUT': 0.1}

        def locked(cls, key):
            raise OperationalError('could not obtain lock on row')

        monkeypatch.setattr(StockMovements, '_select_row', classmethod(locked))

        started = time.monotonic()
        with pytest.raises(StockError) as exc:
            stock.ship(3, item, main_wh)

        assert time.monotonic() - started < 2
        assert exc.value.code == 'BUSY'
        assert exc.value.balance == 10
        assert not key_locks.is_held((item.pk, main_wh.pk))
        assert StockMovement.objects.count() == 1

    def test_row_lock_retried_until_free(self, item, main_wh, monkeypatch):
        stock.receive(10, item, main_wh)
        original = StockMovements._select_row
        refusals = []

        def released_after_two_tries(cls, key):
            if len(refusals) < 2:
                refusals.append(key)
                raise OperationalError('could not obtain lock on row')
            return original(key)

        monkeypatch.setattr(StockMovements, '_select_row', classmethod(released_after_two_tries))

        move = stock.ship(3, item, main_wh)

        assert len(refusals) == 2
        assert move.quantity_after == 7


@pytest.mark.django_db(transaction=True)
class TestConcurrentMutations:
    """Parallel writers on one key, each on its own connection."""

    def test_parallel_shipments_never_oversell(self, item, main_wh, settings):
        settings.STOCKLEDGER = {'LOCK_TIMEOUT': 30.0}
        stock.receive(20, item, main_wh)
        start = threading.Barrier(12)
        outcomes = []

        def worker():
            try:
                start.wait(5)
                stock.ship(2, item, main_wh)
                outcomes.append('ok')
            except StockError as exc:
                outcomes.append(exc.code)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(60)

        assert outcomes.count('ok') == 10
        assert sorted(set(outcomes)) == ['INSUFFICIENT_STOCK', 'ok']

        row = WarehouseStock.objects.get(item=item, warehouse=main_wh)
        assert row.quantity_available == 0
        moves = list(StockMovement.objects.filter(item=item, warehouse=main_wh).order_by('id'))
        assert len(moves) == 11
        for previous, move in zip(moves, moves[1:]):
            assert move.quantity_before == previous.quantity_after
        assert moves[-1].quantity_after == row.quantity_available
        assert sum(m.delta for m in moves) == row.quantity_available

    def test_parallel_transfers_keep_totals(self, item, main_wh, north_wh, settings):
        """Opposite-direction transfers neither deadlock nor lose units."""
        settings.STOCKLEDGER = {'LOCK_TIMEOUT': 30.0}
        stock.receive(50, item, main_wh)
        stock.receive(50, item, north_wh)
        start = threading.Barrier(8)
        errors = []

        def worker(source, destination):
            try:
                start.wait(5)
                for _ in range(3):
                    stock.transfer(2, item, source, destination)
            except StockError as exc:
                errors.append(exc.code)
            finally:
                connection.close()

        threads = [
            threading.Thread(target=worker, args=(main_wh, north_wh) if i % 2 else (north_wh, main_wh))
            for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(60)

        assert errors == []
        assert stock.total_quantity(item) == 100
        assert StockMovement.objects.filter(type=MovementType.TRANSFER).count() == 0
        for warehouse in (main_wh, north_wh):
            row = WarehouseStock.objects.get(item=item, warehouse=warehouse)
            assert row.ledger_balance() == row.quantity_available
        assert StockMovement.objects.count() == 2 + 8 * 3 * 2
