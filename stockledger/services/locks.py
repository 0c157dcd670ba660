"""
Per-key critical sections.

One lock per (item_id, warehouse_id) pair, created on demand and dropped
when nobody holds or waits for it. Acquisition is bounded: a caller that
cannot get every key within the timeout gets StockError('BUSY').

Multiple keys are always acquired in sorted order so that two transfers
between the same warehouses in opposite directions cannot deadlock.

Row locks (select_for_update) taken inside the critical section cover
other processes sharing the database.
"""

import threading
import time
from contextlib import contextmanager

from stockledger.exceptions import StockError


class KeyLocks:
    """Registry of reference-counted locks keyed by hashable tuples."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple, list] = {}  # key -> [lock, users]

    def _checkout(self, key) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys, timeout: float):
        """
        Hold every key for the duration of the block.

        Raises:
            StockError('BUSY'): If a key is not free within timeout seconds
        """
        ordered = sorted(set(keys))
        deadline = time.monotonic() + timeout
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                remaining = max(deadline - time.monotonic(), 0)
                if not lock.acquire(timeout=remaining):
                    self._checkin(key)
                    raise StockError('BUSY', key=key, timeout=timeout)
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)

    def is_held(self, key) -> bool:
        with self._guard:
            entry = self._locks.get(key)
            return entry is not None and entry[0].locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


key_locks = KeyLocks()
