"""Exclusive per-product stock locks.

Locks are keyed by product id: a product and all of its variants are one
aggregate, persisted as a whole, so they share a lock. Keys are always
acquired in ascending order so that two orders touching overlapping products
can never deadlock. A lock wait that times out releases everything acquired
so far and retries the whole acquisition with exponential backoff; once the
retries are exhausted the caller gets a ``StockConflict``.
"""

import threading
import time
from collections.abc import Callable, Iterable
from contextlib import contextmanager

import structlog

from ordering.errors import StockConflict

logger = structlog.get_logger(__name__)


class _LockTimeout(Exception):
    pass


class StockLocks:
    def __init__(
        self,
        timeout: float = 2.0,
        retries: int = 3,
        backoff: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff
        self._sleep = sleep
        self._registry: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._local = threading.local()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._registry.get(key)
            if lock is None:
                lock = self._registry[key] = threading.Lock()
            return lock

    @property
    def _held(self) -> set[str]:
        held = getattr(self._local, "held", None)
        if held is None:
            held = self._local.held = set()
        return held

    def is_held(self, key) -> bool:
        """True when the calling thread holds the lock for ``key``."""
        return str(key) in self._held

    def _acquire_all(self, keys: list[str]) -> list[threading.Lock]:
        acquired = []
        try:
            for key in keys:
                lock = self._lock_for(key)
                if not lock.acquire(timeout=self.timeout):
                    raise _LockTimeout(key)
                acquired.append(lock)
        except _LockTimeout:
            for lock in reversed(acquired):
                lock.release()
            raise
        return acquired

    @contextmanager
    def hold(self, keys: Iterable):
        ordered = sorted({str(key) for key in keys} - self._held)

        acquired = None
        for attempt in range(1, self.retries + 1):
            try:
                acquired = self._acquire_all(ordered)
                break
            except _LockTimeout as exc:
                logger.warning("stock_lock_timeout", key=str(exc), attempt=attempt, retries=self.retries)
                if attempt < self.retries:
                    self._sleep(self.backoff * 2 ** (attempt - 1))

        if acquired is None:
            raise StockConflict(ordered, attempts=self.retries)

        self._held.update(ordered)
        try:
            yield ordered
        finally:
            self._held.difference_update(ordered)
            for lock in reversed(acquired):
                lock.release()
