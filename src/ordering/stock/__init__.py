"""Process-wide stock lock registry.

Provides get_stock_locks() / set_stock_locks() so that the lifecycle engine,
which acquires locks, and the command handlers, which mutate stock under
them, always agree on one registry.
"""

from ordering.config import OrderingSettings
from ordering.stock.locks import StockLocks

_current_locks: StockLocks | None = None


def get_stock_locks() -> StockLocks:
    """Return the shared lock registry, building it from settings on first use."""
    global _current_locks
    if _current_locks is None:
        settings = OrderingSettings.from_env()
        _current_locks = StockLocks(
            timeout=settings.lock_timeout_seconds,
            retries=settings.lock_retries,
            backoff=settings.lock_backoff_seconds,
        )
    return _current_locks


def set_stock_locks(locks: StockLocks) -> None:
    global _current_locks
    _current_locks = locks


def reset_stock_locks() -> None:
    global _current_locks
    _current_locks = None
