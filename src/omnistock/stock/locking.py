"""Per-row mutual exclusion for stock and pickup-code updates.

Each key (for example ``("stock", variant_id, location_id)``) maps to its own
lock, so work on different rows never contends. Acquisition is bounded:
a caller that cannot get the lock in time gets ``Contention`` instead of
blocking indefinitely.

Serialized operations commit in their own unit of work before the lock is
released, including when they are called from inside a command handler.
"""

import contextvars
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Hashable, Iterator

import structlog
from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from omnistock import settings
from omnistock.errors import Contention


logger = structlog.get_logger(__name__)


class RowLocks:
    """Registry of named locks created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def is_held(self, key: Hashable) -> bool:
        return self._lock_for(key).locked()

    @contextmanager
    def hold(self, key: Hashable, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``key`` or raise Contention after ``timeout`` seconds."""
        if timeout is None:
            timeout = settings.lock_timeout()
        lock = self._lock_for(key)
        if not lock.acquire(timeout=timeout):
            raise Contention(f"Timed out after {timeout}s waiting for {key!r}")
        try:
            yield
        finally:
            lock.release()


_row_locks: RowLocks | None = None


def get_row_locks() -> RowLocks:
    """Return the process-wide lock registry (singleton)."""
    global _row_locks
    if _row_locks is None:
        _row_locks = RowLocks()
    return _row_locks


def reset_row_locks():
    """Reset the lock registry (useful for testing)."""
    global _row_locks
    _row_locks = None


def in_own_transaction(operation: Callable[[], Any]) -> Any:
    """Run ``operation`` in a unit of work that has committed when this returns.

    A unit of work opened inside a command handler joins the handler's
    transaction, which commits only after the handler returns. The operation
    therefore runs in a fresh context with its own domain context. A version
    conflict at commit surfaces as Contention.
    """
    domain = current_domain._get_current_object()

    def isolated():
        with domain.domain_context():
            with UnitOfWork():
                return operation()

    try:
        return contextvars.Context().run(isolated)
    except ExpectedVersionError as exc:
        raise Contention(f"Concurrent update detected: {exc}") from exc


def run_serialized(
    key: Hashable,
    operation: Callable[[], Any],
    timeout: float | None = None,
    attempts: int | None = None,
) -> Any:
    """Run ``operation`` while holding ``key``, retrying on Contention.

    The operation's writes are committed before the lock is released. Only
    Contention is retried; any other error from ``operation`` propagates on
    the first attempt.
    """
    if attempts is None:
        attempts = settings.contention_retries()
    backoff = settings.retry_backoff()
    locks = get_row_locks()

    for attempt in range(1, attempts + 1):
        try:
            with locks.hold(key, timeout):
                return in_own_transaction(operation)
        except Contention:
            if attempt >= attempts:
                logger.warning("row_lock_contention_exhausted", key=repr(key), attempts=attempts)
                raise
            logger.info("row_lock_contention_retry", key=repr(key), attempt=attempt)
            time.sleep(backoff * attempt)
