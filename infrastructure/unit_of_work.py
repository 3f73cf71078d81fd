"""In-memory transactions with per-row locks and an undo journal"""
import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import List, Optional, Tuple

from domain.errors import SerializationFailure
from domain.repositories import UnitOfWork, RoomRepository, BookingRepository, PaymentRepository

logger = logging.getLogger("hotel.uow")

_MISSING = object()

# Undo entries (storage, key, previous value) for the transaction running in
# the current task. None outside a transaction: writes then apply directly.
_active_journal: ContextVar[Optional[List[Tuple[dict, object, object]]]] = ContextVar(
    "_active_journal", default=None
)


def journal_write(storage: dict, key) -> None:
    """Record the current value of ``storage[key]`` before it is overwritten"""
    journal = _active_journal.get()
    if journal is not None:
        journal.append((storage, key, storage.get(key, _MISSING)))


def _rollback(journal: List[Tuple[dict, object, object]]) -> None:
    for storage, key, previous in reversed(journal):
        if previous is _MISSING:
            storage.pop(key, None)
        else:
            storage[key] = previous


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of work over the in-memory repositories"""

    def __init__(
        self,
        rooms: RoomRepository,
        bookings: BookingRepository,
        payments: PaymentRepository,
        lock_timeout: float = 5.0
    ):
        self.rooms = rooms
        self.bookings = bookings
        self.payments = payments
        self.lock_timeout = lock_timeout
        # Locks live only while a transaction holds or waits for them.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def transaction(self, *lock_keys: str):
        if _active_journal.get() is not None:
            raise RuntimeError("Nested transactions are not supported")

        held: List[asyncio.Lock] = []
        try:
            # Sorted acquisition gives every transaction the same lock order.
            for key in sorted(set(lock_keys)):
                lock = self._lock_for(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout)
                except asyncio.TimeoutError:
                    logger.warning("Timed out waiting %.1fs for lock %s", self.lock_timeout, key)
                    raise SerializationFailure(
                        f"Could not acquire {key} within {self.lock_timeout} seconds"
                    )
                held.append(lock)

            journal: List[Tuple[dict, object, object]] = []
            token = _active_journal.set(journal)
            try:
                yield self
            except BaseException:
                _rollback(journal)
                logger.debug("Rolled back %d write(s) under %s", len(journal), lock_keys)
                raise
            finally:
                _active_journal.reset(token)
        finally:
            for lock in reversed(held):
                lock.release()
