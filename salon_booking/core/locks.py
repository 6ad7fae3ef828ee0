"""Per-employee critical sections around check-then-book sequences.

The availability check, the conflict check and the write that follows them
must not interleave with another booking for the same employee, otherwise two
requests can both see a free slot and both book it. Holding the employee's
lock while checking and committing closes that window.

``LocalEmployeeLocks`` only serialises requests inside one process. Deployments
running several workers use ``RedisEmployeeLocks``.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import structlog
from redis.exceptions import LockError

from salon_booking.core.config import settings
from salon_booking.core.exceptions import BookingLockTimeout
from salon_booking.core.redis import RedisClient, redis_client

logger = structlog.get_logger(__name__)


class LocalEmployeeLocks:
    """One ``asyncio.Lock`` per employee id, created on first use."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.BOOKING_LOCK_TIMEOUT_SECONDS
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, employee_id: int) -> asyncio.Lock:
        lock = self._locks.get(employee_id)
        if lock is None:
            lock = self._locks[employee_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, employee_id: int) -> AsyncIterator[None]:
        lock = self._lock_for(employee_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Booking lock timeout", employee_id=employee_id)
            raise BookingLockTimeout(
                f"Employee {employee_id} is busy with another booking, try again"
            )
        try:
            yield
        finally:
            lock.release()


class RedisEmployeeLocks:
    """Employee locks shared by every worker through Redis."""

    def __init__(self, client: Optional[RedisClient] = None, timeout: Optional[int] = None):
        self.client = client or redis_client
        self.timeout = timeout or settings.BOOKING_LOCK_TIMEOUT_SECONDS

    @asynccontextmanager
    async def hold(self, employee_id: int) -> AsyncIterator[None]:
        lock = await self.client.employee_lock(employee_id, self.timeout)
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("Booking lock timeout", employee_id=employee_id)
            raise BookingLockTimeout(
                f"Employee {employee_id} is busy with another booking, try again"
            )
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Lock expired while held; the booking itself already committed
                logger.warning(
                    "Booking lock released after expiry",
                    employee_id=employee_id,
                    error=str(e),
                )


_local_locks = LocalEmployeeLocks()


def get_employee_locks():
    """Lock manager selected by ``BOOKING_LOCK_BACKEND``."""
    if settings.BOOKING_LOCK_BACKEND == "redis":
        return RedisEmployeeLocks()
    return _local_locks
