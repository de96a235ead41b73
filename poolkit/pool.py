"""
Handle pool for poolkit.

This module provides the pool that owns every handle it creates. It keeps two
disjoint collections, the idle handles available for loan and the handles
checked out to callers, and is the only code that moves handles between them.

All moves happen under one asyncio lock. Validation, creation and closing run
outside it. A slot that is in use but in neither collection (a handle being
validated, a creation in flight) is counted in ``_in_transit`` so that the
size bound holds while the lock is released.
"""

import asyncio
import random
from typing import Coroutine, Dict, Generic, List, Optional, Set

from .base import (
    AcquireTimeout,
    CloseReport,
    CreationFailed,
    Factory,
    H,
    NoopValidator,
    PoolClosed,
    PoolExhausted,
    PoolSnapshot,
    Validator,
)
from .config import PoolConfig
from .utils.logging import get_logger

logger = get_logger(__name__)


class HandlePool(Generic[H]):
    """Bounded pool of reusable handles."""

    def __init__(
        self,
        config: PoolConfig,
        factory: Factory[H],
        validator: Optional[Validator[H]] = None
    ):
        """Initialize the pool. No handle is created until fill() or acquire().

        Args:
            config: The pool configuration
            factory: Creates and closes handles
            validator: Checks handle liveness; defaults to trusting every handle
        """
        self.config = config
        self.name = config.name
        self.params = config.connection_params()
        self.factory = factory
        self.validator = validator or NoopValidator()

        self._available: List[H] = []
        self._checked_out: Dict[int, H] = {}
        self._in_transit = 0
        self._closed = False

        self._lock = asyncio.Lock()
        self._condition = asyncio.Condition(self._lock)

        # Tasks that settle slots on behalf of cancelled callers
        self._background: Set[asyncio.Task] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    def size(self) -> int:
        return len(self._available) + len(self._checked_out)

    def in_use(self) -> int:
        return len(self._checked_out)

    def idle(self) -> int:
        return len(self._available)

    def snapshot(self) -> PoolSnapshot:
        """Read every counter in one step."""
        in_use = len(self._checked_out)
        idle = len(self._available)
        return PoolSnapshot(
            size=in_use + idle,
            in_use=in_use,
            idle=idle,
            max_size=self.config.max_size,
            closed=self._closed
        )

    async def fill(self) -> None:
        """Top the pool up to min_size handles.

        Only the shortfall is created, and its slots are reserved first, so
        filling never takes the pool past max_size.

        Raises:
            CreationFailed: If any handle cannot be created. Handles created
                before the failure are closed first.
            PoolClosed: If the pool is or becomes shut down
        """
        async with self._condition:
            if self._closed:
                raise PoolClosed(self.name)
            need = max(0, self.config.min_size - self._occupied())
            self._in_transit += need

        created: List[H] = []
        try:
            for _ in range(need):
                created.append(await self._create())

            async with self._condition:
                self._in_transit -= need
                closed = self._closed
                if not closed:
                    self._available.extend(created)
                self._condition.notify_all()
        except asyncio.CancelledError:
            self._spawn(self._discard(created, need))
            raise
        except CreationFailed:
            logger.error(f"Failed to fill pool {self.name}; closing {len(created)} created handles")
            await asyncio.shield(self._spawn(self._discard(created, need)))
            raise

        if closed:
            for handle in created:
                await self._destroy(handle)
            raise PoolClosed(self.name)

        logger.info(f"Filled pool {self.name} with {len(created)} handles")

    async def acquire(self, timeout: Optional[float] = None) -> H:
        """Borrow a handle.

        Args:
            timeout: Seconds to wait on an exhausted pool; None uses the
                configured acquire_timeout

        Returns:
            A validated handle, now checked out

        Raises:
            CreationFailed: If a new handle was needed and could not be created
            PoolExhausted: If the pool is full and configured not to wait
            AcquireTimeout: If the pool stayed full for the whole timeout
            PoolClosed: If the pool is or becomes shut down
        """
        if timeout is None:
            timeout = self.config.acquire_timeout

        handle = await self._reserve(timeout)
        try:
            if handle is not None and not await self._validate(handle):
                stale, handle = handle, None
                logger.warning(f"Discarding invalid handle from pool {self.name}")
                await self._destroy(stale)
            if handle is None:
                # The slot is already reserved, so growth cannot overshoot
                handle = await self._create()
        except asyncio.CancelledError:
            self._give_back(handle)
            raise
        except CreationFailed:
            await asyncio.shield(self._give_back(handle))
            raise

        return await self._check_out(handle)

    async def release(self, handle: H) -> bool:
        """Return a borrowed handle.

        Args:
            handle: The handle to return

        Returns:
            True if the handle was checked out and has been taken back,
            False if it was not checked out from this pool

        Raises:
            PoolClosed: If the pool has been shut down, including while the
                handle was being validated
        """
        async with self._condition:
            if self._closed:
                raise PoolClosed(self.name)

            if self._checked_out.pop(id(handle), None) is None:
                logger.warning(f"Ignoring release of a handle not checked out from pool {self.name}")
                return False

            if not self._should_validate_on_release():
                self._available.append(handle)
                self._condition.notify_all()
                logger.debug(f"Released handle to pool {self.name}")
                return True

            self._in_transit += 1

        try:
            valid = await self._validate(handle)
        except asyncio.CancelledError:
            self._give_back(handle)
            raise

        if valid:
            settled = await asyncio.shield(self._give_back(handle))
        else:
            logger.warning(f"Discarding handle that failed validation on release to pool {self.name}")
            settled = await asyncio.shield(self._spawn(self._discard([handle], 1)))

        if not settled:
            # Shut down while validating; the handle has been closed
            raise PoolClosed(self.name)
        return True

    async def shutdown(self) -> CloseReport:
        """Close every handle and refuse further use. Safe to call repeatedly.

        Returns:
            The number of handles closed and the reasons for failed closes
        """
        report = CloseReport()

        async with self._condition:
            if self._closed:
                return report

            self._closed = True
            handles = self._available + list(self._checked_out.values())
            self._available = []
            self._checked_out = {}
            self._condition.notify_all()

            # The drain holds the lock so no release can slip a handle back in
            for handle in handles:
                try:
                    await self.factory.close(handle)
                    report.closed_count += 1
                except Exception as e:
                    logger.warning(f"Error closing handle during shutdown of pool {self.name}: {e}")
                    report.failures.append(f"{type(e).__name__}: {e}")

        logger.info(
            f"Shut down pool {self.name}: closed {report.closed_count} handles, "
            f"{len(report.failures)} failures"
        )
        return report

    async def _reserve(self, timeout: Optional[float]) -> Optional[H]:
        """Claim a slot: the most recently returned idle handle, or room to grow.

        Returns:
            An idle handle to validate, or None when the caller should create one
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        async with self._condition:
            while True:
                if self._closed:
                    raise PoolClosed(self.name)

                if self._available:
                    self._in_transit += 1
                    return self._available.pop()

                if self._occupied() < self.config.max_size:
                    self._in_transit += 1
                    return None

                if not self.config.acquire_blocks_on_exhaustion:
                    raise PoolExhausted(self.name, self.config.max_size)

                if deadline is None:
                    await self._condition.wait()
                    continue

                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise AcquireTimeout(self.name, self.config.max_size, timeout)

                try:
                    await asyncio.wait_for(self._condition.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    # wait_for hands the lock back; check once more before giving up
                    pass

    async def _check_out(self, handle: H) -> H:
        """Move a reserved handle into the checked-out collection."""
        try:
            await self._lock.acquire()
        except asyncio.CancelledError:
            self._give_back(handle)
            raise

        try:
            self._in_transit -= 1
            closed = self._closed
            if not closed:
                self._checked_out[id(handle)] = handle
        finally:
            self._lock.release()

        if closed:
            await self._destroy(handle)
            raise PoolClosed(self.name)

        logger.debug(f"Acquired handle from pool {self.name}")
        return handle

    def _give_back(self, handle: Optional[H]) -> asyncio.Task:
        """Settle a reserved slot in a pool-owned task.

        The handle goes back to the idle collection, or is closed if the pool
        is shut down. With no handle, only the slot is freed.
        """
        return self._spawn(self._return_reserved(handle))

    async def _return_reserved(self, handle: Optional[H]) -> bool:
        """Returns False if the pool was shut down by the time the slot settled."""
        async with self._condition:
            self._in_transit -= 1
            still_open = not self._closed
            if handle is not None and still_open:
                self._available.append(handle)
                handle = None
            self._condition.notify_all()

        if handle is not None:
            await self._destroy(handle)
        return still_open

    async def _discard(self, handles: List[H], slots: int) -> bool:
        """Close reserved handles and free their slots.

        Returns False if the pool was shut down by the time the slots settled.
        """
        for handle in handles:
            await self._destroy(handle)
        async with self._condition:
            self._in_transit -= slots
            self._condition.notify_all()
            return not self._closed

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _create(self) -> H:
        try:
            return await self.factory.create(self.params)
        except CreationFailed:
            raise
        except Exception as e:
            logger.error(f"Failed to create handle for pool {self.name}: {e}")
            raise CreationFailed(e) from e

    async def _validate(self, handle: H) -> bool:
        budget = self.config.validation_timeout
        try:
            return bool(await asyncio.wait_for(self.validator.is_valid(handle, budget), timeout=budget))
        except asyncio.TimeoutError:
            logger.warning(f"Validation timed out after {budget} seconds for pool {self.name}")
            return False
        except Exception as e:
            logger.error(f"Error validating handle for pool {self.name}: {e}")
            return False

    async def _destroy(self, handle: H) -> None:
        try:
            await self.factory.close(handle)
        except Exception as e:
            logger.warning(f"Error closing handle for pool {self.name}: {e}")

    def _should_validate_on_release(self) -> bool:
        if not self.config.validate_on_release:
            return False
        rate = self.config.release_sample_rate
        return rate >= 1.0 or random.random() < rate

    def _occupied(self) -> int:
        return len(self._available) + len(self._checked_out) + self._in_transit

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name}, idle={self.idle()}, "
            f"in_use={self.in_use()}, max_size={self.config.max_size}, closed={self._closed})"
        )
