"""
Pool controller for poolkit.

This module provides the public surface of a pool. The controller forwards to
a HandlePool and reports every expected outcome (exhaustion, timeouts, double
releases, a closed pool) as a PoolResult instead of an exception, so callers
can branch on ``result.success`` or ``result.outcome``.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Generic, Optional

from .base import (
    CloseReport,
    Factory,
    H,
    NotCheckedOut,
    PoolError,
    PoolOutcome,
    PoolResult,
    PoolSnapshot,
    Validator,
)
from .config import PoolConfig
from .pool import HandlePool
from .utils.logging import LoggingContext, get_logger

logger = get_logger(__name__)


class PoolController(Generic[H]):
    """Public interface to a handle pool."""

    def __init__(self, pool: HandlePool[H]):
        self.pool = pool

    @classmethod
    async def create(
        cls,
        config: PoolConfig,
        factory: Factory[H],
        validator: Optional[Validator[H]] = None
    ) -> "PoolController[H]":
        """Build a pool and eagerly create its min_size handles.

        Args:
            config: The pool configuration
            factory: Creates and closes handles
            validator: Checks handle liveness

        Returns:
            A ready controller

        Raises:
            CreationFailed: If an eager creation fails; nothing is left open
        """
        pool = HandlePool(config, factory, validator)
        with LoggingContext(pool=config.name):
            await pool.fill()
        return cls(pool)

    @property
    def name(self) -> str:
        return self.pool.name

    @property
    def config(self) -> PoolConfig:
        return self.pool.config

    @property
    def closed(self) -> bool:
        return self.pool.closed

    async def acquire(self, timeout: Optional[float] = None) -> PoolResult[H]:
        """Borrow a handle.

        Args:
            timeout: Seconds to wait on an exhausted pool; None uses the
                configured acquire_timeout

        Returns:
            A result holding the handle, or the reason none was handed out
        """
        with LoggingContext(pool=self.name):
            try:
                handle = await self.pool.acquire(timeout)
            except PoolError as e:
                logger.debug(f"Acquire from pool {self.name} failed: {e}")
                return PoolResult.error_result(e)
        return PoolResult.success_result(PoolOutcome.ACQUIRED, data=handle)

    async def release(self, handle: H) -> PoolResult[None]:
        """Return a borrowed handle."""
        with LoggingContext(pool=self.name):
            try:
                released = await self.pool.release(handle)
            except PoolError as e:
                return PoolResult.error_result(e)
        if not released:
            return PoolResult.error_result(NotCheckedOut(self.name))
        return PoolResult.success_result(PoolOutcome.RELEASED)

    async def shutdown(self) -> CloseReport:
        """Close every handle and refuse further use."""
        with LoggingContext(pool=self.name):
            return await self.pool.shutdown()

    def size(self) -> int:
        return self.pool.size()

    def in_use(self) -> int:
        return self.pool.in_use()

    def idle(self) -> int:
        return self.pool.idle()

    def snapshot(self) -> PoolSnapshot:
        return self.pool.snapshot()

    @asynccontextmanager
    async def connection(self, timeout: Optional[float] = None) -> AsyncIterator[H]:
        """Borrow a handle for the duration of an ``async with`` block.

        Raises:
            PoolError: If no handle could be acquired
        """
        result = await self.acquire(timeout)
        handle = result.unwrap()
        try:
            yield handle
        finally:
            await self.release(handle)

    async def __aenter__(self) -> "PoolController[H]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    def __str__(self) -> str:
        snapshot = self.snapshot()
        return (
            f"{self.__class__.__name__}(name={self.name}, idle={snapshot.idle}, "
            f"in_use={snapshot.in_use}, closed={snapshot.closed})"
        )


async def create_pool(
    endpoint: str,
    principal: str,
    credential: str,
    min_size: int = 0,
    max_size: int = 10,
    *,
    factory: Factory[H],
    validator: Optional[Validator[H]] = None,
    **options
) -> PoolController[H]:
    """Create a pool from connection parameters and size bounds.

    Args:
        endpoint: Address of the underlying resource
        principal: Identity to authenticate as
        credential: Secret for the principal
        min_size: Handles created before returning
        max_size: Maximum number of handles
        factory: Creates and closes handles
        validator: Checks handle liveness
        **options: Any other PoolConfig field

    Returns:
        A ready controller

    Raises:
        CreationFailed: If an eager creation fails
        pydantic.ValidationError: If the settings are invalid
    """
    config = PoolConfig(
        endpoint=endpoint,
        principal=principal,
        credential=credential,
        min_size=min_size,
        max_size=max_size,
        **options
    )
    return await PoolController.create(config, factory, validator)
