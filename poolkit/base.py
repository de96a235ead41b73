"""
Base classes for poolkit.

This module provides the two capabilities a pool is built from (Factory and
Validator), the error hierarchy, and the result types returned to callers.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from .config import ConnectionParams

# Type variables for generic typing
H = TypeVar('H')  # Handle type
T = TypeVar('T')  # Result type


class PoolOutcome(str, Enum):
    """Caller-visible outcome of a pool operation."""

    ACQUIRED = "acquired"
    RELEASED = "released"
    CREATION_FAILED = "creation_failed"
    POOL_EXHAUSTED = "pool_exhausted"
    ACQUIRE_TIMEOUT = "acquire_timeout"
    NOT_CHECKED_OUT = "not_checked_out"
    POOL_CLOSED = "pool_closed"


class PoolError(Exception):
    """Base exception for pool errors."""

    outcome: PoolOutcome


class CreationFailed(PoolError):
    """Exception raised when the factory cannot produce a handle."""

    outcome = PoolOutcome.CREATION_FAILED

    def __init__(self, cause: Union[BaseException, str]):
        self.cause = cause
        super().__init__(f"Failed to create handle: {cause}")


class PoolExhausted(PoolError):
    """Exception raised when no idle handle exists and the pool is at max_size."""

    outcome = PoolOutcome.POOL_EXHAUSTED

    def __init__(self, pool_name: str, max_size: int, message: Optional[str] = None):
        self.pool_name = pool_name
        self.max_size = max_size
        super().__init__(message or f"Pool {pool_name} is exhausted ({max_size} handles in use)")


class AcquireTimeout(PoolExhausted):
    """Exception raised when a blocked acquire outlives its timeout."""

    outcome = PoolOutcome.ACQUIRE_TIMEOUT

    def __init__(self, pool_name: str, max_size: int, timeout: float):
        self.timeout = timeout
        super().__init__(
            pool_name, max_size, f"Timeout waiting for a handle from pool {pool_name} after {timeout} seconds"
        )


class NotCheckedOut(PoolError):
    """Exception raised when releasing a handle the pool has not loaned out."""

    outcome = PoolOutcome.NOT_CHECKED_OUT

    def __init__(self, pool_name: str):
        self.pool_name = pool_name
        super().__init__(f"Handle is not checked out from pool {pool_name}")


class PoolClosed(PoolError):
    """Exception raised for any operation on a pool that has been shut down."""

    outcome = PoolOutcome.POOL_CLOSED

    def __init__(self, pool_name: str):
        self.pool_name = pool_name
        super().__init__(f"Pool {pool_name} is closed")


class PoolResult(Generic[T]):
    """Result of a pool operation."""

    def __init__(
        self,
        success: bool,
        outcome: PoolOutcome,
        data: Optional[T] = None,
        error: Optional[PoolError] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.success = success
        self.outcome = outcome
        self.data = data
        self.error = error
        self.metadata = metadata or {}
        self.timestamp = time.time()

    def __str__(self) -> str:
        if self.success:
            return f"PoolResult(success={self.success}, outcome={self.outcome.value})"
        else:
            return f"PoolResult(success={self.success}, outcome={self.outcome.value}, error={self.error})"

    def unwrap(self) -> T:
        """Return the data of a successful result, or raise its error."""
        if not self.success:
            raise self.error
        return self.data

    @classmethod
    def success_result(cls, outcome: PoolOutcome, data: Optional[T] = None, metadata: Optional[Dict[str, Any]] = None) -> 'PoolResult[T]':
        """Create a successful pool result."""
        return cls(success=True, outcome=outcome, data=data, metadata=metadata)

    @classmethod
    def error_result(cls, error: PoolError, metadata: Optional[Dict[str, Any]] = None) -> 'PoolResult[T]':
        """Create an error pool result."""
        return cls(success=False, outcome=error.outcome, error=error, metadata=metadata)


@dataclass
class CloseReport:
    """What a shutdown closed, and what failed to close."""

    closed_count: int = 0
    failures: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PoolSnapshot:
    """A consistent view of the pool's counters."""

    size: int
    in_use: int
    idle: int
    max_size: int
    closed: bool


class Factory(ABC, Generic[H]):
    """Produces live handles and closes retired ones."""

    @abstractmethod
    async def create(self, params: ConnectionParams) -> H:
        """Create a new live handle.

        Args:
            params: The connection parameters of the pool

        Returns:
            A new handle

        Raises:
            CreationFailed: If the underlying resource cannot be reached
        """
        pass

    @abstractmethod
    async def close(self, handle: H) -> None:
        """Close a handle the pool is retiring.

        Args:
            handle: The handle to close
        """
        pass


class Validator(ABC, Generic[H]):
    """Cheaply tests whether a handle is still usable."""

    @abstractmethod
    async def is_valid(self, handle: H, timeout: float) -> bool:
        """Check a handle.

        A dead or already closed handle yields False; an exception means the
        check itself malfunctioned.

        Args:
            handle: The handle to check
            timeout: Budget for the check in seconds

        Returns:
            True if the handle is usable
        """
        pass


class NoopValidator(Validator[Any]):
    """Validator that trusts every handle."""

    async def is_valid(self, handle: Any, timeout: float) -> bool:
        return True
