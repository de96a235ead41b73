"""
poolkit - a bounded asyncio pool of expensive, reusable handles.

A pool borrows handles out to callers, validates them, grows up to a maximum
size and closes everything on shutdown. The underlying resource is reached
only through a Factory and a Validator.
"""

from .base import (
    AcquireTimeout,
    CloseReport,
    CreationFailed,
    Factory,
    NoopValidator,
    NotCheckedOut,
    PoolClosed,
    PoolError,
    PoolExhausted,
    PoolOutcome,
    PoolResult,
    PoolSnapshot,
    Validator,
)
from .config import ConnectionParams, PoolConfig
from .controller import PoolController, create_pool
from .pool import HandlePool

__version__ = "0.1.0"

__all__ = [
    # Capabilities
    'Factory',
    'Validator',
    'NoopValidator',
    # Errors
    'PoolError',
    'CreationFailed',
    'PoolExhausted',
    'AcquireTimeout',
    'NotCheckedOut',
    'PoolClosed',
    # Results
    'PoolOutcome',
    'PoolResult',
    'CloseReport',
    'PoolSnapshot',
    # Config
    'ConnectionParams',
    'PoolConfig',
    # Pool
    'HandlePool',
    'PoolController',
    'create_pool',
]
