"""
Function-backed factory and validator.

These let a pool be built from plain coroutine functions instead of
subclasses of Factory and Validator.
"""

from typing import Any, Awaitable, Callable

from ..base import Factory, Validator
from ..config import ConnectionParams


class CallableFactory(Factory[Any]):
    """Factory that delegates to coroutine functions."""

    def __init__(
        self,
        create_func: Callable[[ConnectionParams], Awaitable[Any]],
        close_func: Callable[[Any], Awaitable[None]]
    ):
        """Initialize the factory.

        Args:
            create_func: Function to create a new handle from connection parameters
            close_func: Function to close a handle
        """
        self.create_func = create_func
        self.close_func = close_func

    async def create(self, params: ConnectionParams) -> Any:
        return await self.create_func(params)

    async def close(self, handle: Any) -> None:
        await self.close_func(handle)


class CallableValidator(Validator[Any]):
    """Validator that delegates to a coroutine function."""

    def __init__(self, check_func: Callable[[Any, float], Awaitable[bool]]):
        """Initialize the validator.

        Args:
            check_func: Function taking a handle and a timeout budget
        """
        self.check_func = check_func

    async def is_valid(self, handle: Any, timeout: float) -> bool:
        return await self.check_func(handle, timeout)
