"""
MySQL adapters for poolkit.

This module opens and checks MySQL connections with aiomysql so they can be
pooled by a HandlePool.
"""

from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

from ..base import CreationFailed, Factory, Validator
from ..config import ConnectionParams
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 3306


def parse_endpoint(endpoint: str) -> Tuple[str, int, Optional[str]]:
    """Split an endpoint into host, port and database.

    Accepts ``host``, ``host:port``, ``host:port/database`` and the same
    forms prefixed with ``mysql://``.

    Args:
        endpoint: The endpoint to parse

    Returns:
        Tuple of (host, port, database)

    Raises:
        ValueError: If the endpoint has no host or an invalid port
    """
    if "://" not in endpoint:
        endpoint = f"mysql://{endpoint}"

    parts = urlsplit(endpoint)
    if parts.scheme != "mysql":
        raise ValueError(f"Unsupported endpoint scheme: {parts.scheme}")
    if not parts.hostname:
        raise ValueError(f"Endpoint has no host: {endpoint}")

    port = parts.port or DEFAULT_PORT
    database = parts.path.lstrip("/") or None
    return parts.hostname, port, database


class MySqlFactory(Factory[Any]):
    """Factory that opens aiomysql connections."""

    def __init__(self, charset: str = "utf8mb4", connect_timeout: float = 10.0, **kwargs):
        """Initialize the factory.

        Args:
            charset: The MySQL charset
            connect_timeout: Timeout for opening a connection in seconds
            **kwargs: Additional arguments for aiomysql.connect
        """
        self.charset = charset
        self.connect_timeout = connect_timeout
        self.kwargs = kwargs

    def connect_kwargs(self, params: ConnectionParams) -> Dict[str, Any]:
        """Build the keyword arguments for aiomysql.connect."""
        host, port, database = parse_endpoint(params.endpoint)
        kwargs = {
            "host": host,
            "port": port,
            "user": params.principal,
            "password": params.credential.get_secret_value(),
            "charset": self.charset,
            "connect_timeout": self.connect_timeout,
        }
        if database:
            kwargs["db"] = database
        kwargs.update(self.kwargs)
        return kwargs

    async def create(self, params: ConnectionParams) -> Any:
        try:
            import aiomysql
        except ImportError:
            raise ImportError("aiomysql package is not installed. Install it with 'pip install poolkit[mysql]'")

        try:
            return await aiomysql.connect(**self.connect_kwargs(params))
        except Exception as e:
            logger.error(f"Failed to connect to MySQL at {params.endpoint}: {e}")
            raise CreationFailed(e) from e

    async def close(self, handle: Any) -> None:
        handle.close()


class MySqlPingValidator(Validator[Any]):
    """Validator that pings the server."""

    async def is_valid(self, handle: Any, timeout: float) -> bool:
        if handle.closed:
            return False
        try:
            await handle.ping(reconnect=False)
        except Exception as e:
            logger.debug(f"MySQL ping failed: {e}")
            return False
        return True


class MySqlQueryValidator(Validator[Any]):
    """Validator that runs a probe query and expects a row back."""

    def __init__(self, query: str = "SELECT 1"):
        self.query = query

    async def is_valid(self, handle: Any, timeout: float) -> bool:
        if handle.closed:
            return False
        try:
            async with handle.cursor() as cursor:
                await cursor.execute(self.query)
                result = await cursor.fetchone()
        except Exception as e:
            logger.debug(f"MySQL validation query failed: {e}")
            return False
        return bool(result)
