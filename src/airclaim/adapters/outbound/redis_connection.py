"""
Redis Connection
================

Shared connection pool for the Redis store adapters, with connect retries,
Unix socket support and translation of client errors into ``StorageError``.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import redis.asyncio as redis

from airclaim.domain.errors import StorageError

if TYPE_CHECKING:
    from airclaim.infrastructure.config import RedisSettings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise Redis client failures as ``StorageError``."""
    try:
        yield
    except redis.RedisError as e:
        logger.error(f"Redis {operation} failed: {e}")
        raise StorageError(f"Redis {operation} failed", operation=operation) from e


class RedisConnection:
    """
    Owns the ``redis.asyncio`` client shared by all Redis stores.

    Keys are namespaced with ``settings.key_prefix``.
    """

    def __init__(self, settings: RedisSettings) -> None:
        """
        Initialize with configuration. No I/O until ``connect``.

        Args:
            settings: Redis connection settings.
        """
        self._settings = settings
        self._client: redis.Redis | None = None  # type: ignore[type-arg]
        self._prefix = settings.key_prefix

    @property
    def client(self) -> redis.Redis:  # type: ignore[type-arg]
        if self._client is None:
            raise StorageError("Redis client not connected")
        return self._client

    def key(self, name: str) -> str:
        """Full key with namespace prefix."""
        return f"{self._prefix}{name}"

    async def connect(self) -> None:
        """Establish connection to Redis with retries."""
        max_retries = self._settings.connect_retries
        retry_delay = self._settings.retry_delay_seconds
        last_error: Exception | None = None

        password = None
        if self._settings.password:
            password = self._settings.password.get_secret_value()

        for attempt in range(max_retries):
            try:
                if self._settings.socket_path:
                    pool = redis.ConnectionPool(
                        connection_class=redis.UnixDomainSocketConnection,
                        path=self._settings.socket_path,
                        password=password,
                        db=self._settings.db,
                        max_connections=self._settings.max_connections,
                        decode_responses=True,
                    )
                    if attempt == 0:
                        logger.info(f"Connecting to Redis via Unix socket: {self._settings.socket_path}")
                else:
                    pool = redis.ConnectionPool(
                        host=self._settings.host,
                        port=self._settings.port,
                        password=password,
                        db=self._settings.db,
                        max_connections=self._settings.max_connections,
                        decode_responses=True,
                    )
                    # Force IPv4 socket family on the connection class
                    pool.connection_class = type(
                        "IPv4Connection",
                        (pool.connection_class,),
                        {"socket_type": socket.AF_INET},
                    )
                    if attempt == 0:
                        logger.info(f"Connecting to Redis via TCP: {self._settings.host}:{self._settings.port}")

                self._client = redis.Redis(connection_pool=pool)
                await self._client.ping()  # type: ignore[misc]

                if self._settings.socket_path:
                    logger.info(f"Connected to Redis via Unix socket: {self._settings.socket_path}")
                else:
                    logger.info(f"Connected to Redis at {self._settings.host}:{self._settings.port}")
                return

            except (redis.ConnectionError, FileNotFoundError) as e:
                last_error = e
                if attempt < max_retries - 1:
                    logger.warning(
                        f"Redis connection attempt {attempt + 1} failed: {e}. Retrying in {retry_delay}s..."
                    )
                    await asyncio.sleep(retry_delay)
            except redis.RedisError as e:
                logger.error(f"Unexpected Redis error: {e}")
                raise StorageError("Redis connection failed") from e

        logger.error(f"Redis connection failed after {max_retries} attempts: {last_error}")
        raise StorageError(f"Redis connection failed after {max_retries} attempts")

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from Redis")

    async def health_check(self) -> bool:
        """Check if Redis is reachable."""
        if self._client is None:
            return False
        try:
            await self._client.ping()  # type: ignore[misc]
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False
