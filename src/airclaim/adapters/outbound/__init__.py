"""Outbound adapters for claim, credit and counter storage."""

from airclaim.adapters.outbound.redis_connection import RedisConnection
from airclaim.adapters.outbound.store_memory import (
    InMemoryClaimStore,
    InMemoryCounterStore,
    InMemoryCreditStore,
)
from airclaim.adapters.outbound.store_redis import (
    RedisClaimStore,
    RedisCounterStore,
    RedisCreditStore,
)

__all__ = [
    # Redis (production)
    "RedisConnection",
    "RedisClaimStore",
    "RedisCounterStore",
    "RedisCreditStore",
    # In-memory (development/tests)
    "InMemoryClaimStore",
    "InMemoryCounterStore",
    "InMemoryCreditStore",
]
