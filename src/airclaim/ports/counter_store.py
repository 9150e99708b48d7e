"""
CounterStore Port
=================

Abstract interface for atomic integer counters (claim sequence, daily
submission windows).
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CounterStore(ABC):
    """Port for named counters with atomic increment semantics."""

    @abstractmethod
    async def increment(self, key: str, ttl_seconds: int | None = None) -> int:
        """
        Atomically increment a counter and return the new value.

        Args:
            key: Counter name. Absent counters start at 0.
            ttl_seconds: Optional expiry applied to the counter record.
        """
        ...

    @abstractmethod
    async def decrement(self, key: str) -> int:
        """Atomically decrement a counter and return the new value."""
        ...

    @abstractmethod
    async def get(self, key: str) -> int:
        """Current value (0 when absent)."""
        ...

    @abstractmethod
    async def set_if_absent(self, key: str, value: int) -> bool:
        """Initialize a counter. Returns False when it already exists."""
        ...

    async def health_check(self) -> bool:
        """Check if the store is operational."""
        return True
