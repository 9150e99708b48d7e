"""
Submission Rate Limiter
=======================

Caps how many claims one contributor may submit per calendar day (UTC).

Each contributor/day pair owns a counter record. ``check_and_count`` is a
single atomic increment followed by a compare: a submission over the cap
gives its increment back and is denied, so concurrent submissions at the
boundary cannot overshoot the limit.
"""

from __future__ import annotations

import logging
from datetime import UTC
from typing import TYPE_CHECKING

from airclaim.domain.entities import utc_now
from airclaim.domain.errors import RateLimitError

if TYPE_CHECKING:
    from airclaim.domain.entities import Clock
    from airclaim.ports.counter_store import CounterStore

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT = 10

# Window records outlive their day so late decrements never recreate them.
WINDOW_TTL_SECONDS = 2 * 24 * 3600


class SubmissionRateLimiter:
    """Per-contributor, per-day submission cap."""

    def __init__(
        self,
        counters: CounterStore,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        clock: Clock = utc_now,
    ) -> None:
        self._counters = counters
        self._daily_limit = daily_limit
        self._clock = clock

    @property
    def daily_limit(self) -> int:
        return self._daily_limit

    def _window_key(self, contributor_id: str) -> str:
        day = self._clock().astimezone(UTC).date().isoformat()
        return f"rate:submissions:{contributor_id}:{day}"

    async def check_and_count(self, contributor_id: str) -> int:
        """
        Reserve one submission slot for today.

        Returns:
            Number of submissions counted today, including this one.

        Raises:
            RateLimitError: The daily cap is already reached.
        """
        key = self._window_key(contributor_id)
        count = await self._counters.increment(key, ttl_seconds=WINDOW_TTL_SECONDS)
        if count > self._daily_limit:
            await self._counters.decrement(key)
            logger.info(f"Submission rate limit reached for contributor {contributor_id}")
            raise RateLimitError(
                f"Rate limit exceeded: maximum {self._daily_limit} claims per day",
                limit=self._daily_limit,
            )
        return count

    async def release(self, contributor_id: str) -> None:
        """Give back a slot reserved for a submission that did not persist."""
        await self._counters.decrement(self._window_key(contributor_id))

    async def remaining(self, contributor_id: str) -> int:
        used = await self._counters.get(self._window_key(contributor_id))
        return max(self._daily_limit - used, 0)
