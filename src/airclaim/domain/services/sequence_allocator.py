"""
Claim Sequence Allocator
========================

Allocates human-readable claim identifiers (``AIR-CLAIM-0001``, ...) from an
atomically incremented counter record, so concurrent submissions never share
a number.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from airclaim.ports.claim_store import ClaimStore
    from airclaim.ports.counter_store import CounterStore

logger = logging.getLogger(__name__)

SEQUENCE_COUNTER_KEY = "counter:claim_sequence"
DEFAULT_PREFIX = "AIR-CLAIM"
DEFAULT_DIGITS = 4


def format_claim_id(number: int, prefix: str = DEFAULT_PREFIX, digits: int = DEFAULT_DIGITS) -> str:
    """``7`` -> ``AIR-CLAIM-0007``. Numbers wider than ``digits`` are not truncated."""
    if number < 1:
        raise ValueError(f"Claim numbers start at 1, got {number}")
    return f"{prefix}-{number:0{digits}d}"


def parse_claim_number(claim_id: str, prefix: str = DEFAULT_PREFIX) -> int | None:
    """Numeric suffix of a claim id, or None if it does not match the prefix."""
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d+)", claim_id)
    return int(match.group(1)) if match else None


class SequenceAllocator:
    """
    Claim-id allocator backed by a CounterStore.

    ``allocate`` is a single atomic increment. ``seed`` carries an existing
    data set's sequence over into an absent counter by reading the most
    recently created claim once at startup.
    """

    def __init__(
        self,
        counters: CounterStore,
        claims: ClaimStore,
        prefix: str = DEFAULT_PREFIX,
        digits: int = DEFAULT_DIGITS,
    ) -> None:
        self._counters = counters
        self._claims = claims
        self._prefix = prefix
        self._digits = digits

    @property
    def prefix(self) -> str:
        return self._prefix

    async def seed(self) -> int:
        """
        Initialize the counter from the latest stored claim if it is absent.

        Returns:
            The counter value after seeding.
        """
        latest = await self._claims.latest()
        last_number = 0
        if latest is not None:
            last_number = parse_claim_number(latest.claim_id, self._prefix) or 0

        if await self._counters.set_if_absent(SEQUENCE_COUNTER_KEY, last_number):
            logger.info(f"Claim sequence seeded at {last_number}")
            return last_number
        return await self._counters.get(SEQUENCE_COUNTER_KEY)

    async def allocate(self) -> str:
        """Allocate the next claim id."""
        number = await self._counters.increment(SEQUENCE_COUNTER_KEY)
        return format_claim_id(number, self._prefix, self._digits)

    def parse(self, claim_id: str) -> int | None:
        return parse_claim_number(claim_id, self._prefix)
