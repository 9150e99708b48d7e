"""
ClaimStore Port
===============

Abstract interface for persisting claim documents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from airclaim.domain.entities import Claim, ClaimStatus
    from airclaim.domain.results import ClaimPage, ClaimQuery

ClaimMutation = Callable[["Claim"], "Claim"]


class ClaimStore(ABC):
    """
    Port for the ``claims`` collection.

    Responsibilities:
    - Insert new claim documents (unique ``claim_id``)
    - Lookup by storage id, by ``claim_id`` and by contributor
    - Filtered, paginated, stably ordered listing
    - Atomic read-modify-write, optionally conditional on the stored status

    Claims are never deleted through this port.
    """

    @abstractmethod
    async def insert(self, claim: Claim) -> None:
        """
        Persist a new claim.

        Raises:
            ConflictError: A claim with the same ``claim_id`` or id exists.
            StorageError: Persistence failed.
        """
        ...

    @abstractmethod
    async def get(self, id: str) -> Claim | None:
        """Retrieve a claim by storage id."""
        ...

    @abstractmethod
    async def get_by_claim_id(self, claim_id: str) -> Claim | None:
        """Retrieve a claim by its human-readable ``claim_id``."""
        ...

    @abstractmethod
    async def list_by_contributor(self, contributor_id: str) -> list[Claim]:
        """All claims of one contributor, newest first."""
        ...

    @abstractmethod
    async def find_page(self, query: ClaimQuery) -> ClaimPage:
        """
        Retrieve one page of claims.

        Ordering is stable for a fixed sort key: ties are broken by storage id.
        """
        ...

    @abstractmethod
    async def latest(self) -> Claim | None:
        """The most recently created claim, if any."""
        ...

    @abstractmethod
    async def apply(
        self,
        id: str,
        mutate: ClaimMutation,
        *,
        expected_status: ClaimStatus | None = None,
    ) -> Claim:
        """
        Atomically replace a claim with ``mutate(current)``.

        When ``expected_status`` is given, the write happens only if the stored
        status still equals it at commit time. ``mutate`` must be a pure
        function; it may be invoked more than once under contention.

        Returns:
            The stored, updated claim.

        Raises:
            NotFoundError: No claim with this id.
            ConflictError: Stored status differs from ``expected_status``.
            StorageError: Persistence failed.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the store is operational."""
        return True
