"""
CreditStore Port
================

Abstract interface for persisting issued credits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from airclaim.domain.entities import Credit


class CreditStore(ABC):
    """
    Port for the ``credits`` collection.

    At most one credit exists per claim; credits are never updated here
    (ownership transfer belongs to the marketplace).
    """

    @abstractmethod
    async def insert(self, credit: Credit) -> None:
        """
        Persist a new credit.

        Raises:
            ConflictError: The claim already has a credit.
            StorageError: Persistence failed.
        """
        ...

    @abstractmethod
    async def get(self, id: str) -> Credit | None:
        """Retrieve a credit by id."""
        ...

    @abstractmethod
    async def get_by_claim(self, claim_id: str) -> Credit | None:
        """The credit issued for a claim (by claim storage id), if any."""
        ...

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> list[Credit]:
        """All credits owned by a user, newest first."""
        ...

    async def total_by_owner(self, owner_id: str) -> float:
        """Sum of credit amounts owned by a user."""
        return sum(credit.amount for credit in await self.list_by_owner(owner_id))

    async def health_check(self) -> bool:
        """Check if the store is operational."""
        return True
