"""
Credit Issuer
=============

Creates the single credit record bound to an approved claim.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from airclaim.domain.entities import Credit, utc_now
from airclaim.domain.errors import ValidationError

if TYPE_CHECKING:
    from airclaim.domain.entities import Clock
    from airclaim.ports.credit_store import CreditStore

logger = logging.getLogger(__name__)


def validate_amount(amount: float | None, field: str = "amount") -> float:
    """Return ``amount`` as float if it is a positive finite number."""
    if amount is None or isinstance(amount, bool):
        raise ValidationError(f"{field} must be a positive number", field=field)
    try:
        value = float(amount)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a positive number", field=field) from e
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{field} must be a positive number", field=field)
    return value


class CreditIssuer:
    """
    Issues credits for approved claims.

    Only the verification state machine calls ``issue``; the read helpers
    serve credit listings.
    """

    def __init__(self, store: CreditStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def issue(self, claim_id: str, owner_id: str, amount: float) -> Credit:
        """
        Create exactly one credit for a claim.

        Args:
            claim_id: Storage id of the approved claim.
            owner_id: Contributor receiving the credit.
            amount: Positive credit amount, fixed from here on.

        Raises:
            ValidationError: Non-positive or non-finite amount.
            ConflictError: The claim already has a credit.
        """
        value = validate_amount(amount)
        credit = Credit(
            claim_id=claim_id,
            owner_id=owner_id,
            amount=value,
            issued_at=self._clock(),
        )
        await self._store.insert(credit)
        logger.info(f"Credits issued: {value} to owner {owner_id} for claim {claim_id}")
        return credit

    async def credit_for_claim(self, claim_id: str) -> Credit | None:
        return await self._store.get_by_claim(claim_id)

    async def credits_for_owner(self, owner_id: str) -> list[Credit]:
        return await self._store.list_by_owner(owner_id)

    async def total_for_owner(self, owner_id: str) -> float:
        return await self._store.total_by_owner(owner_id)
