"""
Verification State Machine
==========================

Drives a claim from ``pending`` to ``verified`` or ``rejected``.

The status change, verifier fields and audit entry are one conditional write
on the claim (stored status must still be ``pending``), so among concurrent
decisions on the same claim exactly one commits. The credit is issued after
that write; its uniqueness per claim is enforced by the credit store.

If the credit write fails after the approval commits, the next decision on
that claim still gets ``ConflictError`` but first issues the recorded credit
(``reconcile_credit``).
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from airclaim.domain.entities import Actor, AuditEvent, Claim, ClaimStatus, Credit, utc_now
from airclaim.domain.errors import AirClaimError, ConflictError, StorageError, ValidationError
from airclaim.domain.results import DecisionResult
from airclaim.domain.services.audit_log import audit_entry, with_audit

if TYPE_CHECKING:
    from airclaim.domain.entities import Clock
    from airclaim.domain.services.credit_issuer import CreditIssuer
    from airclaim.ports.claim_store import ClaimStore

logger = logging.getLogger(__name__)


def normalize_credits(credits: float | None) -> float | None:
    """
    Decision credit amount: None/0 mean "no credits".

    Raises:
        ValidationError: Negative, non-finite or non-numeric amount.
    """
    if credits is None:
        return None
    if isinstance(credits, bool) or not isinstance(credits, int | float):
        raise ValidationError("credits must be a number", field="credits")
    if not math.isfinite(credits) or credits < 0:
        raise ValidationError("credits must be a non-negative finite number", field="credits")
    return float(credits) if credits > 0 else None


def _display_amount(amount: float) -> str:
    return str(int(amount)) if amount.is_integer() else str(amount)


class VerificationStateMachine:
    """Applies verifier decisions to pending claims."""

    def __init__(
        self,
        store: ClaimStore,
        credit_issuer: CreditIssuer,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._credit_issuer = credit_issuer
        self._clock = clock

    async def decide(
        self,
        id: str,
        actor: Actor,
        approved: bool,
        credits: float | None = None,
        notes: str | None = None,
    ) -> DecisionResult:
        """
        Approve or reject a pending claim.

        Args:
            id: Storage id of the claim.
            actor: The deciding verifier.
            approved: True to verify, False to reject.
            credits: Credit amount on approval; ignored on rejection.
            notes: Verifier notes, also used as the audit note when given.

        Returns:
            DecisionResult with the new status and, on a credited approval,
            the issued credit id.

        Raises:
            ValidationError: Invalid credit amount.
            NotFoundError: Unknown claim.
            ConflictError: Claim is not pending (already decided). A missing
                credit recorded on the claim is issued before raising.
            StorageError: The approval committed but the credit could not be
                recorded.
        """
        amount = normalize_credits(credits)
        now = self._clock()

        if approved:
            target = ClaimStatus.VERIFIED
            event = AuditEvent.CLAIM_VERIFIED
            default_note = f"Approved with {_display_amount(amount or 0.0)} credits"
        else:
            target = ClaimStatus.REJECTED
            event = AuditEvent.CLAIM_REJECTED
            default_note = "Claim rejected"
            amount = None

        entry = audit_entry(event, actor, now, note=notes or default_note)

        def mutate(claim: Claim) -> Claim:
            return with_audit(
                claim,
                entry,
                status=target,
                verifier_id=actor.actor_id,
                verifier_name=actor.actor_name,
                verifier_notes=notes,
                verified_at=now,
                credits_issued=amount,
            )

        try:
            decided = await self._store.apply(id, mutate, expected_status=ClaimStatus.PENDING)
        except ConflictError:
            current = await self._store.get(id)
            if current is not None:
                try:
                    await self.reconcile_credit(current)
                except AirClaimError as e:
                    logger.error(f"Credit reconciliation for claim {current.claim_id} failed: {e}")
            raise
        logger.info(f"Claim {decided.claim_id} {target} by verifier {actor.actor_id}")

        credit_id = None
        if amount is not None:
            try:
                credit = await self._credit_issuer.issue(
                    claim_id=decided.id,
                    owner_id=decided.contributor_id,
                    amount=amount,
                )
            except AirClaimError as e:
                logger.error(
                    f"Consistency error: claim {decided.claim_id} verified with "
                    f"{amount} credits but credit issuance failed: {e}"
                )
                raise StorageError(
                    "Credit issuance failed after approval", claim_id=decided.claim_id
                ) from e
            credit_id = credit.id

        return self._result(decided, credit_id)

    async def reconcile_credit(self, claim: Claim) -> Credit | None:
        """
        Issue the credit a verified claim records but the credit store lacks.

        Repairs an approval whose credit write failed after the claim
        committed. Idempotent: returns the existing credit when there is one,
        None when the claim carries no credits.
        """
        if claim.status is not ClaimStatus.VERIFIED or claim.credits_issued is None:
            return None
        existing = await self._credit_issuer.credit_for_claim(claim.id)
        if existing is not None:
            return existing

        try:
            credit = await self._credit_issuer.issue(
                claim_id=claim.id,
                owner_id=claim.contributor_id,
                amount=claim.credits_issued,
            )
        except ConflictError:
            # Issued concurrently
            return await self._credit_issuer.credit_for_claim(claim.id)
        logger.warning(
            f"Reconciled missing credit for claim {claim.claim_id}: "
            f"{claim.credits_issued} to owner {claim.contributor_id}"
        )
        return credit

    @staticmethod
    def _result(decided: Claim, credit_id: str | None) -> DecisionResult:
        return DecisionResult(
            id=decided.id,
            claim_id=decided.claim_id,
            status=decided.status,
            credits_issued=decided.credits_issued,
            verified_at=decided.verified_at,
            verifier_id=decided.verifier_id,
            verifier_notes=decided.verifier_notes,
            credit_id=credit_id,
        )
