"""
ClaimsService
=============

Caller-facing claim lifecycle use-cases.

Enforces who may do what:
- contributor: submit; read, update and add evidence to own claims;
  list own claims and credits
- verifier: read and list all claims; decide pending claims
- service: read claims; attach vegetation-index results

Identity is trusted as supplied by the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from airclaim.domain.entities import ActorRole
from airclaim.domain.errors import AuthorizationError, ValidationError
from airclaim.domain.results import (
    ClaimSortField,
    CreditSummary,
    IntegrityReport,
    SortOrder,
    SubmissionReceipt,
)

if TYPE_CHECKING:
    from datetime import datetime

    from airclaim.domain.entities import Actor, Claim, ClaimDraft, ClaimStatus, EvidenceItem
    from airclaim.domain.results import ClaimPage, DecisionResult
    from airclaim.domain.services.claim_repository import ClaimRepository
    from airclaim.domain.services.credit_issuer import CreditIssuer
    from airclaim.domain.services.rate_limiter import SubmissionRateLimiter
    from airclaim.domain.services.state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)


def _require_role(actor: Actor, *roles: ActorRole) -> None:
    if actor.role not in roles:
        raise AuthorizationError(
            f"Role '{actor.role}' is not allowed to perform this operation",
            role=actor.role.value,
            allowed_roles=[role.value for role in roles],
        )


def _require_owner(actor: Actor, claim: Claim) -> None:
    if claim.contributor_id != actor.actor_id:
        raise AuthorizationError(
            "Contributors may only access their own claims",
            actor_id=actor.actor_id,
            claim_id=claim.claim_id,
        )


class ClaimsService:
    """
    Orchestrates the claim lifecycle through the domain services.

    Coordinates:
    - SubmissionRateLimiter: daily submission cap
    - ClaimRepository: creation, reads, pending-only edits, annotation
    - VerificationStateMachine: verifier decisions
    - CreditIssuer: credit reads
    """

    def __init__(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        credit_issuer: CreditIssuer,
        rate_limiter: SubmissionRateLimiter,
        default_page_size: int = 20,
    ) -> None:
        self._repository = repository
        self._state_machine = state_machine
        self._credit_issuer = credit_issuer
        self._rate_limiter = rate_limiter
        self._default_page_size = default_page_size

    async def _readable_claim(self, actor: Actor, ref: str) -> Claim:
        claim = await self._repository.resolve(ref)
        if actor.role is ActorRole.CONTRIBUTOR:
            _require_owner(actor, claim)
        return claim

    # -- contributor --------------------------------------------------------

    async def submit_claim(self, actor: Actor, draft: ClaimDraft) -> SubmissionReceipt:
        """
        Submit a new claim.

        A rate-limit slot is reserved first and handed back if creation fails.

        Raises:
            AuthorizationError: Caller is not a contributor.
            RateLimitError: Daily cap reached.
            ValidationError: Invalid polygon or evidence.
        """
        _require_role(actor, ActorRole.CONTRIBUTOR)
        submissions_today = await self._rate_limiter.check_and_count(actor.actor_id)
        try:
            claim = await self._repository.create(draft, actor)
        except Exception:
            await self._rate_limiter.release(actor.actor_id)
            raise

        return SubmissionReceipt(
            id=claim.id,
            claim_id=claim.claim_id,
            fingerprint=claim.fingerprint,
            status=claim.status,
            submissions_today=submissions_today,
        )

    async def update_claim(self, actor: Actor, ref: str, fields: Mapping[str, Any]) -> Claim:
        """Edit contributor fields of an own pending claim."""
        _require_role(actor, ActorRole.CONTRIBUTOR)
        claim = await self._readable_claim(actor, ref)
        return await self._repository.update(claim.id, fields, actor)

    async def append_evidence(self, actor: Actor, ref: str, item: EvidenceItem) -> list[EvidenceItem]:
        """Add evidence to an own pending claim; returns the full evidence list."""
        _require_role(actor, ActorRole.CONTRIBUTOR)
        claim = await self._readable_claim(actor, ref)
        updated = await self._repository.append_evidence(claim.id, item, actor)
        return updated.evidence

    # -- reads --------------------------------------------------------------

    async def list_claims(
        self,
        actor: Actor,
        status: ClaimStatus | None = None,
        page: int = 1,
        limit: int | None = None,
        sort_by: ClaimSortField = ClaimSortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
    ) -> ClaimPage:
        """List claims; contributors only ever see their own."""
        contributor_id = actor.actor_id if actor.role is ActorRole.CONTRIBUTOR else None
        return await self._repository.find_paginated(
            status=status,
            contributor_id=contributor_id,
            page=page,
            limit=limit if limit is not None else self._default_page_size,
            sort_field=sort_by,
            sort_order=sort_order,
        )

    async def get_claim(self, actor: Actor, ref: str) -> Claim:
        """Fetch a claim by storage id or claim id."""
        return await self._readable_claim(actor, ref)

    async def check_integrity(self, actor: Actor, ref: str) -> IntegrityReport:
        """Recompute a claim's fingerprint and report whether it still matches."""
        claim = await self._readable_claim(actor, ref)
        valid = self._repository.verify_integrity(claim)
        if not valid:
            logger.warning(f"Integrity check failed for claim {claim.claim_id}")
        return IntegrityReport(
            id=claim.id,
            claim_id=claim.claim_id,
            fingerprint=claim.fingerprint,
            valid=valid,
        )

    async def list_credits(self, actor: Actor, owner_id: str | None = None) -> CreditSummary:
        """
        Credits owned by a user.

        Contributors see their own; verifiers must name the owner.
        """
        if actor.role is ActorRole.CONTRIBUTOR:
            if owner_id is not None and owner_id != actor.actor_id:
                raise AuthorizationError(
                    "Contributors may only list their own credits", actor_id=actor.actor_id
                )
            owner_id = actor.actor_id
        else:
            _require_role(actor, ActorRole.VERIFIER)
            if not owner_id:
                raise ValidationError("ownerId is required", field="ownerId")

        credits = await self._credit_issuer.credits_for_owner(owner_id)
        return CreditSummary(
            owner_id=owner_id,
            data=credits,
            total=sum(credit.amount for credit in credits),
        )

    # -- verifier -----------------------------------------------------------

    async def decide_claim(
        self,
        actor: Actor,
        ref: str,
        approved: bool,
        credits: float | None = None,
        notes: str | None = None,
    ) -> DecisionResult:
        """Approve or reject a pending claim."""
        _require_role(actor, ActorRole.VERIFIER)
        claim = await self._repository.resolve(ref)
        return await self._state_machine.decide(
            claim.id, actor, approved=approved, credits=credits, notes=notes
        )

    # -- analysis service ---------------------------------------------------

    async def attach_vegetation_index(
        self,
        actor: Actor,
        ref: str,
        before: float,
        after: float,
        delta: float | None = None,
        processed_at: datetime | None = None,
    ) -> Claim:
        """Record the advisory vegetation-index result for a claim."""
        _require_role(actor, ActorRole.SERVICE)
        claim = await self._repository.resolve(ref)
        return await self._repository.attach_vegetation_index(
            claim.id, before, after, actor, delta=delta, processed_at=processed_at
        )
