"""
Tests for Verification State Machine
====================================
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from airclaim.adapters.outbound.store_memory import InMemoryCreditStore
from airclaim.domain.entities import Actor, AuditEvent, ClaimDraft, ClaimStatus
from airclaim.domain.errors import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from airclaim.domain.services.claim_repository import ClaimRepository
from airclaim.domain.services.credit_issuer import CreditIssuer
from airclaim.domain.services.state_machine import VerificationStateMachine, normalize_credits


class TestNormalizeCredits:
    @pytest.mark.parametrize(("value", "expected"), [(None, None), (0, None), (0.0, None), (150, 150.0)])
    def test_accepted_values(self, value, expected) -> None:
        assert normalize_credits(value) == expected

    @pytest.mark.parametrize("value", [-1, float("inf"), float("nan"), True, "100"])
    def test_rejected_values(self, value) -> None:
        with pytest.raises(ValidationError):
            normalize_credits(value)


class TestDecide:
    """Tests for verifier decisions."""

    @pytest.mark.asyncio
    async def test_approve_with_credits(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        credit_store: InMemoryCreditStore,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
        clock,
    ) -> None:
        claim = await repository.create(draft, contributor)
        clock.advance(hours=2)

        result = await state_machine.decide(claim.id, verifier, approved=True, credits=150)

        assert result.status is ClaimStatus.VERIFIED
        assert result.credits_issued == 150
        assert result.verified_at == clock.now
        assert result.verifier_id == "verifier-1"
        assert result.credit_id is not None

        stored = await repository.find_by_id(claim.id)
        assert stored.status is ClaimStatus.VERIFIED
        assert stored.verifier_name == "Dana Verifier"
        assert len(stored.audit_log) == 2
        assert stored.audit_log[-1].event is AuditEvent.CLAIM_VERIFIED
        assert stored.audit_log[-1].note == "Approved with 150 credits"

        credit = await credit_store.get_by_claim(claim.id)
        assert credit is not None
        assert credit.id == result.credit_id
        assert credit.amount == 150
        assert credit.owner_id == "contrib-1"

    @pytest.mark.asyncio
    async def test_approve_without_credits(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        credit_store: InMemoryCreditStore,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
    ) -> None:
        claim = await repository.create(draft, contributor)

        result = await state_machine.decide(claim.id, verifier, approved=True, credits=0)

        assert result.status is ClaimStatus.VERIFIED
        assert result.credits_issued is None
        assert result.credit_id is None
        assert await credit_store.get_by_claim(claim.id) is None

    @pytest.mark.asyncio
    async def test_reject_stores_notes(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        credit_store: InMemoryCreditStore,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
    ) -> None:
        claim = await repository.create(draft, contributor)

        result = await state_machine.decide(
            claim.id, verifier, approved=False, credits=100, notes="Imagery predates project."
        )

        assert result.status is ClaimStatus.REJECTED
        assert result.credits_issued is None
        assert result.verifier_notes == "Imagery predates project."

        stored = await repository.find_by_id(claim.id)
        assert stored.credits_issued is None
        assert stored.audit_log[-1].event is AuditEvent.CLAIM_REJECTED
        assert stored.audit_log[-1].note == "Imagery predates project."
        assert await credit_store.get_by_claim(claim.id) is None

    @pytest.mark.asyncio
    async def test_default_reject_note(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
    ) -> None:
        claim = await repository.create(draft, contributor)

        await state_machine.decide(claim.id, verifier, approved=False)

        stored = await repository.find_by_id(claim.id)
        assert stored.audit_log[-1].note == "Claim rejected"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("approved", [True, False])
    async def test_second_decision_conflicts(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
        approved: bool,
    ) -> None:
        claim = await repository.create(draft, contributor)
        await state_machine.decide(claim.id, verifier, approved=approved, credits=10)
        before = await repository.find_by_id(claim.id)

        with pytest.raises(ConflictError) as exc_info:
            await state_machine.decide(claim.id, verifier, approved=not approved, credits=99)

        assert exc_info.value.context["current_status"] == before.status.value
        assert await repository.find_by_id(claim.id) == before

    @pytest.mark.asyncio
    async def test_concurrent_decisions_single_winner(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        credit_store: InMemoryCreditStore,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
    ) -> None:
        claim = await repository.create(draft, contributor)

        results = await asyncio.gather(
            *(
                state_machine.decide(claim.id, verifier, approved=i % 2 == 0, credits=50)
                for i in range(8)
            ),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(winners) == 1
        assert len(conflicts) == 7

        stored = await repository.find_by_id(claim.id)
        assert stored.status is winners[0].status
        assert len(stored.audit_log) == 2
        credits = await credit_store.list_by_owner("contrib-1")
        assert len(credits) == (1 if stored.status is ClaimStatus.VERIFIED else 0)

    @pytest.mark.asyncio
    async def test_negative_credits_rejected_before_write(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
    ) -> None:
        claim = await repository.create(draft, contributor)

        with pytest.raises(ValidationError):
            await state_machine.decide(claim.id, verifier, approved=True, credits=-5)

        assert (await repository.find_by_id(claim.id)).status is ClaimStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_claim(
        self, state_machine: VerificationStateMachine, verifier: Actor
    ) -> None:
        with pytest.raises(NotFoundError):
            await state_machine.decide("missing", verifier, approved=True)

    @pytest.mark.asyncio
    async def test_credit_failure_after_commit_surfaces_storage_error(
        self,
        repository: ClaimRepository,
        claim_store,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
        clock,
    ) -> None:
        failing_store = InMemoryCreditStore()
        failing_store.insert = AsyncMock(side_effect=StorageError("redis down"))
        machine = VerificationStateMachine(
            claim_store, CreditIssuer(failing_store, clock=clock), clock=clock
        )
        claim = await repository.create(draft, contributor)

        with pytest.raises(StorageError):
            await machine.decide(claim.id, verifier, approved=True, credits=75)

        # The approval itself stays committed
        stored = await repository.find_by_id(claim.id)
        assert stored.status is ClaimStatus.VERIFIED
        assert stored.credits_issued == 75

    @pytest.mark.asyncio
    async def test_missing_credit_issued_on_next_decision(
        self,
        repository: ClaimRepository,
        claim_store,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
        clock,
    ) -> None:
        credit_store = InMemoryCreditStore()
        credit_store.insert = AsyncMock(side_effect=StorageError("redis down"))
        issuer = CreditIssuer(credit_store, clock=clock)
        machine = VerificationStateMachine(claim_store, issuer, clock=clock)
        claim = await repository.create(draft, contributor)

        with pytest.raises(StorageError):
            await machine.decide(claim.id, verifier, approved=True, credits=75)
        assert await issuer.credit_for_claim(claim.id) is None

        # Credit store recovers
        del credit_store.insert
        with pytest.raises(ConflictError):
            await machine.decide(claim.id, verifier, approved=True, credits=500)

        credit = await issuer.credit_for_claim(claim.id)
        assert credit is not None
        assert credit.amount == 75
        assert credit.owner_id == "contrib-1"

        stored = await repository.find_by_id(claim.id)
        assert stored.status is ClaimStatus.VERIFIED
        assert stored.credits_issued == 75
        assert len(stored.audit_log) == 2

    @pytest.mark.asyncio
    async def test_reconcile_is_idempotent(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        credit_issuer: CreditIssuer,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
    ) -> None:
        claim = await repository.create(draft, contributor)
        result = await state_machine.decide(claim.id, verifier, approved=True, credits=40)
        verified = await repository.find_by_id(claim.id)

        again = await state_machine.reconcile_credit(verified)

        assert again.id == result.credit_id
        assert len(await credit_issuer.credits_for_owner("contrib-1")) == 1

    @pytest.mark.asyncio
    async def test_reconcile_skips_uncredited_claims(
        self,
        repository: ClaimRepository,
        state_machine: VerificationStateMachine,
        credit_issuer: CreditIssuer,
        draft: ClaimDraft,
        contributor: Actor,
        verifier: Actor,
    ) -> None:
        claim = await repository.create(draft, contributor)
        await state_machine.decide(claim.id, verifier, approved=False)
        rejected = await repository.find_by_id(claim.id)

        assert await state_machine.reconcile_credit(rejected) is None
        assert await credit_issuer.credit_for_claim(claim.id) is None
