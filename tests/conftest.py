"""
Pytest Fixtures
===============

Shared fixtures for all test modules.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from airclaim.adapters.outbound.store_memory import (
    InMemoryClaimStore,
    InMemoryCounterStore,
    InMemoryCreditStore,
)
from airclaim.application.claims_service import ClaimsService
from airclaim.domain.entities import (
    Actor,
    ActorRole,
    ClaimDraft,
    EvidenceItem,
    EvidenceKind,
    Location,
    Polygon,
)
from airclaim.domain.services.claim_repository import ClaimRepository
from airclaim.domain.services.credit_issuer import CreditIssuer
from airclaim.domain.services.rate_limiter import SubmissionRateLimiter
from airclaim.domain.services.sequence_allocator import SequenceAllocator
from airclaim.domain.services.state_machine import VerificationStateMachine


class FakeClock:
    """Deterministic clock; ``advance`` moves it forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


# -----------------------------------------------------------------------------
# Domain Entity Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC))


@pytest.fixture
def polygon() -> Polygon:
    """A closed square ring near Nairobi."""
    return Polygon(
        coordinates=[
            [
                (36.80, -1.30),
                (36.81, -1.30),
                (36.81, -1.29),
                (36.80, -1.29),
                (36.80, -1.30),
            ]
        ]
    )


@pytest.fixture
def evidence() -> list[EvidenceItem]:
    return [
        EvidenceItem(
            name="site-survey.pdf",
            kind=EvidenceKind.DOCUMENT,
            url="https://files.example.org/site-survey.pdf",
            content_id="bafy-survey",
        ),
        EvidenceItem(
            name="after.jpg",
            kind=EvidenceKind.IMAGE,
            url="https://files.example.org/after.jpg",
            content_id="bafy-after",
        ),
    ]


@pytest.fixture
def draft(polygon: Polygon, evidence: list[EvidenceItem]) -> ClaimDraft:
    return ClaimDraft(
        contributor_name="Amina Odhiambo",
        contributor_email="amina@example.org",
        location=Location(country="Kenya", state="Nairobi", city="Nairobi", polygon=polygon),
        area_unit=12.5,
        description="Replanted indigenous trees along the river bank.",
        evidence=evidence,
    )


@pytest.fixture
def contributor() -> Actor:
    return Actor(actor_id="contrib-1", actor_name="Amina Odhiambo", role=ActorRole.CONTRIBUTOR)


@pytest.fixture
def other_contributor() -> Actor:
    return Actor(actor_id="contrib-2", actor_name="Jonas Weber", role=ActorRole.CONTRIBUTOR)


@pytest.fixture
def verifier() -> Actor:
    return Actor(actor_id="verifier-1", actor_name="Dana Verifier", role=ActorRole.VERIFIER)


@pytest.fixture
def analysis_service() -> Actor:
    return Actor(actor_id="ndvi-worker", actor_name="NDVI Worker", role=ActorRole.SERVICE)


# -----------------------------------------------------------------------------
# Store and Service Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def claim_store() -> InMemoryClaimStore:
    return InMemoryClaimStore()


@pytest.fixture
def credit_store() -> InMemoryCreditStore:
    return InMemoryCreditStore()


@pytest.fixture
def counter_store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def allocator(counter_store: InMemoryCounterStore, claim_store: InMemoryClaimStore) -> SequenceAllocator:
    return SequenceAllocator(counter_store, claim_store)


@pytest.fixture
def repository(
    claim_store: InMemoryClaimStore,
    allocator: SequenceAllocator,
    clock: FakeClock,
) -> ClaimRepository:
    return ClaimRepository(claim_store, allocator, clock=clock)


@pytest.fixture
def credit_issuer(credit_store: InMemoryCreditStore, clock: FakeClock) -> CreditIssuer:
    return CreditIssuer(credit_store, clock=clock)


@pytest.fixture
def state_machine(
    claim_store: InMemoryClaimStore,
    credit_issuer: CreditIssuer,
    clock: FakeClock,
) -> VerificationStateMachine:
    return VerificationStateMachine(claim_store, credit_issuer, clock=clock)


@pytest.fixture
def rate_limiter(counter_store: InMemoryCounterStore, clock: FakeClock) -> SubmissionRateLimiter:
    return SubmissionRateLimiter(counter_store, daily_limit=10, clock=clock)


@pytest.fixture
def claims_service(
    repository: ClaimRepository,
    state_machine: VerificationStateMachine,
    credit_issuer: CreditIssuer,
    rate_limiter: SubmissionRateLimiter,
) -> ClaimsService:
    return ClaimsService(
        repository=repository,
        state_machine=state_machine,
        credit_issuer=credit_issuer,
        rate_limiter=rate_limiter,
    )
