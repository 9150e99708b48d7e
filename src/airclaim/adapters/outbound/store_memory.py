"""
In-Memory Store Adapters
========================

Process-local claim, credit and counter stores for development and tests.
Every operation holds one ``asyncio.Lock`` per store, so conditional writes
are serialized within the event loop. Nothing survives a restart.
"""

from __future__ import annotations

import asyncio

from airclaim.domain.entities import Claim, ClaimStatus, Credit
from airclaim.domain.errors import ConflictError, NotFoundError
from airclaim.domain.results import ClaimPage, ClaimQuery, ClaimSortField, SortOrder, order_claims
from airclaim.domain.services.state_rules import check_mutation
from airclaim.ports.claim_store import ClaimMutation, ClaimStore
from airclaim.ports.counter_store import CounterStore
from airclaim.ports.credit_store import CreditStore


class InMemoryClaimStore(ClaimStore):
    """ClaimStore kept in a dict keyed by storage id."""

    def __init__(self) -> None:
        self._claims: dict[str, Claim] = {}
        self._by_claim_id: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def insert(self, claim: Claim) -> None:
        async with self._lock:
            if claim.id in self._claims or claim.claim_id in self._by_claim_id:
                raise ConflictError("Claim already exists", claim_id=claim.claim_id)
            self._claims[claim.id] = claim
            self._by_claim_id[claim.claim_id] = claim.id

    async def get(self, id: str) -> Claim | None:
        return self._claims.get(id)

    async def get_by_claim_id(self, claim_id: str) -> Claim | None:
        id = self._by_claim_id.get(claim_id)
        return self._claims.get(id) if id is not None else None

    async def list_by_contributor(self, contributor_id: str) -> list[Claim]:
        claims = [c for c in self._claims.values() if c.contributor_id == contributor_id]
        return order_claims(claims, ClaimSortField.CREATED_AT, SortOrder.DESC)

    async def latest(self) -> Claim | None:
        ordered = order_claims(self._claims.values(), ClaimSortField.CREATED_AT, SortOrder.DESC)
        return ordered[0] if ordered else None

    async def find_page(self, query: ClaimQuery) -> ClaimPage:
        claims = [
            claim
            for claim in self._claims.values()
            if (query.status is None or claim.status == query.status)
            and (query.contributor_id is None or claim.contributor_id == query.contributor_id)
        ]
        ordered = order_claims(claims, query.sort_field, query.sort_order)
        return ClaimPage(
            data=ordered[query.offset : query.offset + query.limit],
            total=len(ordered),
            page=query.page,
            limit=query.limit,
        )

    async def apply(
        self,
        id: str,
        mutate: ClaimMutation,
        *,
        expected_status: ClaimStatus | None = None,
    ) -> Claim:
        async with self._lock:
            current = self._claims.get(id)
            if current is None:
                raise NotFoundError("Claim not found", claim_ref=id)
            if expected_status is not None and current.status != expected_status:
                raise ConflictError(
                    f"Claim is {current.status}, expected {expected_status}",
                    claim_id=current.claim_id,
                    current_status=current.status.value,
                )
            updated = mutate(current)
            check_mutation(current, updated)
            self._claims[id] = updated
            return updated


class InMemoryCreditStore(CreditStore):
    """CreditStore kept in a dict; one credit per claim."""

    def __init__(self) -> None:
        self._credits: dict[str, Credit] = {}
        self._by_claim: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def insert(self, credit: Credit) -> None:
        async with self._lock:
            if credit.claim_id in self._by_claim:
                raise ConflictError("Credit already issued for claim", claim_id=credit.claim_id)
            self._credits[credit.id] = credit
            self._by_claim[credit.claim_id] = credit.id

    async def get(self, id: str) -> Credit | None:
        return self._credits.get(id)

    async def get_by_claim(self, claim_id: str) -> Credit | None:
        id = self._by_claim.get(claim_id)
        return self._credits.get(id) if id is not None else None

    async def list_by_owner(self, owner_id: str) -> list[Credit]:
        credits = [c for c in self._credits.values() if c.owner_id == owner_id]
        return sorted(credits, key=lambda c: (c.issued_at, c.id), reverse=True)


class InMemoryCounterStore(CounterStore):
    """Integer counters in a dict. Expiry is not modelled."""

    def __init__(self) -> None:
        self._values: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def increment(self, key: str, ttl_seconds: int | None = None) -> int:
        async with self._lock:
            self._values[key] = self._values.get(key, 0) + 1
            return self._values[key]

    async def decrement(self, key: str) -> int:
        async with self._lock:
            self._values[key] = self._values.get(key, 0) - 1
            return self._values[key]

    async def get(self, key: str) -> int:
        return self._values.get(key, 0)

    async def set_if_absent(self, key: str, value: int) -> bool:
        async with self._lock:
            if key in self._values:
                return False
            self._values[key] = value
            return True
