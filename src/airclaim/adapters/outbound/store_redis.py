"""
Redis Store Adapters
====================

Claim, credit and counter stores on Redis.

Key layout (under the configured prefix, ``airclaim:`` by default):

- ``claim:{id}``: claim document (camelCase JSON)
- ``claims:claim_id``: hash ``claimId -> id``
- ``claims:created``: sorted set of claim ids scored by creation time (ms)
- ``claims:status:{status}``: same, per status
- ``claims:contributor:{contributorId}``: same, per contributor
- ``credit:{id}``: credit document
- ``credits:owner:{ownerId}``: sorted set of credit ids scored by issue time
- ``credits:claim:{claimId}``: credit id; its existence makes issuance unique
- ``counter:*`` / ``rate:*``: integer counters

Conditional claim writes are ``WATCH``/``MULTI`` optimistic transactions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError

from airclaim.adapters.outbound.redis_connection import storage_errors
from airclaim.domain.entities import Claim, ClaimStatus, Credit
from airclaim.domain.errors import ConflictError, NotFoundError, StorageError
from airclaim.domain.results import ClaimPage, ClaimQuery, ClaimSortField, SortOrder, order_claims
from airclaim.domain.services.state_rules import check_mutation
from airclaim.ports.claim_store import ClaimMutation, ClaimStore
from airclaim.ports.counter_store import CounterStore
from airclaim.ports.credit_store import CreditStore

if TYPE_CHECKING:
    from datetime import datetime

    from airclaim.adapters.outbound.redis_connection import RedisConnection

logger = logging.getLogger(__name__)

DEFAULT_TRANSACTION_RETRIES = 16


def _score(moment: datetime) -> int:
    """Sorted-set score: epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def _dump_claim(claim: Claim) -> str:
    return claim.model_dump_json(by_alias=True)


def _load_claim(raw: str | bytes) -> Claim:
    try:
        return Claim.model_validate_json(raw)
    except PydanticValidationError as e:
        logger.error(f"Stored claim document failed validation: {e}")
        raise StorageError("Stored claim document is invalid") from e


class RedisClaimStore(ClaimStore):
    """
    ClaimStore on Redis.

    Listing sorted by ``createdAt`` reads one page straight from a sorted set
    (equal scores order by member, i.e. by id, matching ``order_claims``);
    other sort fields load the filtered set and order in process.
    """

    def __init__(
        self,
        connection: RedisConnection,
        transaction_retries: int = DEFAULT_TRANSACTION_RETRIES,
    ) -> None:
        self._conn = connection
        self._retries = transaction_retries

    # -- keys ---------------------------------------------------------------

    def _doc_key(self, id: str) -> str:
        return self._conn.key(f"claim:{id}")

    def _claim_id_key(self) -> str:
        return self._conn.key("claims:claim_id")

    def _created_key(self) -> str:
        return self._conn.key("claims:created")

    def _status_key(self, status: ClaimStatus) -> str:
        return self._conn.key(f"claims:status:{status}")

    def _contributor_key(self, contributor_id: str) -> str:
        return self._conn.key(f"claims:contributor:{contributor_id}")

    async def _load_many(self, ids: list[str]) -> list[Claim]:
        if not ids:
            return []
        raws = await self._conn.client.mget([self._doc_key(id) for id in ids])
        return [_load_claim(raw) for raw in raws if raw is not None]

    # -- writes -------------------------------------------------------------

    async def insert(self, claim: Claim) -> None:
        """Write the claimId mapping, document and indexes in one transaction."""
        client = self._conn.client
        claim_id_key = self._claim_id_key()
        doc_key = self._doc_key(claim.id)
        score = _score(claim.created_at)

        async with storage_errors("claim insert"):
            for attempt in range(self._retries):
                async with client.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(claim_id_key, doc_key)
                        if await pipe.hexists(claim_id_key, claim.claim_id):
                            raise ConflictError("Claim id already exists", claim_id=claim.claim_id)
                        if await pipe.exists(doc_key):
                            raise ConflictError("Claim already exists", claim_id=claim.claim_id)

                        pipe.multi()
                        pipe.hset(claim_id_key, claim.claim_id, claim.id)
                        pipe.set(doc_key, _dump_claim(claim))
                        pipe.zadd(self._created_key(), {claim.id: score})
                        pipe.zadd(self._status_key(claim.status), {claim.id: score})
                        pipe.zadd(self._contributor_key(claim.contributor_id), {claim.id: score})
                        await pipe.execute()
                        return
                    except redis.WatchError:
                        logger.debug(
                            f"Claim index changed during insert of {claim.claim_id} "
                            f"(attempt {attempt + 1}), retrying"
                        )
                        continue

        logger.error(f"Claim {claim.claim_id} insert abandoned after {self._retries} contended attempts")
        raise StorageError("Claim insert contention", claim_id=claim.claim_id)

    async def apply(
        self,
        id: str,
        mutate: ClaimMutation,
        *,
        expected_status: ClaimStatus | None = None,
    ) -> Claim:
        client = self._conn.client
        doc_key = self._doc_key(id)

        async with storage_errors("claim update"):
            for attempt in range(self._retries):
                async with client.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(doc_key)
                        raw = await pipe.get(doc_key)
                        if raw is None:
                            raise NotFoundError("Claim not found", claim_ref=id)

                        current = _load_claim(raw)
                        if expected_status is not None and current.status != expected_status:
                            raise ConflictError(
                                f"Claim is {current.status}, expected {expected_status}",
                                claim_id=current.claim_id,
                                current_status=current.status.value,
                            )

                        updated = mutate(current)
                        check_mutation(current, updated)

                        pipe.multi()
                        pipe.set(doc_key, _dump_claim(updated))
                        if updated.status != current.status:
                            score = _score(current.created_at)
                            pipe.zrem(self._status_key(current.status), id)
                            pipe.zadd(self._status_key(updated.status), {id: score})
                        await pipe.execute()
                        return updated
                    except redis.WatchError:
                        logger.debug(f"Claim {id} changed during update (attempt {attempt + 1}), retrying")
                        continue

        logger.error(f"Claim {id} update abandoned after {self._retries} contended attempts")
        raise StorageError("Claim update contention", claim_ref=id)

    # -- reads --------------------------------------------------------------

    async def get(self, id: str) -> Claim | None:
        async with storage_errors("claim get"):
            raw = await self._conn.client.get(self._doc_key(id))
        return _load_claim(raw) if raw is not None else None

    async def get_by_claim_id(self, claim_id: str) -> Claim | None:
        async with storage_errors("claim lookup"):
            id = await self._conn.client.hget(self._claim_id_key(), claim_id)
        return await self.get(id) if id is not None else None

    async def list_by_contributor(self, contributor_id: str) -> list[Claim]:
        async with storage_errors("claim listing"):
            ids = await self._conn.client.zrange(self._contributor_key(contributor_id), 0, -1, desc=True)
            return await self._load_many(ids)

    async def latest(self) -> Claim | None:
        async with storage_errors("claim listing"):
            ids = await self._conn.client.zrange(self._created_key(), 0, 0, desc=True)
        return await self.get(ids[0]) if ids else None

    async def find_page(self, query: ClaimQuery) -> ClaimPage:
        client = self._conn.client
        descending = query.sort_order is SortOrder.DESC

        if query.contributor_id is not None:
            index_key = self._contributor_key(query.contributor_id)
        elif query.status is not None:
            index_key = self._status_key(query.status)
        else:
            index_key = self._created_key()
        # Only one index needs to be consulted when at most one filter is set
        single_index = query.contributor_id is None or query.status is None

        async with storage_errors("claim listing"):
            if query.sort_field is ClaimSortField.CREATED_AT and single_index:
                total = await client.zcard(index_key)
                start = query.offset
                ids = await client.zrange(index_key, start, start + query.limit - 1, desc=descending)
                data = await self._load_many(ids)
                return ClaimPage(data=data, total=total, page=query.page, limit=query.limit)

            ids = await client.zrange(index_key, 0, -1)
            claims = await self._load_many(ids)

        if query.status is not None:
            claims = [claim for claim in claims if claim.status == query.status]
        ordered = order_claims(claims, query.sort_field, query.sort_order)
        return ClaimPage(
            data=ordered[query.offset : query.offset + query.limit],
            total=len(ordered),
            page=query.page,
            limit=query.limit,
        )

    async def health_check(self) -> bool:
        return await self._conn.health_check()


class RedisCreditStore(CreditStore):
    """CreditStore on Redis; ``SET NX`` on the per-claim key guards uniqueness."""

    def __init__(self, connection: RedisConnection) -> None:
        self._conn = connection

    def _doc_key(self, id: str) -> str:
        return self._conn.key(f"credit:{id}")

    def _claim_key(self, claim_id: str) -> str:
        return self._conn.key(f"credits:claim:{claim_id}")

    def _owner_key(self, owner_id: str) -> str:
        return self._conn.key(f"credits:owner:{owner_id}")

    async def insert(self, credit: Credit) -> None:
        client = self._conn.client
        async with storage_errors("credit insert"):
            if not await client.set(self._claim_key(credit.claim_id), credit.id, nx=True):
                raise ConflictError("Credit already issued for claim", claim_id=credit.claim_id)

            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self._doc_key(credit.id), credit.model_dump_json(by_alias=True))
                pipe.zadd(self._owner_key(credit.owner_id), {credit.id: _score(credit.issued_at)})
                await pipe.execute()

    async def get(self, id: str) -> Credit | None:
        async with storage_errors("credit get"):
            raw = await self._conn.client.get(self._doc_key(id))
        return Credit.model_validate_json(raw) if raw is not None else None

    async def get_by_claim(self, claim_id: str) -> Credit | None:
        async with storage_errors("credit lookup"):
            id = await self._conn.client.get(self._claim_key(claim_id))
        return await self.get(id) if id is not None else None

    async def list_by_owner(self, owner_id: str) -> list[Credit]:
        client = self._conn.client
        async with storage_errors("credit listing"):
            ids = await client.zrange(self._owner_key(owner_id), 0, -1, desc=True)
            if not ids:
                return []
            raws = await client.mget([self._doc_key(id) for id in ids])
        return [Credit.model_validate_json(raw) for raw in raws if raw is not None]

    async def health_check(self) -> bool:
        return await self._conn.health_check()


class RedisCounterStore(CounterStore):
    """CounterStore on Redis ``INCR``/``DECR``."""

    def __init__(self, connection: RedisConnection) -> None:
        self._conn = connection

    async def increment(self, key: str, ttl_seconds: int | None = None) -> int:
        full_key = self._conn.key(key)
        async with storage_errors("counter increment"):
            if ttl_seconds is None:
                return int(await self._conn.client.incr(full_key))
            async with self._conn.client.pipeline(transaction=True) as pipe:
                pipe.incr(full_key)
                pipe.expire(full_key, ttl_seconds)
                value, _ = await pipe.execute()
            return int(value)

    async def decrement(self, key: str) -> int:
        async with storage_errors("counter decrement"):
            return int(await self._conn.client.decr(self._conn.key(key)))

    async def get(self, key: str) -> int:
        async with storage_errors("counter read"):
            raw = await self._conn.client.get(self._conn.key(key))
        return int(raw) if raw is not None else 0

    async def set_if_absent(self, key: str, value: int) -> bool:
        async with storage_errors("counter seed"):
            return bool(await self._conn.client.set(self._conn.key(key), value, nx=True))

    async def health_check(self) -> bool:
        return await self._conn.health_check()
