"""Unit tests for Redis store adapters."""
from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis

from airclaim.adapters.outbound.redis_connection import RedisConnection
from airclaim.adapters.outbound.store_redis import (
    RedisClaimStore,
    RedisCounterStore,
    RedisCreditStore,
)
from airclaim.domain.entities import (
    Actor,
    ActorRole,
    AuditEvent,
    Claim,
    ClaimStatus,
    Credit,
    Location,
    Polygon,
)
from airclaim.domain.errors import ConflictError, NotFoundError, StorageError
from airclaim.domain.results import ClaimQuery
from airclaim.domain.services.audit_log import audit_entry, with_audit
from airclaim.infrastructure.config import RedisSettings

NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)


@pytest.fixture
def mock_redis_client():
    """Mock Redis client with async methods."""
    client = MagicMock()
    # Redis methods need to be AsyncMock for await to work
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.hget = AsyncMock(return_value=None)
    client.incr = AsyncMock(return_value=1)
    client.decr = AsyncMock(return_value=0)
    client.zcard = AsyncMock(return_value=0)
    client.zrange = AsyncMock(return_value=[])
    client.mget = AsyncMock(return_value=[])
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def pipe(mock_redis_client):
    """Pipeline returned by ``client.pipeline()`` as an async context manager."""
    pipeline = MagicMock()
    pipeline.watch = AsyncMock()
    pipeline.get = AsyncMock(return_value=None)
    pipeline.hexists = AsyncMock(return_value=False)
    pipeline.exists = AsyncMock(return_value=0)
    pipeline.execute = AsyncMock(return_value=[True])

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=pipeline)
    context.__aexit__ = AsyncMock(return_value=False)
    mock_redis_client.pipeline = MagicMock(return_value=context)
    return pipeline


@pytest.fixture
def connection(mock_redis_client) -> RedisConnection:
    """Connection with mocked client."""
    conn = RedisConnection(RedisSettings(key_prefix="airclaim:"))
    conn._client = mock_redis_client
    return conn


@pytest.fixture
def stored_claim(polygon: Polygon) -> Claim:
    actor = Actor(actor_id="contrib-1", actor_name="Amina", role=ActorRole.CONTRIBUTOR)
    return Claim(
        id="c0ffee",
        claim_id="AIR-CLAIM-0001",
        fingerprint="a" * 64,
        fingerprint_nonce="nonce",
        contributor_id="contrib-1",
        contributor_name="Amina",
        contributor_email="amina@example.org",
        location=Location(country="Kenya", polygon=polygon),
        audit_log=[audit_entry(AuditEvent.CLAIM_CREATED, actor, NOW)],
        created_at=NOW,
        updated_at=NOW,
    )


def _as_json(claim: Claim) -> str:
    return claim.model_dump_json(by_alias=True)


class TestRedisConnection:
    def test_key_prefix(self, connection: RedisConnection) -> None:
        assert connection.key("claim:1") == "airclaim:claim:1"

    @pytest.mark.asyncio
    async def test_health_check_success(self, connection: RedisConnection) -> None:
        assert await connection.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_ping_failure(self, connection: RedisConnection) -> None:
        connection._client.ping.side_effect = redis.ConnectionError("refused")

        assert await connection.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_no_client(self) -> None:
        conn = RedisConnection(RedisSettings())

        assert await conn.health_check() is False

    def test_client_required(self) -> None:
        conn = RedisConnection(RedisSettings())

        with pytest.raises(StorageError):
            _ = conn.client

    @pytest.mark.asyncio
    async def test_disconnect(self, connection: RedisConnection, mock_redis_client) -> None:
        await connection.disconnect()

        mock_redis_client.aclose.assert_awaited_once()
        assert connection._client is None


class TestRedisClaimStore:
    """Test RedisClaimStore."""

    @pytest.mark.asyncio
    async def test_get_existing(self, connection, mock_redis_client, stored_claim: Claim) -> None:
        mock_redis_client.get.return_value = _as_json(stored_claim)
        store = RedisClaimStore(connection)

        result = await store.get("c0ffee")

        assert result == stored_claim
        mock_redis_client.get.assert_awaited_once_with("airclaim:claim:c0ffee")

    @pytest.mark.asyncio
    async def test_get_missing(self, connection) -> None:
        assert await RedisClaimStore(connection).get("missing") is None

    @pytest.mark.asyncio
    async def test_get_by_claim_id(self, connection, mock_redis_client, stored_claim: Claim) -> None:
        mock_redis_client.hget.return_value = "c0ffee"
        mock_redis_client.get.return_value = _as_json(stored_claim)

        result = await RedisClaimStore(connection).get_by_claim_id("AIR-CLAIM-0001")

        assert result.id == "c0ffee"
        mock_redis_client.hget.assert_awaited_once_with("airclaim:claims:claim_id", "AIR-CLAIM-0001")

    @pytest.mark.asyncio
    async def test_insert_writes_mapping_document_and_indexes_atomically(
        self, connection, pipe, stored_claim: Claim
    ) -> None:
        pipe.execute.return_value = [1, True, 1, 1, 1]

        await RedisClaimStore(connection).insert(stored_claim)

        pipe.watch.assert_awaited_once_with("airclaim:claims:claim_id", "airclaim:claim:c0ffee")
        pipe.multi.assert_called_once()
        pipe.hset.assert_called_once_with("airclaim:claims:claim_id", "AIR-CLAIM-0001", "c0ffee")
        pipe.set.assert_called_once_with("airclaim:claim:c0ffee", _as_json(stored_claim))
        zadd_keys = [call.args[0] for call in pipe.zadd.call_args_list]
        assert zadd_keys == [
            "airclaim:claims:created",
            "airclaim:claims:status:pending",
            "airclaim:claims:contributor:contrib-1",
        ]

    @pytest.mark.asyncio
    async def test_insert_duplicate_claim_id(self, connection, pipe, stored_claim) -> None:
        pipe.hexists.return_value = True

        with pytest.raises(ConflictError):
            await RedisClaimStore(connection).insert(stored_claim)

        pipe.multi.assert_not_called()
        pipe.hset.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_existing_document_leaves_no_mapping(
        self, connection, pipe, stored_claim
    ) -> None:
        pipe.exists.return_value = 1

        with pytest.raises(ConflictError):
            await RedisClaimStore(connection).insert(stored_claim)

        pipe.hset.assert_not_called()
        pipe.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_failure_commits_nothing(self, connection, pipe, stored_claim) -> None:
        pipe.execute.side_effect = redis.ConnectionError("connection reset")

        with pytest.raises(StorageError):
            await RedisClaimStore(connection).insert(stored_claim)

        # hset was only queued inside MULTI, which never executed
        pipe.hset.assert_called_once()
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insert_retries_on_watch_error(self, connection, pipe, stored_claim) -> None:
        pipe.execute.side_effect = [redis.WatchError(), [1, True, 1, 1, 1]]

        await RedisClaimStore(connection).insert(stored_claim)

        assert pipe.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_corrupt_document_is_storage_error(self, connection, mock_redis_client) -> None:
        mock_redis_client.get.return_value = '{"claimId": "AIR-CLAIM-0001", "description": null}'

        with pytest.raises(StorageError):
            await RedisClaimStore(connection).get("c0ffee")

    @pytest.mark.asyncio
    async def test_apply_commits_mutation(self, connection, pipe, stored_claim: Claim) -> None:
        pipe.get.return_value = _as_json(stored_claim)
        actor = Actor(actor_id="contrib-1", role=ActorRole.CONTRIBUTOR)
        entry = audit_entry(AuditEvent.CLAIM_UPDATED, actor, NOW)

        result = await RedisClaimStore(connection).apply(
            "c0ffee",
            lambda claim: with_audit(claim, entry, description="updated"),
            expected_status=ClaimStatus.PENDING,
        )

        assert result.description == "updated"
        pipe.watch.assert_awaited_once_with("airclaim:claim:c0ffee")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once_with("airclaim:claim:c0ffee", _as_json(result))
        pipe.zadd.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_moves_status_index(self, connection, pipe, stored_claim: Claim) -> None:
        pipe.get.return_value = _as_json(stored_claim)
        actor = Actor(actor_id="verifier-1", role=ActorRole.VERIFIER)
        entry = audit_entry(AuditEvent.CLAIM_REJECTED, actor, NOW)

        await RedisClaimStore(connection).apply(
            "c0ffee",
            lambda claim: with_audit(claim, entry, status=ClaimStatus.REJECTED),
            expected_status=ClaimStatus.PENDING,
        )

        pipe.zrem.assert_called_once_with("airclaim:claims:status:pending", "c0ffee")
        assert pipe.zadd.call_args.args[0] == "airclaim:claims:status:rejected"

    @pytest.mark.asyncio
    async def test_apply_status_mismatch(self, connection, pipe, stored_claim: Claim) -> None:
        verified = stored_claim.model_copy(update={"status": ClaimStatus.VERIFIED})
        pipe.get.return_value = _as_json(verified)

        with pytest.raises(ConflictError) as exc_info:
            await RedisClaimStore(connection).apply(
                "c0ffee", lambda claim: claim, expected_status=ClaimStatus.PENDING
            )

        assert exc_info.value.context["current_status"] == "verified"
        pipe.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_missing(self, connection, pipe) -> None:
        with pytest.raises(NotFoundError):
            await RedisClaimStore(connection).apply("missing", lambda claim: claim)

    @pytest.mark.asyncio
    async def test_apply_retries_on_watch_error(self, connection, pipe, stored_claim) -> None:
        pipe.get.return_value = _as_json(stored_claim)
        pipe.execute.side_effect = [redis.WatchError(), [True]]

        await RedisClaimStore(connection).apply("c0ffee", lambda claim: claim)

        assert pipe.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_apply_gives_up_after_retries(self, connection, pipe, stored_claim) -> None:
        pipe.get.return_value = _as_json(stored_claim)
        pipe.execute.side_effect = redis.WatchError()

        with pytest.raises(StorageError):
            await RedisClaimStore(connection, transaction_retries=3).apply(
                "c0ffee", lambda claim: claim
            )

        assert pipe.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_find_page_reads_sorted_set_window(
        self, connection, mock_redis_client, stored_claim: Claim
    ) -> None:
        mock_redis_client.zcard.return_value = 5
        mock_redis_client.zrange.return_value = ["c0ffee"]
        mock_redis_client.mget.return_value = [_as_json(stored_claim)]

        page = await RedisClaimStore(connection).find_page(
            ClaimQuery(status=ClaimStatus.PENDING, page=3, limit=2)
        )

        assert page.total == 5
        assert page.pages == 3
        assert [c.id for c in page.data] == ["c0ffee"]
        mock_redis_client.zrange.assert_awaited_once_with(
            "airclaim:claims:status:pending", 4, 5, desc=True
        )

    @pytest.mark.asyncio
    async def test_redis_error_becomes_storage_error(self, connection, mock_redis_client) -> None:
        mock_redis_client.get.side_effect = redis.ConnectionError("connection reset")

        with pytest.raises(StorageError):
            await RedisClaimStore(connection).get("c0ffee")


class TestRedisCreditStore:
    @pytest.mark.asyncio
    async def test_insert(self, connection, mock_redis_client, pipe) -> None:
        credit = Credit(claim_id="c0ffee", owner_id="contrib-1", amount=150, issued_at=NOW)

        await RedisCreditStore(connection).insert(credit)

        mock_redis_client.set.assert_awaited_once_with(
            "airclaim:credits:claim:c0ffee", credit.id, nx=True
        )
        pipe.set.assert_called_once()
        pipe.zadd.assert_called_once()

    @pytest.mark.asyncio
    async def test_insert_second_credit_conflicts(self, connection, mock_redis_client) -> None:
        mock_redis_client.set.return_value = None
        credit = Credit(claim_id="c0ffee", owner_id="contrib-1", amount=150)

        with pytest.raises(ConflictError):
            await RedisCreditStore(connection).insert(credit)

    @pytest.mark.asyncio
    async def test_list_by_owner(self, connection, mock_redis_client) -> None:
        credit = Credit(claim_id="c0ffee", owner_id="contrib-1", amount=150, issued_at=NOW)
        mock_redis_client.zrange.return_value = [credit.id]
        mock_redis_client.mget.return_value = [credit.model_dump_json(by_alias=True)]

        credits = await RedisCreditStore(connection).list_by_owner("contrib-1")

        assert credits == [credit]


class TestRedisCounterStore:
    @pytest.mark.asyncio
    async def test_increment(self, connection, mock_redis_client) -> None:
        mock_redis_client.incr.return_value = 3

        assert await RedisCounterStore(connection).increment("counter:claim_sequence") == 3
        mock_redis_client.incr.assert_awaited_once_with("airclaim:counter:claim_sequence")

    @pytest.mark.asyncio
    async def test_increment_with_ttl(self, connection, pipe) -> None:
        pipe.execute.return_value = [4, True]

        value = await RedisCounterStore(connection).increment("rate:x", ttl_seconds=60)

        assert value == 4
        pipe.incr.assert_called_once_with("airclaim:rate:x")
        pipe.expire.assert_called_once_with("airclaim:rate:x", 60)

    @pytest.mark.asyncio
    async def test_get_absent_is_zero(self, connection) -> None:
        assert await RedisCounterStore(connection).get("counter:claim_sequence") == 0

    @pytest.mark.asyncio
    async def test_set_if_absent(self, connection, mock_redis_client) -> None:
        store = RedisCounterStore(connection)

        assert await store.set_if_absent("counter:claim_sequence", 12) is True
        mock_redis_client.set.return_value = None
        assert await store.set_if_absent("counter:claim_sequence", 12) is False
