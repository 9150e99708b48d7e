"""
Dependency Injection Container
==============================

Wires store adapters to ports based on configuration and provides FastAPI
dependency functions for the application service.

The container lives on ``app.state``; nothing is held in module globals.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fastapi import Request

from airclaim.adapters.outbound.redis_connection import RedisConnection
from airclaim.adapters.outbound.store_memory import (
    InMemoryClaimStore,
    InMemoryCounterStore,
    InMemoryCreditStore,
)
from airclaim.adapters.outbound.store_redis import (
    RedisClaimStore,
    RedisCounterStore,
    RedisCreditStore,
)
from airclaim.application.claims_service import ClaimsService
from airclaim.domain.entities import utc_now
from airclaim.domain.services.claim_repository import ClaimRepository
from airclaim.domain.services.credit_issuer import CreditIssuer
from airclaim.domain.services.rate_limiter import SubmissionRateLimiter
from airclaim.domain.services.sequence_allocator import SequenceAllocator
from airclaim.domain.services.state_machine import VerificationStateMachine
from airclaim.infrastructure.config import get_settings

if TYPE_CHECKING:
    from fastapi import FastAPI

    from airclaim.domain.entities import Clock
    from airclaim.infrastructure.config import Settings
    from airclaim.ports.claim_store import ClaimStore
    from airclaim.ports.counter_store import CounterStore
    from airclaim.ports.credit_store import CreditStore

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Store handles and the services built on them."""

    claim_store: ClaimStore
    credit_store: CreditStore
    counter_store: CounterStore
    sequence: SequenceAllocator
    claims_service: ClaimsService
    redis: RedisConnection | None = None


def build_container(settings: Settings, clock: Clock = utc_now) -> Container:
    """
    Construct adapters and services. No I/O; see ``start_container``.

    This is where concrete adapter implementations are wired to ports.
    """
    redis_connection: RedisConnection | None = None
    claim_store: ClaimStore
    credit_store: CreditStore
    counter_store: CounterStore

    if settings.storage.backend == "redis":
        redis_connection = RedisConnection(settings.redis)
        claim_store = RedisClaimStore(
            redis_connection,
            transaction_retries=settings.claims.transaction_retries,
        )
        credit_store = RedisCreditStore(redis_connection)
        counter_store = RedisCounterStore(redis_connection)
    else:
        claim_store = InMemoryClaimStore()
        credit_store = InMemoryCreditStore()
        counter_store = InMemoryCounterStore()

    sequence = SequenceAllocator(
        counter_store,
        claim_store,
        prefix=settings.claims.claim_id_prefix,
        digits=settings.claims.claim_id_digits,
    )
    credit_issuer = CreditIssuer(credit_store, clock=clock)
    repository = ClaimRepository(
        claim_store,
        sequence,
        clock=clock,
        max_page_size=settings.claims.max_page_size,
    )
    state_machine = VerificationStateMachine(claim_store, credit_issuer, clock=clock)
    rate_limiter = SubmissionRateLimiter(
        counter_store,
        daily_limit=settings.claims.daily_submission_limit,
        clock=clock,
    )
    claims_service = ClaimsService(
        repository=repository,
        state_machine=state_machine,
        credit_issuer=credit_issuer,
        rate_limiter=rate_limiter,
        default_page_size=settings.claims.default_page_size,
    )

    return Container(
        claim_store=claim_store,
        credit_store=credit_store,
        counter_store=counter_store,
        sequence=sequence,
        claims_service=claims_service,
        redis=redis_connection,
    )


async def start_container(container: Container) -> None:
    """Connect adapters and seed the claim sequence."""
    if container.redis is not None:
        await container.redis.connect()
    await container.sequence.seed()
    logger.info("DI container ready")


async def stop_container(container: Container) -> None:
    """Close adapter connections; shielded from cancellation during shutdown."""
    if container.redis is None:
        return
    try:
        await asyncio.shield(asyncio.wait_for(container.redis.disconnect(), timeout=5.0))
    except TimeoutError:
        logger.warning("Redis disconnect timed out")
    except asyncio.CancelledError:
        logger.warning("Redis disconnect cancelled (graceful shutdown)")


# -----------------------------------------------------------------------------
# Lifecycle management
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan_manager(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
    """
    Manage application lifecycle: build, start and stop the container.

    Usage in FastAPI:
        app = FastAPI(lifespan=lifespan_manager)
    """
    settings = get_settings()
    logger.info(
        f"Initializing DI container - Environment: {settings.environment}, "
        f"storage: {settings.storage.backend}"
    )
    container = build_container(settings)
    await start_container(container)
    app.state.container = container
    try:
        yield {}
    finally:
        await stop_container(container)
        logger.info("Adapter cleanup complete")


# -----------------------------------------------------------------------------
# FastAPI Dependency providers
# -----------------------------------------------------------------------------


def get_container(request: Request) -> Container:
    """Dependency: the container attached to the running app."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Container not initialized. Check application lifespan.")
    return container


def get_claims_service(request: Request) -> ClaimsService:
    """Dependency: the claim lifecycle use-cases."""
    return get_container(request).claims_service
