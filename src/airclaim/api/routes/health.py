"""
Health Check Endpoints
======================

Liveness and readiness probes for Kubernetes/container orchestration.
Readiness and the basic health check probe the claim, credit and counter
stores held by the container.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field

from airclaim.infrastructure.config import get_settings
from airclaim.infrastructure.dependencies import Container

router = APIRouter()
logger = logging.getLogger(__name__)

StoreState = Literal["healthy", "unhealthy", "error", "not_initialized"]


class HealthStatus(BaseModel):
    """Process health plus a per-store summary."""

    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    version: str
    environment: str
    checks: dict[str, bool] = Field(default_factory=dict)


class StoreHealth(BaseModel):
    connected: bool
    status: StoreState
    backend: str


class ReadinessStatus(BaseModel):
    """Readiness with one entry per store."""

    ready: bool
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    services: dict[str, StoreHealth] = Field(default_factory=dict)


def _optional_container(request: Request) -> Container | None:
    return getattr(request.app.state, "container", None)


ContainerDep = Annotated[Container | None, Depends(_optional_container)]


async def probe_stores(container: Container | None) -> dict[str, StoreHealth]:
    """Run each store's health check; a raising check counts as unhealthy."""
    backend = get_settings().storage.backend
    if container is None:
        return {
            name: StoreHealth(connected=False, status="not_initialized", backend=backend)
            for name in ("claims", "credits", "counters")
        }

    stores = {
        "claims": container.claim_store,
        "credits": container.credit_store,
        "counters": container.counter_store,
    }
    results: dict[str, StoreHealth] = {}
    for name, store in stores.items():
        try:
            healthy = await store.health_check()
        except Exception as e:
            logger.warning(f"Health check for {name} store raised: {e}")
            results[name] = StoreHealth(connected=False, status="error", backend=backend)
            continue
        results[name] = StoreHealth(
            connected=healthy,
            status="healthy" if healthy else "unhealthy",
            backend=backend,
        )
    return results


@router.get(
    "/live",
    response_model=HealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Check if the API is alive and responding. Does not touch storage.",
)
async def liveness() -> HealthStatus:
    """Always healthy while the process serves requests."""
    settings = get_settings()
    return HealthStatus(
        status="healthy",
        version=settings.api.version,
        environment=settings.environment,
    )


@router.get(
    "/ready",
    response_model=ReadinessStatus,
    status_code=status.HTTP_200_OK,
    summary="Readiness probe",
    description="Check if the claim, credit and counter stores are reachable.",
    responses={503: {"model": ReadinessStatus}},
)
async def readiness(response: Response, container: ContainerDep) -> ReadinessStatus:
    """
    Readiness probe checking the store adapters.

    Returns ready=True only if every store reports healthy; otherwise 503.
    """
    services = await probe_stores(container)
    ready = all(store.connected for store in services.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessStatus(ready=ready, services=services)


@router.get(
    "",
    response_model=HealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Liveness plus store checks; degraded when any store is down.",
)
async def health(container: ContainerDep) -> HealthStatus:
    settings = get_settings()
    services = await probe_stores(container)
    checks = {name: store.connected for name, store in services.items()}

    if all(checks.values()):
        overall: Literal["healthy", "degraded", "unhealthy"] = "healthy"
    elif any(checks.values()):
        overall = "degraded"
    else:
        overall = "unhealthy"

    return HealthStatus(
        status=overall,
        version=settings.api.version,
        environment=settings.environment,
        checks=checks,
    )
