"""
Credit API Endpoints
====================

Read access to issued credits.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from airclaim.api.identity import get_actor
from airclaim.application.claims_service import ClaimsService
from airclaim.domain.entities import Actor
from airclaim.domain.results import CreditSummary
from airclaim.infrastructure.dependencies import get_claims_service

router = APIRouter()


@router.get(
    "/credits",
    response_model=CreditSummary,
    summary="List credits",
    description="Contributors see their own credits; verifiers pass ownerId.",
)
async def list_credits(
    actor: Annotated[Actor, Depends(get_actor)],
    service: Annotated[ClaimsService, Depends(get_claims_service)],
    owner_id: Annotated[str | None, Query(alias="ownerId")] = None,
) -> CreditSummary:
    return await service.list_credits(actor, owner_id=owner_id)
