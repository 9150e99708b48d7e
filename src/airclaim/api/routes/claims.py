"""
Claim API Endpoints
===================

Submission, listing, editing, verifier decisions, vegetation-index
annotation and integrity checks for land-restoration claims.

``{ref}`` accepts either the storage id or the human-readable claim id.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from airclaim.api.identity import get_actor
from airclaim.application.claims_service import ClaimsService
from airclaim.domain.entities import Actor, Claim, ClaimDraft, ClaimStatus, EvidenceItem
from airclaim.domain.results import (
    ClaimSortField,
    DecisionResult,
    IntegrityReport,
    SortOrder,
    SubmissionReceipt,
)
from airclaim.infrastructure.dependencies import get_claims_service

router = APIRouter()
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Request/Response Schemas (API layer DTOs)
# -----------------------------------------------------------------------------


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PageMeta(ApiModel):
    page: int
    pages: int
    total: int
    limit: int


class ClaimListResponse(ApiModel):
    """One page of claims."""

    data: list[Claim]
    meta: PageMeta


class EvidenceListResponse(ApiModel):
    evidence: list[EvidenceItem]


class DecisionRequest(ApiModel):
    """Verifier decision on a pending claim."""

    approved: bool
    credits: float | None = Field(
        default=None,
        description="Credits to issue on approval. Omit or 0 to approve without credits.",
    )
    notes: str | None = Field(default=None, max_length=10_000)


class VegetationIndexRequest(ApiModel):
    """Result from the vegetation-index analysis service."""

    before: float
    after: float
    delta: float | None = Field(default=None, description="Defaults to after - before")
    processed_at: datetime | None = None


ServiceDep = Annotated[ClaimsService, Depends(get_claims_service)]
ActorDep = Annotated[Actor, Depends(get_actor)]


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.post(
    "/claims",
    response_model=SubmissionReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a claim",
    description="Create a pending claim with a tamper-evident fingerprint.",
)
async def submit_claim(draft: ClaimDraft, actor: ActorDep, service: ServiceDep) -> SubmissionReceipt:
    receipt = await service.submit_claim(actor, draft)
    logger.info(
        f"Claim submitted: {receipt.claim_id}",
        extra={
            "claim_id": receipt.claim_id,
            "actor_id": actor.actor_id,
            "submissions_today": receipt.submissions_today,
        },
    )
    return receipt


@router.get(
    "/claims",
    response_model=ClaimListResponse,
    summary="List claims",
    description="Paginated claim listing. Contributors only see their own claims.",
)
async def list_claims(
    actor: ActorDep,
    service: ServiceDep,
    claim_status: Annotated[ClaimStatus | None, Query(alias="status")] = None,
    page: int = 1,
    limit: int | None = None,
    sort_by: Annotated[ClaimSortField, Query(alias="sortBy")] = ClaimSortField.CREATED_AT,
    sort_order: Annotated[SortOrder, Query(alias="sortOrder")] = SortOrder.DESC,
) -> ClaimListResponse:
    result = await service.list_claims(
        actor,
        status=claim_status,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ClaimListResponse(
        data=result.data,
        meta=PageMeta(page=result.page, pages=result.pages, total=result.total, limit=result.limit),
    )


@router.get("/claims/{ref}", response_model=Claim, summary="Get a claim")
async def get_claim(ref: str, actor: ActorDep, service: ServiceDep) -> Claim:
    return await service.get_claim(actor, ref)


@router.patch(
    "/claims/{ref}",
    response_model=Claim,
    summary="Update a pending claim",
    description=(
        "Contributors may edit contributorName, contributorEmail, description, "
        "areaUnit and location country/state/city while the claim is pending."
    ),
)
async def update_claim(
    ref: str,
    fields: Annotated[dict[str, Any], Body()],
    actor: ActorDep,
    service: ServiceDep,
) -> Claim:
    claim = await service.update_claim(actor, ref, fields)
    logger.info(
        f"Claim updated: {claim.claim_id}",
        extra={"claim_id": claim.claim_id, "actor_id": actor.actor_id, "fields": sorted(fields)},
    )
    return claim


@router.post(
    "/claims/{ref}/evidence",
    response_model=EvidenceListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append evidence to a pending claim",
)
async def append_evidence(
    ref: str,
    item: EvidenceItem,
    actor: ActorDep,
    service: ServiceDep,
) -> EvidenceListResponse:
    evidence = await service.append_evidence(actor, ref, item)
    return EvidenceListResponse(evidence=evidence)


@router.post(
    "/claims/{ref}/decision",
    response_model=DecisionResult,
    summary="Approve or reject a pending claim",
    description="Verifier only. Approval with credits issues exactly one credit.",
)
async def decide_claim(
    ref: str,
    decision: DecisionRequest,
    actor: ActorDep,
    service: ServiceDep,
) -> DecisionResult:
    result = await service.decide_claim(
        actor,
        ref,
        approved=decision.approved,
        credits=decision.credits,
        notes=decision.notes,
    )
    logger.info(
        f"Claim {result.claim_id} decided: {result.status}",
        extra={
            "claim_id": result.claim_id,
            "verifier_id": actor.actor_id,
            "status": result.status.value,
            "credits_issued": result.credits_issued,
        },
    )
    return result


@router.put(
    "/claims/{ref}/vegetation-index",
    response_model=Claim,
    summary="Attach a vegetation-index result",
    description="Analysis service only. Advisory; never changes status or credits.",
)
async def attach_vegetation_index(
    ref: str,
    body: VegetationIndexRequest,
    actor: ActorDep,
    service: ServiceDep,
) -> Claim:
    return await service.attach_vegetation_index(
        actor,
        ref,
        before=body.before,
        after=body.after,
        delta=body.delta,
        processed_at=body.processed_at,
    )


@router.get(
    "/claims/{ref}/integrity",
    response_model=IntegrityReport,
    summary="Verify a claim fingerprint",
    description="Recompute the fingerprint from stored content and compare.",
)
async def check_integrity(ref: str, actor: ActorDep, service: ServiceDep) -> IntegrityReport:
    return await service.check_integrity(actor, ref)
