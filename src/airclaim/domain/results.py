"""
Domain Results
==============

Value objects returned by the claim lifecycle operations and the query
objects used for listing.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import Field

from airclaim.domain.entities import Claim, ClaimStatus, Credit, DomainModel


class ClaimSortField(StrEnum):
    """Sortable claim fields, named as they appear on the wire."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    VEGETATION_DELTA = "vegetationDelta"
    CREDITS_ISSUED = "creditsIssued"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


class ClaimQuery(DomainModel):
    """Filter, page window and ordering for a claim listing."""

    status: ClaimStatus | None = None
    contributor_id: str | None = None
    page: int = 1
    limit: int = 20
    sort_field: ClaimSortField = ClaimSortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _sort_value(claim: Claim, field: ClaimSortField) -> Any:
    if field is ClaimSortField.CREATED_AT:
        return claim.created_at
    if field is ClaimSortField.UPDATED_AT:
        return claim.updated_at
    if field is ClaimSortField.VEGETATION_DELTA:
        return claim.vegetation_index.delta if claim.vegetation_index else None
    return claim.credits_issued


def order_claims(
    claims: Iterable[Claim],
    sort_field: ClaimSortField,
    sort_order: SortOrder,
) -> list[Claim]:
    """
    Order claims by one field; ties broken by storage id.

    Claims without a value for the field (no vegetation index, no credits)
    come last in either direction.
    """
    descending = sort_order is SortOrder.DESC

    def key(claim: Claim) -> tuple[bool, Any, str]:
        value = _sort_value(claim, sort_field)
        has_value = value is not None
        return (has_value if descending else not has_value, value if has_value else 0, claim.id)

    return sorted(claims, key=key, reverse=descending)


class ClaimPage(DomainModel):
    """One page of claims plus totals."""

    data: list[Claim] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)


class SubmissionReceipt(DomainModel):
    """What a contributor gets back from a successful submission."""

    id: str
    claim_id: str
    fingerprint: str
    status: ClaimStatus
    submissions_today: int = Field(default=0, ge=0)


class DecisionResult(DomainModel):
    """Outcome of a verifier decision."""

    id: str
    claim_id: str
    status: ClaimStatus
    credits_issued: float | None = None
    verified_at: datetime | None = None
    verifier_id: str | None = None
    verifier_notes: str | None = None
    credit_id: str | None = None


class IntegrityReport(DomainModel):
    """Result of recomputing a stored claim's fingerprint."""

    id: str
    claim_id: str
    fingerprint: str
    valid: bool


class CreditSummary(DomainModel):
    """Credits owned by one user plus their summed amount."""

    owner_id: str
    data: list[Credit] = Field(default_factory=list)
    total: float = Field(default=0.0, ge=0)
