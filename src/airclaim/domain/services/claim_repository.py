"""
Claim Repository
================

Owns claim documents: creation (fingerprint + sequence + initial audit entry),
lookup, paginated listing, pending-only field updates and evidence appends,
and vegetation-index annotation.

Status changes are not made here; see ``VerificationStateMachine``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_snake

from airclaim.domain.entities import (
    Actor,
    AuditEvent,
    Claim,
    ClaimDraft,
    ClaimStatus,
    DomainModel,
    EvidenceItem,
    Polygon,
    VegetationIndex,
    utc_now,
)
from airclaim.domain.errors import NotFoundError, ValidationError
from airclaim.domain.results import ClaimPage, ClaimQuery, ClaimSortField, SortOrder
from airclaim.domain.services.audit_log import audit_entry, with_audit
from airclaim.domain.services.fingerprint import (
    evidence_content_ids,
    generate_fingerprint,
    verify_fingerprint,
)
from airclaim.domain.services.sequence_allocator import parse_claim_number

if TYPE_CHECKING:
    from datetime import datetime

    from airclaim.domain.entities import Clock
    from airclaim.domain.services.sequence_allocator import SequenceAllocator
    from airclaim.ports.claim_store import ClaimStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGE_SIZE = 100

UPDATABLE_FIELDS = frozenset({"contributor_name", "contributor_email", "description", "area_unit"})
UPDATABLE_LOCATION_FIELDS = frozenset({"country", "state", "city"})


# Only supplied keys are applied, so defaults never reach a claim
class _ClaimFieldUpdate(DomainModel):
    contributor_name: str = Field(default="", min_length=1)
    contributor_email: str = Field(default="", pattern=r"^[^@\s]+@[^@\s]+$")
    description: str = ""
    area_unit: float | None = Field(default=None, gt=0)


class _LocationUpdate(DomainModel):
    country: str = Field(default="", min_length=1)
    state: str | None = None
    city: str | None = None


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


def validate_polygon(polygon: Polygon, field: str = "location.polygon") -> None:
    """
    Check that the outer ring is a closed ring of at least 3 distinct vertices.

    Raises:
        ValidationError: Missing ring, out-of-range coordinate, fewer than 3
            distinct vertices, or first vertex != last vertex.
    """
    ring = polygon.outer_ring
    if not ring:
        raise ValidationError("Polygon must have an outer ring", field=field)

    for lng, lat in ring:
        if not (math.isfinite(lng) and math.isfinite(lat)):
            raise ValidationError("Polygon coordinates must be finite numbers", field=field)
        if not -180 <= lng <= 180 or not -90 <= lat <= 90:
            raise ValidationError(
                f"Coordinate ({lng}, {lat}) is outside longitude/latitude bounds",
                field=field,
            )

    if len(ring) < 4 or tuple(ring[0]) != tuple(ring[-1]):
        raise ValidationError(
            "Polygon must be closed (first and last points must match)", field=field
        )

    distinct = {tuple(point) for point in ring[:-1]}
    if len(distinct) < 3:
        raise ValidationError("Polygon needs at least 3 distinct vertices", field=field)


def validate_evidence_item(item: EvidenceItem, field: str = "evidence") -> None:
    if not item.content_id or not item.content_id.strip():
        raise ValidationError("Evidence entry is missing a content identifier", field=field)
    if not item.name.strip():
        raise ValidationError("Evidence entry is missing a name", field=field)


def validate_draft(draft: ClaimDraft) -> None:
    """Validate a contributor submission before anything is allocated."""
    if not draft.contributor_name.strip():
        raise ValidationError("Contributor name is required", field="contributorName")
    if "@" not in draft.contributor_email:
        raise ValidationError("Valid email is required", field="contributorEmail")
    if not draft.location.country.strip():
        raise ValidationError("Country is required", field="location.country")
    if draft.area_unit is not None and not (math.isfinite(draft.area_unit) and draft.area_unit > 0):
        raise ValidationError("Area must be positive", field="areaUnit")

    validate_polygon(draft.location.polygon)
    for index, item in enumerate(draft.evidence):
        validate_evidence_item(item, field=f"evidence[{index}]")


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "body"


# -----------------------------------------------------------------------------
# Repository
# -----------------------------------------------------------------------------


class ClaimRepository:
    """
    Claim persistence rules on top of a ClaimStore.

    Every mutation is a single ``ClaimStore.apply`` call conditioned on the
    claim still being ``pending`` (except vegetation-index annotation), with
    its audit entry folded into the same write.
    """

    def __init__(
        self,
        store: ClaimStore,
        allocator: SequenceAllocator,
        clock: Clock = utc_now,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._allocator = allocator
        self._clock = clock
        self._max_page_size = max_page_size

    # -- creation -----------------------------------------------------------

    async def create(self, draft: ClaimDraft, actor: Actor) -> Claim:
        """
        Create a pending claim from a contributor submission.

        Raises:
            ValidationError: Degenerate/unclosed polygon or evidence without
                a content identifier.
        """
        validate_draft(draft)

        now = self._clock()
        claim_id = await self._allocator.allocate()
        seal = generate_fingerprint(
            contributor_id=actor.actor_id,
            created_at=now,
            polygon=draft.location.polygon,
            evidence_content_ids=evidence_content_ids(draft.evidence),
        )

        claim = Claim(
            claim_id=claim_id,
            fingerprint=seal.fingerprint,
            fingerprint_nonce=seal.nonce,
            fingerprint_evidence_count=len(draft.evidence),
            status=ClaimStatus.PENDING,
            contributor_id=actor.actor_id,
            contributor_name=draft.contributor_name,
            contributor_email=draft.contributor_email,
            location=draft.location,
            area_unit=draft.area_unit,
            description=draft.description,
            evidence=list(draft.evidence),
            audit_log=[
                audit_entry(
                    AuditEvent.CLAIM_CREATED,
                    actor,
                    now,
                    note=f"Claim submitted with {len(draft.evidence)} evidence file(s)",
                )
            ],
            created_at=now,
            updated_at=now,
        )
        await self._store.insert(claim)
        logger.info(f"Claim created: {claim.claim_id} by contributor {actor.actor_id}")
        return claim

    # -- reads --------------------------------------------------------------

    async def find_by_id(self, id: str) -> Claim | None:
        return await self._store.get(id)

    async def find_by_claim_id(self, claim_id: str) -> Claim | None:
        return await self._store.get_by_claim_id(claim_id)

    async def find_by_contributor(self, contributor_id: str) -> list[Claim]:
        return await self._store.list_by_contributor(contributor_id)

    async def resolve(self, ref: str) -> Claim:
        """
        Find a claim by storage id or human-readable claim id.

        Raises:
            NotFoundError: Neither lookup matches.
        """
        claim = None
        if parse_claim_number(ref, self._allocator.prefix) is not None:
            claim = await self._store.get_by_claim_id(ref)
        if claim is None:
            claim = await self._store.get(ref)
        if claim is None:
            raise NotFoundError("Claim not found", claim_ref=ref)
        return claim

    async def find_paginated(
        self,
        status: ClaimStatus | None = None,
        contributor_id: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_field: ClaimSortField = ClaimSortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
    ) -> ClaimPage:
        """
        One page of claims matching the filter.

        Raises:
            ValidationError: ``page < 1`` or ``limit`` outside 1..max page size.
        """
        if page < 1:
            raise ValidationError("page must be >= 1", field="page")
        if not 1 <= limit <= self._max_page_size:
            raise ValidationError(
                f"limit must be between 1 and {self._max_page_size}", field="limit"
            )
        query = ClaimQuery(
            status=status,
            contributor_id=contributor_id,
            page=page,
            limit=limit,
            sort_field=sort_field,
            sort_order=sort_order,
        )
        return await self._store.find_page(query)

    # -- pending-only mutations ---------------------------------------------

    async def update(self, id: str, fields: Mapping[str, Any], actor: Actor) -> Claim:
        """
        Update contributor-editable fields of a pending claim.

        Keys may be snake_case or camelCase. ``location`` accepts only
        country/state/city; the polygon is sealed by the fingerprint.

        Raises:
            ValidationError: Unknown, protected or invalid field.
            NotFoundError: Unknown claim.
            ConflictError: Claim is no longer pending.
        """
        if not fields:
            raise ValidationError("No fields to update", field="body")

        changes: dict[str, Any] = {}
        location_changes: dict[str, Any] = {}
        for raw_key, value in fields.items():
            key = to_snake(raw_key)
            if key == "location":
                if not isinstance(value, Mapping):
                    raise ValidationError("location must be an object", field="location")
                for raw_sub_key, sub_value in value.items():
                    sub_key = to_snake(raw_sub_key)
                    if sub_key not in UPDATABLE_LOCATION_FIELDS:
                        raise ValidationError(
                            f"location.{raw_sub_key} cannot be updated",
                            field=f"location.{raw_sub_key}",
                        )
                    location_changes[sub_key] = sub_value
            elif key in UPDATABLE_FIELDS:
                changes[key] = value
            else:
                raise ValidationError(f"{raw_key} cannot be updated", field=raw_key)

        try:
            changes = _ClaimFieldUpdate.model_validate(changes).model_dump(include=set(changes))
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ValidationError(first["msg"], field=_field_path(first["loc"])) from e
        try:
            location_changes = _LocationUpdate.model_validate(location_changes).model_dump(
                include=set(location_changes)
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ValidationError(first["msg"], field=_field_path(("location", *first["loc"]))) from e
        if "country" in location_changes and not location_changes["country"].strip():
            raise ValidationError("Country is required", field="location.country")

        entry = audit_entry(
            AuditEvent.CLAIM_UPDATED,
            actor,
            self._clock(),
            note=f"Updated {', '.join(sorted([*changes, *(f'location.{k}' for k in location_changes)]))}",
        )

        def mutate(claim: Claim) -> Claim:
            update = dict(changes)
            if location_changes:
                update["location"] = claim.location.model_copy(update=location_changes)
            updated = with_audit(claim, entry, **update)
            # model_copy skips validation; the stored document must load back
            try:
                return Claim.model_validate(updated.model_dump())
            except PydanticValidationError as e:
                first = e.errors()[0]
                raise ValidationError(first["msg"], field=_field_path(first["loc"])) from e

        updated = await self._store.apply(id, mutate, expected_status=ClaimStatus.PENDING)
        logger.info(f"Claim {updated.claim_id} updated by {actor.role} {actor.actor_id}")
        return updated

    async def append_evidence(self, id: str, item: EvidenceItem, actor: Actor) -> Claim:
        """
        Append one evidence item to a pending claim.

        The fingerprint keeps covering only the evidence known at submission.

        Raises:
            ValidationError: Item has no content identifier.
            NotFoundError: Unknown claim.
            ConflictError: Claim is no longer pending.
        """
        validate_evidence_item(item)
        entry = audit_entry(
            AuditEvent.EVIDENCE_APPENDED,
            actor,
            self._clock(),
            note=f"Evidence appended: {item.name}",
        )

        def mutate(claim: Claim) -> Claim:
            return with_audit(claim, entry, evidence=[*claim.evidence, item])

        updated = await self._store.apply(id, mutate, expected_status=ClaimStatus.PENDING)
        logger.info(f"Evidence appended to claim {updated.claim_id}: {item.content_id}")
        return updated

    # -- annotation ---------------------------------------------------------

    async def attach_vegetation_index(
        self,
        id: str,
        before: float,
        after: float,
        actor: Actor,
        delta: float | None = None,
        processed_at: datetime | None = None,
    ) -> Claim:
        """
        Record the advisory vegetation-index result for a claim.

        Allowed in any status; never changes status or credits.
        """
        for name, value in (("before", before), ("after", after), ("delta", delta)):
            if value is not None and not math.isfinite(value):
                raise ValidationError(f"{name} must be a finite number", field=name)

        now = self._clock()
        index = VegetationIndex(
            before=before,
            after=after,
            delta=delta if delta is not None else after - before,
            processed_at=processed_at or now,
        )
        entry = audit_entry(
            AuditEvent.VEGETATION_INDEX_ATTACHED,
            actor,
            now,
            note=f"Vegetation index delta {index.delta:+.4f}",
        )

        def mutate(claim: Claim) -> Claim:
            return with_audit(claim, entry, vegetation_index=index)

        return await self._store.apply(id, mutate)

    # -- integrity ----------------------------------------------------------

    @staticmethod
    def verify_integrity(claim: Claim) -> bool:
        """Recompute the fingerprint from stored content and compare."""
        sealed_evidence = claim.evidence[: claim.fingerprint_evidence_count]
        return verify_fingerprint(
            claim.fingerprint,
            claim.contributor_id,
            claim.created_at,
            claim.location.polygon,
            evidence_content_ids(sealed_evidence),
            claim.fingerprint_nonce,
        )
