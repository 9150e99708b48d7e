"""
Domain Entities
===============

Core business objects: claims, evidence, audit entries and credits.
These are immutable value objects with no infrastructure dependencies;
mutations produce new copies via ``model_copy``.

Attributes are snake_case in Python and camelCase on the wire
(``claimId``, ``creditsIssued``), for both storage and the API.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum, auto
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 1

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current UTC time truncated to millisecond precision."""
    now = datetime.now(UTC)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def new_id() -> str:
    """Opaque storage key."""
    return uuid4().hex


class DomainModel(BaseModel):
    """Frozen base model with camelCase aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ClaimStatus(StrEnum):
    """Verification status of a claim. ``verified`` and ``rejected`` are terminal."""

    PENDING = auto()
    VERIFIED = auto()
    REJECTED = auto()

    @property
    def is_terminal(self) -> bool:
        return self is not ClaimStatus.PENDING


class ActorRole(StrEnum):
    """Role supplied by the identity provider."""

    CONTRIBUTOR = auto()
    VERIFIER = auto()
    SERVICE = auto()  # Vegetation-index analysis collaborator


class EvidenceKind(StrEnum):
    """Kind of uploaded evidence file."""

    DOCUMENT = auto()
    IMAGE = auto()
    SATELLITE = auto()


class AuditEvent(StrEnum):
    """Events recorded in a claim's audit log."""

    CLAIM_CREATED = auto()
    CLAIM_UPDATED = auto()
    EVIDENCE_APPENDED = auto()
    VEGETATION_INDEX_ATTACHED = auto()
    CLAIM_VERIFIED = auto()
    CLAIM_REJECTED = auto()


class Actor(DomainModel):
    """Authenticated caller identity. Trusted as supplied."""

    actor_id: str = Field(..., min_length=1)
    actor_name: str = ""
    role: ActorRole


class Polygon(DomainModel):
    """GeoJSON polygon. The first ring is the outer boundary as [lng, lat] pairs."""

    type: Literal["Polygon"] = "Polygon"
    coordinates: list[list[tuple[float, float]]]

    @property
    def outer_ring(self) -> list[tuple[float, float]]:
        return self.coordinates[0] if self.coordinates else []


class Location(DomainModel):
    """Where the restored land is."""

    country: str
    state: str | None = None
    city: str | None = None
    polygon: Polygon


class EvidenceItem(DomainModel):
    """Metadata for an uploaded evidence file. File bytes live elsewhere."""

    name: str
    kind: EvidenceKind = EvidenceKind.DOCUMENT
    url: str
    content_id: str | None = Field(default=None, description="CID of the stored file")
    uploaded_at: datetime = Field(default_factory=utc_now)


class VegetationIndex(DomainModel):
    """Advisory before/after vegetation score supplied by the analysis service."""

    before: float
    after: float
    delta: float
    processed_at: datetime


class AuditEntry(DomainModel):
    """One append-only audit log record."""

    event: AuditEvent
    actor_id: str
    actor_name: str = ""
    note: str = ""
    timestamp: datetime


class ClaimDraft(DomainModel):
    """Contributor submission before it becomes a Claim."""

    contributor_name: str
    contributor_email: str
    location: Location
    area_unit: float | None = None
    description: str = ""
    evidence: list[EvidenceItem] = Field(default_factory=list)


class Claim(DomainModel):
    """
    A contributor's assertion of land-restoration work.

    Created ``pending``; mutated only through the verification state machine
    (status) or guarded pending-only operations (fields, evidence).
    """

    id: str = Field(default_factory=new_id)
    claim_id: str
    fingerprint: str
    fingerprint_nonce: str
    fingerprint_evidence_count: int = Field(default=0, ge=0)
    status: ClaimStatus = ClaimStatus.PENDING

    contributor_id: str
    contributor_name: str
    contributor_email: str

    location: Location
    area_unit: float | None = None
    description: str = ""

    evidence: list[EvidenceItem] = Field(default_factory=list)
    vegetation_index: VegetationIndex | None = None

    credits_issued: float | None = None
    verifier_id: str | None = None
    verifier_name: str | None = None
    verifier_notes: str | None = None
    verified_at: datetime | None = None

    audit_log: list[AuditEntry] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime
    schema_version: int = SCHEMA_VERSION


class Credit(DomainModel):
    """Value issued for an approved claim. Immutable within this service."""

    id: str = Field(default_factory=new_id)
    claim_id: str = Field(..., description="Storage key of the approved claim")
    owner_id: str
    amount: float = Field(..., gt=0)
    issued_at: datetime = Field(default_factory=utc_now)
