"""
Domain Layer
============

Core business entities, results and errors.
These are persistence-agnostic and contain no infrastructure dependencies.
"""

from airclaim.domain.entities import (
    Actor,
    ActorRole,
    AuditEntry,
    AuditEvent,
    Claim,
    ClaimDraft,
    ClaimStatus,
    Credit,
    EvidenceItem,
    EvidenceKind,
    Location,
    Polygon,
    VegetationIndex,
)
from airclaim.domain.errors import (
    AirClaimError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    StorageError,
    ValidationError,
)
from airclaim.domain.results import (
    ClaimPage,
    ClaimQuery,
    ClaimSortField,
    CreditSummary,
    DecisionResult,
    IntegrityReport,
    SortOrder,
    SubmissionReceipt,
)

__all__ = [
    # Entities
    "Actor",
    "ActorRole",
    "AuditEntry",
    "AuditEvent",
    "Claim",
    "ClaimDraft",
    "ClaimStatus",
    "Credit",
    "EvidenceItem",
    "EvidenceKind",
    "Location",
    "Polygon",
    "VegetationIndex",
    # Errors
    "AirClaimError",
    "AuthorizationError",
    "ConflictError",
    "NotFoundError",
    "RateLimitError",
    "StorageError",
    "ValidationError",
    # Results
    "ClaimPage",
    "ClaimQuery",
    "ClaimSortField",
    "CreditSummary",
    "DecisionResult",
    "IntegrityReport",
    "SortOrder",
    "SubmissionReceipt",
]
