"""
Claim State Rules
=================

Legal status transitions and the invariants every persisted claim mutation
must preserve. Store adapters run ``check_mutation`` inside their atomic
write, so no code path can commit a change that breaks them.
"""

from __future__ import annotations

from airclaim.domain.entities import Claim, ClaimStatus
from airclaim.domain.errors import ConflictError

TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.PENDING: frozenset({ClaimStatus.VERIFIED, ClaimStatus.REJECTED}),
    ClaimStatus.VERIFIED: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
}


def can_transition(current: ClaimStatus, target: ClaimStatus) -> bool:
    """True if ``current -> target`` is a legal status change."""
    return target in TRANSITIONS[current]


def check_mutation(before: Claim, after: Claim) -> None:
    """
    Reject a claim rewrite that breaks a lifecycle invariant.

    Raises:
        ConflictError: Illegal transition, fingerprint change, audit log
            rewrite, evidence change on a decided claim, or credits on a
            claim that is not verified.
    """
    if before.id != after.id or before.claim_id != after.claim_id:
        raise ConflictError("Claim identity cannot change", claim_id=before.claim_id)

    if after.status != before.status and not can_transition(before.status, after.status):
        raise ConflictError(
            f"Illegal status transition {before.status} -> {after.status}",
            claim_id=before.claim_id,
            current_status=before.status.value,
        )

    if (
        after.fingerprint != before.fingerprint
        or after.fingerprint_nonce != before.fingerprint_nonce
        or after.fingerprint_evidence_count != before.fingerprint_evidence_count
    ):
        raise ConflictError("Claim fingerprint is immutable", claim_id=before.claim_id)

    if after.audit_log[: len(before.audit_log)] != before.audit_log:
        raise ConflictError("Audit log is append-only", claim_id=before.claim_id)

    if before.status.is_terminal and after.evidence != before.evidence:
        raise ConflictError(
            "Evidence cannot change once a claim is decided",
            claim_id=before.claim_id,
            current_status=before.status.value,
        )

    if after.credits_issued is not None and after.status is not ClaimStatus.VERIFIED:
        raise ConflictError(
            "Credits can only be recorded on a verified claim",
            claim_id=before.claim_id,
            current_status=after.status.value,
        )
