"""
Audit Log
=========

Builds append-only audit entries and folds them into claim mutations, so the
entry is persisted in the same write as the change it describes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from airclaim.domain.entities import Actor, AuditEntry, AuditEvent, Claim


def audit_entry(
    event: AuditEvent,
    actor: Actor,
    timestamp: datetime,
    note: str = "",
) -> AuditEntry:
    """Create an audit entry for an actor's action."""
    return AuditEntry(
        event=event,
        actor_id=actor.actor_id,
        actor_name=actor.actor_name,
        note=note,
        timestamp=timestamp,
    )


def with_audit(claim: Claim, entry: AuditEntry, **changes: Any) -> Claim:
    """
    Return a copy of ``claim`` with ``changes`` applied and ``entry`` appended.

    ``updated_at`` follows the entry timestamp. Existing entries are never
    altered or dropped.
    """
    return claim.model_copy(
        update={
            **changes,
            "audit_log": [*claim.audit_log, entry],
            "updated_at": entry.timestamp,
        }
    )

