"""
Claim Fingerprint
=================

Deterministic SHA-256 fingerprint binding a claim's seed content to a random
nonce, computed once at submission time.

Seed (canonicalized, keys sorted):
    contributorId, createdAt (ISO-8601 UTC, milliseconds, ``Z``),
    polygon {type, coordinates}, evidenceCIDs (sorted), nonce

The canonical text is independent of key insertion order and of evidence
upload order, but sensitive to polygon vertex order. Numbers render the way
JSON.stringify renders them so fingerprints reproduce across implementations.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from airclaim.domain.entities import EvidenceItem, Polygon

_EXPONENT = re.compile(r"e([+-])0*(\d)")


@dataclass(frozen=True)
class Fingerprint:
    """A fingerprint and the nonce it was computed with."""

    fingerprint: str
    nonce: str


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _format_number(value: float) -> str:
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"Cannot canonicalize non-finite number: {value!r}")
    if value == 0:
        return "0"
    if abs(value) >= 1e21 or abs(value) < 1e-6:
        return _EXPONENT.sub(r"e\1\2", repr(value))
    # shortest round-trip digits, positional notation, no trailing ".0"
    return format(Decimal(repr(value)).normalize(), "f")


def canonicalize(value: Any) -> str:
    """
    Serialize a value into one deterministic string.

    Mappings have their keys sorted alphabetically; sequences keep their
    order; strings, booleans and null are JSON-encoded.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, Mapping):
        pairs = (
            f"{json.dumps(str(key), ensure_ascii=False)}:{canonicalize(value[key])}"
            for key in sorted(value, key=str)
        )
        return "{" + ",".join(pairs) + "}"
    if isinstance(value, Sequence):
        return "[" + ",".join(canonicalize(item) for item in value) + "]"
    raise TypeError(f"Cannot canonicalize value of type {type(value).__name__}")


def _polygon_seed(polygon: Polygon | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(polygon, Polygon):
        return {
            "type": polygon.type,
            "coordinates": [[list(point) for point in ring] for ring in polygon.coordinates],
        }
    return {"type": polygon["type"], "coordinates": polygon["coordinates"]}


def generate_fingerprint(
    contributor_id: str,
    created_at: datetime,
    polygon: Polygon | Mapping[str, Any],
    evidence_content_ids: Iterable[str],
    nonce: str | None = None,
) -> Fingerprint:
    """
    Compute the fingerprint of a claim's seed content.

    Args:
        contributor_id: Identity of the submitting contributor.
        created_at: Claim creation time.
        polygon: GeoJSON polygon of the claimed area.
        evidence_content_ids: Content identifiers of the evidence files.
        nonce: Nonce to reuse; a random UUID4 is generated when omitted.

    Returns:
        The hex digest and the nonce used.
    """
    claim_nonce = nonce or str(uuid4())
    seed = {
        "contributorId": contributor_id,
        "createdAt": format_timestamp(created_at),
        "polygon": _polygon_seed(polygon),
        "evidenceCIDs": sorted(evidence_content_ids),
        "nonce": claim_nonce,
    }
    digest = hashlib.sha256(canonicalize(seed).encode("utf-8")).hexdigest()
    return Fingerprint(fingerprint=digest, nonce=claim_nonce)


def verify_fingerprint(
    expected: str,
    contributor_id: str,
    created_at: datetime,
    polygon: Polygon | Mapping[str, Any],
    evidence_content_ids: Iterable[str],
    nonce: str,
) -> bool:
    """Recompute the fingerprint and compare it with the stored one."""
    recomputed = generate_fingerprint(
        contributor_id, created_at, polygon, evidence_content_ids, nonce
    )
    return hmac.compare_digest(recomputed.fingerprint, expected)


def evidence_content_ids(evidence: Sequence[EvidenceItem]) -> list[str]:
    """Content identifier per evidence item, falling back to its URL."""
    return [item.content_id or item.url for item in evidence]
