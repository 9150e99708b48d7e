"""
Domain Errors
=============

Error taxonomy for the claim lifecycle. Every error carries a human-readable
message plus a ``context`` dict with the details a caller needs to correct the
request (field name, current status, limit value). Storage details never go
into ``context``.
"""

from __future__ import annotations

from typing import Any


class AirClaimError(Exception):
    """Base class for all expected claim-lifecycle errors."""

    code: str = "error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def to_dict(self) -> dict[str, Any]:
        """Serializable form used by the API layer."""
        return {"error": self.code, "detail": self.message, **self.context}


class ValidationError(AirClaimError):
    """Malformed input: missing fields, degenerate polygon, non-positive amount."""

    code = "validation_error"


class AuthorizationError(AirClaimError):
    """Wrong role, or a non-owner attempting a contributor-only mutation."""

    code = "authorization_error"


class NotFoundError(AirClaimError):
    """Unknown claim or credit reference."""

    code = "not_found"


class ConflictError(AirClaimError):
    """Claim already decided, not pending, or a duplicate operation."""

    code = "conflict"


class RateLimitError(AirClaimError):
    """Daily submission cap reached."""

    code = "rate_limited"


class StorageError(AirClaimError):
    """Underlying persistence failure. Surfaced to callers as an opaque failure."""

    code = "storage_error"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": "Storage temporarily unavailable"}
