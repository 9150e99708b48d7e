"""
Application Layer
=================

Use-case orchestration. This layer enforces caller roles and coordinates
domain services to fulfill claim lifecycle requests. No infrastructure
details leak here.
"""

from airclaim.application.claims_service import ClaimsService

__all__ = [
    "ClaimsService",
]
