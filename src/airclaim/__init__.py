"""
AirClaim Core
=============

Claim integrity and verification lifecycle service for land-restoration
claims: tamper-evident fingerprints, a guarded verification state machine,
credit issuance from approved claims, and an append-only audit trail.

Layers:
- domain: Entities, errors and core services (fingerprint, state machine, ...)
- ports: Abstract store interfaces (ClaimStore, CreditStore, CounterStore)
- application: Caller-facing use-cases with role enforcement (ClaimsService)
- adapters: Concrete store implementations (Redis, in-memory)
- infrastructure: Config, DI wiring, logging, entrypoint
- api: FastAPI routes and request/response schemas
"""

__version__ = "0.1.0"
