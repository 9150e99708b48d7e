"""
Ports Layer (Hexagonal Architecture)
====================================

Abstract interfaces defining the contracts between the claim lifecycle core
and persistence. These are the "ports" that adapters plug into.

Primary Ports (driving):
- API endpoints drive the application

Secondary Ports (driven):
- ClaimStore: claim documents, listing, conditional updates
- CreditStore: issued credits
- CounterStore: atomic counters (sequence, rate-limit windows)
"""

from airclaim.ports.claim_store import ClaimMutation, ClaimStore
from airclaim.ports.counter_store import CounterStore
from airclaim.ports.credit_store import CreditStore

__all__ = [
    "ClaimMutation",
    "ClaimStore",
    "CounterStore",
    "CreditStore",
]
