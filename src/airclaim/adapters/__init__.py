"""
Adapters Layer
==============

Concrete implementations of the ports for specific technologies.

Inbound Adapters:
- FastAPI routes (in api/ layer)

Outbound Adapters:
- Redis claim/credit/counter stores
- In-memory stores (development and tests)
"""
