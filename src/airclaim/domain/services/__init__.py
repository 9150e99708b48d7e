"""
Domain Services
===============

Claim lifecycle components: fingerprinting, sequencing, the repository,
the verification state machine, credit issuance and rate limiting.
"""
