"""
Infrastructure Layer
====================

Cross-cutting concerns: configuration, dependency injection,
logging, application bootstrap, and entrypoint.
"""

from airclaim.infrastructure.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
