"""
Application Entrypoint
======================

CLI entrypoint for running the API server.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
import uvloop


def main() -> None:
    """Run the API server using uvicorn."""
    uvloop.install()

    from airclaim.infrastructure.config import get_settings
    from airclaim.infrastructure.logging import configure_logging

    settings = get_settings()
    configure_logging(settings.log_level)

    logger = logging.getLogger(__name__)
    logger.info(f"Starting {settings.api.title} v{settings.api.version}")
    logger.info(f"Environment: {settings.environment}, storage: {settings.storage.backend}")

    if settings.storage.backend == "memory" and settings.api.workers > 1:
        logger.warning("In-memory storage is per process; running with a single worker")

    uvicorn.run(
        "airclaim.api.app:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        workers=1 if settings.storage.backend == "memory" else settings.api.workers,
        reload=settings.api.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    sys.exit(main() or 0)
