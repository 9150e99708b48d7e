"""
FastAPI Application Factory
===========================

Creates and configures the FastAPI application with routers, middleware and
domain error handlers.
"""

from __future__ import annotations

import logging
import secrets

import yaml
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse, Response
from fastapi.security import APIKeyHeader

from airclaim.api.routes import claims, credits, health
from airclaim.domain.errors import (
    AirClaimError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    StorageError,
    ValidationError,
)
from airclaim.infrastructure.config import get_settings
from airclaim.infrastructure.dependencies import lifespan_manager

logger = logging.getLogger(__name__)

# API Key header
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

ERROR_STATUS: dict[type[AirClaimError], int] = {
    ValidationError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    RateLimitError: 429,
    StorageError: 503,
}


async def verify_api_key(api_key: str | None = Depends(api_key_header)):
    """Verify API key if authentication is enabled."""
    settings = get_settings()

    # If no API key configured, skip auth
    if not settings.api.api_key:
        return True

    if not api_key or not secrets.compare_digest(api_key, settings.api.api_key):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "X-API-Key"},
        )
    return True


def status_for(error: AirClaimError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return 500


async def handle_domain_error(request: Request, exc: AirClaimError) -> ORJSONResponse:
    """Map domain errors to status codes with a ``{error, detail, ...}`` body."""
    status_code = status_for(exc)
    if isinstance(exc, StorageError):
        logger.exception(
            f"Storage failure on {request.method} {request.url.path}: {exc.message}",
            exc_info=exc,
            extra={"context": exc.context},
        )
    else:
        logger.info(
            f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}"
        )
    headers = {"Retry-After": "86400"} if isinstance(exc, RateLimitError) else None
    return ORJSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


def create_app(*, enable_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        enable_lifespan: Build and connect the DI container on startup. Tests
            disable it and attach ``app.state.container`` themselves.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api.title,
        version=settings.api.version,
        description=(
            "Land-restoration claim lifecycle API: tamper-evident claim "
            "fingerprints, verifier decisions, credit issuance and an "
            "append-only audit trail."
        ),
        debug=settings.api.debug,
        lifespan=lifespan_manager if enable_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AirClaimError, handle_domain_error)  # type: ignore[arg-type]

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(
        claims.router,
        prefix="/api/v1",
        tags=["Claims"],
        dependencies=[Depends(verify_api_key)],
    )
    app.include_router(
        credits.router,
        prefix="/api/v1",
        tags=["Credits"],
        dependencies=[Depends(verify_api_key)],
    )

    @app.get("/openapi.yaml", include_in_schema=False)
    def openapi_yaml() -> Response:
        schema = app.openapi()
        content = yaml.safe_dump(schema, sort_keys=False, allow_unicode=True)
        return Response(content=content, media_type="application/yaml")

    return app
