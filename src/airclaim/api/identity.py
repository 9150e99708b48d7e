"""
Caller Identity
===============

Reads the upstream-authenticated actor from request headers.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, HTTPException, status

from airclaim.domain.entities import Actor, ActorRole


async def get_actor(
    actor_id: Annotated[str | None, Header(alias="X-Actor-Id")] = None,
    actor_role: Annotated[str | None, Header(alias="X-Actor-Role")] = None,
    actor_name: Annotated[str, Header(alias="X-Actor-Name")] = "",
) -> Actor:
    """Dependency: the authenticated actor, or 401 when identity is missing."""
    if not actor_id or not actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing actor identity headers",
        )
    try:
        role = ActorRole(actor_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown actor role: {actor_role}",
        ) from None
    return Actor(actor_id=actor_id, actor_name=actor_name, role=role)
