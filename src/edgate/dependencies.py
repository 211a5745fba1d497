"""Shared FastAPI dependencies."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request

from edgate.engine import Engine


@dataclass(frozen=True)
class Actor:
    """Caller identity, already authenticated upstream of this service."""

    id: str
    role: str


def get_engine(request: Request) -> Engine:
    """Return the engine attached to the running app."""
    engine: Engine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        msg = "Engine not initialized. Is the app lifespan running?"
        raise RuntimeError(msg)
    return engine


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str = Header(default="learner"),
) -> Actor:
    """Read the actor forwarded by the gateway."""
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    return Actor(id=x_actor_id, role=x_actor_role)
