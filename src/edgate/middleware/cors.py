"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edgate.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the authoring and learner frontends to call the API."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "X-Actor-Id", "X-Actor-Role", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )
