"""Middleware registration."""

from fastapi import FastAPI

from edgate.config import Settings
from edgate.middleware.cors import setup_cors
from edgate.middleware.error_handler import setup_error_handlers
from edgate.middleware.logging import setup_logging
from edgate.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs them last-added-outermost, so CORS wraps everything."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
