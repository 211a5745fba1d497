"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from edgate.access.router import learners_router
from edgate.access.router import router as access_router
from edgate.config import get_settings
from edgate.content.router import router as content_router
from edgate.engine import Engine, build_engine_from_settings
from edgate.feedback.router import router as feedback_router
from edgate.health.router import router as health_router
from edgate.middleware import setup_middleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the engine from settings unless one was injected."""
    owned = app.state.engine is None
    if owned:
        app.state.engine = await build_engine_from_settings(get_settings())

    yield

    if owned:
        await app.state.engine.aclose()
        app.state.engine = None


def create_app(engine: Engine | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="edgate",
        description="Educational content lifecycle and access-control API",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.engine = engine

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(content_router)
    app.include_router(access_router)
    app.include_router(feedback_router)
    app.include_router(learners_router)

    return app


app = create_app()
