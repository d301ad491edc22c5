"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.deps import Services, build_services
from .api.routes import distributions, health, session, sync, zones
from .config import settings

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(services: Services | None = None) -> FastAPI:
    """Build the app. Without injected services they are built from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()
        logger.info(f"{settings.app_name} started (remote backend: {settings.remote_backend})")
        yield
        await app.state.services.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.services = services
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(session.router, prefix=settings.api_prefix)
    app.include_router(distributions.router, prefix=settings.api_prefix)
    app.include_router(zones.router, prefix=settings.api_prefix)
    app.include_router(sync.router, prefix=settings.api_prefix)
    return app


configure_logging()
app = create_app()
