from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bones import __version__
from bones.api.routes import health, project_types, projects
from bones.config import Settings, get_settings
from bones.logging import configure_logging
from bones.runtime import Runtime, build_runtime


def create_app(settings: Settings | None = None, runtime: Runtime | None = None) -> FastAPI:
    cfg = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(cfg.log_level, log_format=cfg.log_format)
        yield
        await app.state.runtime.launcher.shutdown()

    app = FastAPI(
        title="Bones API",
        version=__version__,
        docs_url=f"{cfg.api_prefix}/docs",
        openapi_url=f"{cfg.api_prefix}/openapi.json",
        lifespan=lifespan,
    )
    app.state.runtime = runtime or build_runtime(cfg)

    if cfg.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in cfg.cors_origins],
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    app.include_router(projects.router, prefix=cfg.api_prefix, tags=["projects"])
    app.include_router(project_types.router, prefix=cfg.api_prefix, tags=["types"])
    app.include_router(health.router, tags=["health"])
    return app
