"""
GeoSync — FastAPI Application
=============================
Map feature store with PostGIS spatial indexing, queried by viewport.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from geosync.config import get_settings
from geosync.routers import features

logger = logging.getLogger(__name__)
settings = get_settings()


# ── Lifespan (startup / shutdown) ─────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Verify DB connectivity and PostGIS availability.
        - Create the features table and its GIST index.
    Shutdown:
        - Dispose engine pool.
    """
    logger.info("GeoSync starting up...")

    from geosync.models import database

    await database.check_postgis()
    # Idempotent: CREATE TABLE / INDEX IF NOT EXISTS.
    await database.init_models()
    logger.info("Feature table and GIST index ready.")

    yield

    await database.engine.dispose()
    logger.info("GeoSync shut down.")


# ── App factory ───────────────────────────────────────────────────
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Geo-tagged map features with bounding-box and radius "
            "queries backed by PostGIS."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Permissive CORS: the map page is served from another origin.
    # Preflight OPTIONS requests are answered by the middleware.
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(features.router)

    @app.get("/healthz", response_class=PlainTextResponse)
    async def healthz():
        return "ok"

    return app


# ── Module-level app instance (for `uvicorn geosync.main:app`) ───
app = create_app()  # pragma: no cover
