"""
Main application module for the pipe viewer backend.

This file sets up the FastAPI application, configures CORS so the
browser viewer can make cross-origin requests, mounts the static
frontend files when they exist, and exposes a simple health check
endpoint.

Routers for the pipe, measurement and cross-section APIs are included
under the `/api` namespace.  When the ``PIPEVIEW_CATALOG`` environment
variable names a catalog file it is loaded at startup.
"""

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .api.routes_measurements import router as measurements_router
from .api.routes_pipes import router as pipes_router
from .api.routes_sections import router as sections_router
from .services.catalog import get_catalog, load_catalog_file

logger = logging.getLogger(__name__)


def load_startup_catalog() -> int:
    """Load the catalog named by ``PIPEVIEW_CATALOG``, if any.

    Returns:
        int: Number of pipes loaded (0 when no file is configured or
        the file cannot be read).
    """
    path = os.getenv("PIPEVIEW_CATALOG")
    if not path:
        return 0
    try:
        records = load_catalog_file(path)
    except (OSError, ValueError):
        logger.exception("Failed to load catalog from %s", path)
        return 0
    loaded = get_catalog().replace(records)
    logger.info("Loaded %d pipes from %s", loaded, path)
    return loaded


def create_app() -> FastAPI:
    """Factory to create and configure the FastAPI application.

    Returns:
        FastAPI: The configured FastAPI application instance.
    """
    app = FastAPI()

    @app.on_event("startup")  # type: ignore[misc]
    async def startup_event() -> None:
        load_startup_catalog()

    # Allow all origins by default.  In production you should restrict
    # this to the domains that are allowed to access your API.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(pipes_router, prefix="/api", tags=["pipes"])
    app.include_router(measurements_router, prefix="/api", tags=["measurements"])
    app.include_router(sections_router, prefix="/api", tags=["cross-sections"])

    # Serve the compiled viewer if it sits next to the backend.
    frontend_dir = Path(__file__).resolve().parents[2] / "frontend"
    if frontend_dir.exists():
        app.mount(
            "/",
            StaticFiles(directory=str(frontend_dir), html=True),
            name="frontend",
        )

    return app


# Uvicorn imports this when running `uvicorn pipeview.main:app` from
# within the backend directory.
app = create_app()
