"""FastAPI status application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from deltasync.dashboard.routes import api


def create_status_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI status application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        FastAPI application with the JSON status routes under /api.
    """
    app = FastAPI(
        title="Delta Sync Trader",
        lifespan=lifespan,
    )

    # Wired by main.py lifespan (or directly by tests)
    app.state.orchestrator = None

    app.include_router(api.router, prefix="/api")

    return app
