"""FastAPI dashboard application factory with JSON routes and WebSocket hub."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from monitor.dashboard.routes import actions, api, ws
from monitor.dashboard.routes.ws import hub


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application with routes and the WebSocket hub.
    """
    app = FastAPI(
        title="Market Monitor Dashboard",
        lifespan=lifespan,
    )

    # Store WebSocket hub on app state for access from route handlers
    app.state.hub = hub

    app.include_router(api.router, prefix="/api")
    app.include_router(actions.router, prefix="/actions")
    app.include_router(ws.router)

    return app
