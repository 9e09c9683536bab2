"""HTTP routes for hooks, webhook ingestion and worker status."""

from __future__ import annotations

from fastapi import APIRouter

from ..container import Container
from .routes_hooks import register_hook_routes
from .routes_status import register_status_routes
from .routes_webhook import register_webhook_routes


def create_router(container: Container) -> APIRouter:
    """Build the runtime API router for ``container``."""
    router = APIRouter()
    register_hook_routes(router, container.hook_router)
    register_webhook_routes(router, container.manager, secret=container.config.webhook_secret)
    register_status_routes(router, container.manager)
    return router


__all__ = ["create_router"]
