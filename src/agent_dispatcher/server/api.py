"""FastAPI app wiring for the dispatcher runtime."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from .. import __version__
from ..runtime.api import create_router
from ..runtime.container import Container

logger = logging.getLogger(__name__)


def create_app(container: Container, *, start_manager: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        container (Container): Runtime collaborators shared by every route.
        start_manager (bool): Whether the lifespan starts the worker loops. Tests
            pass ``False`` to drive the manager by hand.

    Returns:
        FastAPI: Application serving hook, webhook, health and status routes, with
        the container stored on ``app.state``.
    """
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_manager:
            container.manager.start()
        try:
            yield
        finally:
            if start_manager:
                await run_in_threadpool(container.manager.stop, timeout=10.0)

    app = FastAPI(
        title="Agent Dispatcher",
        description="Worker slots that hand tracker tasks to detached coding agents",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.container = container
    app.include_router(create_router(container))

    @app.get("/health")
    async def health() -> dict[str, object]:
        """Expose liveness status for process-level health checks."""
        return {"status": "ok", "version": __version__}

    return app
