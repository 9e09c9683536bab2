"""Worker status route registration for the runtime API."""

from __future__ import annotations

from fastapi import APIRouter

from ..orchestrator.manager import Manager
from .schemas import StatusResponse, WorkerStatusResponse


def register_status_routes(router: APIRouter, manager: Manager) -> None:
    """Register read-only worker status routes."""

    @router.get("/status", response_model=StatusResponse)
    async def status() -> StatusResponse:
        """Return every worker slot's snapshot plus the ingestion queue depth."""
        snapshots = manager.snapshots()
        return StatusResponse(
            workers=[WorkerStatusResponse(**snapshot.to_dict()) for snapshot in snapshots],
            queue_depth=len(manager.queue),
            all_idle=not any(snapshot.processing for snapshot in snapshots),
        )
