"""Pydantic request/response schemas for runtime API routes."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

ENQUEUE_EVENTS = frozenset({"taskCreated", "taskUpdated", "taskStatusUpdated"})


class WebhookHistoryItem(BaseModel):
    """One change record attached to a tracker webhook event."""

    model_config = ConfigDict(extra="ignore")

    field: str = ""
    before: Any = None
    after: Any = None


class WebhookEvent(BaseModel):
    """Tracker push notification for a single task."""

    model_config = ConfigDict(extra="ignore")

    event: str
    task_id: str = ""
    list_id: Optional[str] = None
    webhook_id: Optional[str] = None
    history_items: list[WebhookHistoryItem] = Field(default_factory=list)

    def resolved_list_id(self) -> str:
        """Return the queue id from ``list_id`` or, failing that, a ``parent_id`` change."""
        if self.list_id:
            return self.list_id
        for item in self.history_items:
            if item.field == "parent_id" and isinstance(item.after, str):
                return item.after
        return ""


class WorkerStatusResponse(BaseModel):
    """Read-only view of one worker slot."""

    worker_id: str
    source_queue_id: str
    src_path: str
    processing: bool
    task_id: str = ""
    task_name: str = ""
    external_ref: str = ""
    original_status: str = ""


class StatusResponse(BaseModel):
    workers: list[WorkerStatusResponse]
    queue_depth: int
    all_idle: bool
