"""Domain model dataclasses and normalization helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def now_iso() -> str:
    """Get the current UTC timestamp formatted as ISO-8601 text."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TrackerTask:
    """A work item as reported by the external task tracker."""
    id: str = ""
    name: str = ""
    description: str = ""
    status: str = ""
    url: str = ""
    queue_id: str = ""
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the task to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackerTask":
        """Deserialize a task, coercing every field to text."""
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            status=str(data.get("status") or ""),
            url=str(data.get("url") or ""),
            queue_id=str(data.get("queue_id") or ""),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass(frozen=True)
class QueuedTask:
    """A task id waiting in the in-memory ingestion queue."""
    task_id: str
    source_queue_id: str
    enqueued_at: str = field(default_factory=now_iso)


@dataclass(frozen=True)
class InvokeResult:
    """Launch receipt returned by an agent invoker."""
    work_dir: str
    prompt: str
    worker_id: str
    started_at: str = field(default_factory=now_iso)
    pid: Optional[int] = None


@dataclass(frozen=True)
class WorkerSnapshot:
    """Point-in-time copy of one worker slot's configuration and runtime state.

    Attributes:
        worker_id: Slot identifier, for example ``"AI_01"``.
        source_queue_id: Tracker queue the slot serves.
        src_path: Working directory the slot's agent runs in.
        processing: Whether a task is currently claimed.
        task_id: Claimed task id, empty when idle.
        task_name: Claimed task title, empty when idle.
        external_ref: Cross-referenced issue key found in the task text.
        original_status: Tracker status captured before the claim.
    """

    worker_id: str
    source_queue_id: str
    src_path: str
    processing: bool = False
    task_id: str = ""
    task_name: str = ""
    external_ref: str = ""
    original_status: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize the snapshot to a plain dictionary."""
        return asdict(self)
