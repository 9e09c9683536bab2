"""Domain models for dispatcher runtime state."""

from .models import InvokeResult, QueuedTask, TrackerTask, WorkerSnapshot, now_iso

__all__ = [
    "TrackerTask",
    "QueuedTask",
    "InvokeResult",
    "WorkerSnapshot",
    "now_iso",
]
