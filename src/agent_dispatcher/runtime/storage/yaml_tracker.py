"""YAML-backed task tracker for local operation."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional

import yaml

from ...io_utils import FileLock, atomic_write_yaml
from ..domain.models import TrackerTask, now_iso

SCHEMA_VERSION = 1

_ORDER_FIELDS = {"created": "created_at", "name": "name", "status": "status", "id": "id"}


class YamlTaskTracker:
    """Task tracker persisted as a single YAML document.

    The document has the shape ``{version: 1, tasks: [...]}``. Every read and
    write holds a thread lock plus a cross-process file lock, and writes
    replace the file atomically, so an external editor or a second process can
    add tasks while the dispatcher runs.
    """

    def __init__(self, path: Path, lock_path: Optional[Path] = None) -> None:
        """Initialize the YamlTaskTracker.

        Args:
            path (Path): YAML file holding the task collection.
            lock_path (Optional[Path]): Lock file; defaults to ``<path>.lock``.
        """
        self._path = Path(path)
        self._lock = FileLock(lock_path or self._path.with_suffix(self._path.suffix + ".lock"))
        self._thread_lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> list[TrackerTask]:
        if not self._path.exists():
            return []
        raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            return []
        items = raw.get("tasks", [])
        if not isinstance(items, list):
            return []
        return [TrackerTask.from_dict(item) for item in items if isinstance(item, dict)]

    def _save(self, tasks: list[TrackerTask]) -> None:
        payload: dict[str, Any] = {"version": SCHEMA_VERSION, "tasks": [task.to_dict() for task in tasks]}
        atomic_write_yaml(self._path, payload)

    def _mutate(self, task_id: str, **changes: str) -> TrackerTask:
        with self._thread_lock:
            with self._lock:
                tasks = self._load()
                for task in tasks:
                    if task.id == task_id:
                        for key, value in changes.items():
                            setattr(task, key, value)
                        self._save(tasks)
                        return task
        raise KeyError(f"task not found: {task_id}")

    def list(self) -> list[TrackerTask]:
        with self._thread_lock:
            with self._lock:
                return self._load()

    def add_task(self, task: TrackerTask) -> TrackerTask:
        """Insert ``task``, replacing any stored task with the same id."""
        with self._thread_lock:
            with self._lock:
                tasks = [existing for existing in self._load() if existing.id != task.id]
                task.created_at = task.created_at or now_iso()
                tasks.append(task)
                self._save(tasks)
        return task

    def get_task(self, task_id: str) -> Optional[TrackerTask]:
        for task in self.list():
            if task.id == task_id:
                return task
        return None

    def get_tasks(self, queue_id: str, *, order_by: str = "created", reverse: bool = False) -> list[TrackerTask]:
        """List the tasks of one queue.

        Args:
            queue_id (str): Queue to list.
            order_by (str): One of ``created``, ``name``, ``status`` or ``id``.
            reverse (bool): Newest-first when ordering by creation time.

        Returns:
            list[TrackerTask]: Matching tasks in the requested order.

        Raises:
            ValueError: If ``order_by`` is not supported.
        """
        field_name = _ORDER_FIELDS.get(order_by)
        if field_name is None:
            raise ValueError(f"unsupported order_by: {order_by}")
        tasks = [task for task in self.list() if task.queue_id == queue_id]
        tasks.sort(key=lambda task: str(getattr(task, field_name)), reverse=reverse)
        return tasks

    def update_task_status(self, task_id: str, status: str) -> None:
        self._mutate(task_id, status=status)

    def move_task_to_queue(self, task_id: str, queue_id: str) -> None:
        self._mutate(task_id, queue_id=queue_id)
