from __future__ import annotations

from typing import Callable, Optional

import pytest

from agent_dispatcher.config import DispatcherConfig, WorkerConfig
from agent_dispatcher.runtime.domain.models import InvokeResult, TrackerTask
from agent_dispatcher.runtime.orchestrator.manager import Manager
from agent_dispatcher.runtime.orchestrator.worker import Worker


class FakeTracker:
    """In-memory tracker that records every call and can be told to fail."""

    def __init__(self, tasks: Optional[list[TrackerTask]] = None) -> None:
        self.tasks: dict[str, TrackerTask] = {task.id: task for task in tasks or []}
        self.calls: list[tuple[str, ...]] = []
        self.fail_get = False
        self.fail_list = False
        self.fail_move = False
        self.fail_statuses: set[str] = set()

    def get_task(self, task_id: str) -> Optional[TrackerTask]:
        self.calls.append(("get_task", task_id))
        if self.fail_get:
            raise RuntimeError("tracker unavailable")
        return self.tasks.get(task_id)

    def get_tasks(self, queue_id: str, *, order_by: str = "created", reverse: bool = False) -> list[TrackerTask]:
        self.calls.append(("get_tasks", queue_id))
        if self.fail_list:
            raise RuntimeError("tracker unavailable")
        tasks = [task for task in self.tasks.values() if task.queue_id == queue_id]
        return sorted(tasks, key=lambda task: task.created_at, reverse=reverse)

    def update_task_status(self, task_id: str, status: str) -> None:
        self.calls.append(("update_task_status", task_id, status))
        if status in self.fail_statuses:
            raise RuntimeError(f"cannot set status {status}")
        self.tasks[task_id].status = status

    def move_task_to_queue(self, task_id: str, queue_id: str) -> None:
        self.calls.append(("move_task_to_queue", task_id, queue_id))
        if self.fail_move:
            raise RuntimeError("move rejected")
        self.tasks[task_id].queue_id = queue_id

    def mutating_calls(self) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] in {"update_task_status", "move_task_to_queue"}]


class FakeInvoker:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self.fail = False

    def invoke_plan(self, work_dir: str, prompt: str, worker_id: str) -> InvokeResult:
        self.calls.append((work_dir, prompt, worker_id))
        if self.fail:
            raise OSError("terminal unavailable")
        return InvokeResult(work_dir=work_dir, prompt=prompt, worker_id=worker_id, pid=4242)


def make_task(task_id: str, *, queue_id: str = "list-1", status: str = "Open", created_at: str = "2024-01-01T00:00:00+00:00", **kwargs: str) -> TrackerTask:
    return TrackerTask(id=task_id, name=kwargs.pop("name", f"Task {task_id}"), queue_id=queue_id, status=status, created_at=created_at, **kwargs)


def make_config(*workers: WorkerConfig, **overrides: object) -> DispatcherConfig:
    values: dict[str, object] = {
        "workers": workers or (WorkerConfig(id="AI_01", source_queue_id="list-1", src_path="/src/alpha"),),
        "status_working": "Working",
        "status_completed": "Completed",
        "poll_interval_seconds": 0.01,
    }
    values.update(overrides)
    return DispatcherConfig(**values)  # type: ignore[arg-type]


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker([make_task("T1")])


@pytest.fixture
def invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def task_factory() -> Callable[..., TrackerTask]:
    return make_task


@pytest.fixture
def tracker_factory() -> Callable[..., FakeTracker]:
    return FakeTracker


@pytest.fixture
def config_factory() -> Callable[..., DispatcherConfig]:
    return make_config


@pytest.fixture
def worker_factory(tracker: FakeTracker, invoker: FakeInvoker) -> Callable[..., Worker]:
    def _make(config: Optional[WorkerConfig] = None, **options: object) -> Worker:
        options.setdefault("status_working", "Working")
        options.setdefault("status_completed", "Completed")
        worker_config = config or WorkerConfig(id="AI_01", source_queue_id="list-1", src_path="/src/alpha")
        return Worker(worker_config, tracker, invoker, **options)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def manager_factory(tracker: FakeTracker, invoker: FakeInvoker) -> Callable[..., Manager]:
    def _make(config: Optional[DispatcherConfig] = None, **options: object) -> Manager:
        return Manager(config or make_config(), tracker, invoker, **options)  # type: ignore[arg-type]

    return _make
