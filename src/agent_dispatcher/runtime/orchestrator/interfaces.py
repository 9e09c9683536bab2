"""Capability contracts for the tracker, agent, formatter and notifier collaborators."""

from __future__ import annotations

from typing import Optional, Protocol

from ..domain.models import InvokeResult, TrackerTask


class TaskTracker(Protocol):
    """External task tracker used to read and transition work items."""

    def get_task(self, task_id: str) -> Optional[TrackerTask]:
        """Fetch one task by id, or ``None`` when the tracker has no such task."""
        ...

    def get_tasks(self, queue_id: str, *, order_by: str = "created", reverse: bool = False) -> list[TrackerTask]:
        """List tasks in a queue.

        Args:
            queue_id (str): Tracker list/queue identifier.
            order_by (str): Field the tracker sorts by.
            reverse (bool): ``False`` returns the oldest task first.

        Returns:
            list[TrackerTask]: Tasks in the requested order.
        """
        ...

    def update_task_status(self, task_id: str, status: str) -> None:
        """Set a task's status. Raises on failure."""
        ...

    def move_task_to_queue(self, task_id: str, queue_id: str) -> None:
        """Move a task to another queue. Raises on failure."""
        ...


class AgentInvoker(Protocol):
    """Launches the external coding agent without waiting for it to finish."""

    def invoke_plan(self, work_dir: str, prompt: str, worker_id: str) -> InvokeResult:
        """Start the agent in ``work_dir`` with ``prompt``.

        Args:
            work_dir (str): Directory the agent runs in; hooks report it back as ``cwd``.
            prompt (str): Prompt text handed to the agent.
            worker_id (str): Slot identifier used to label the agent session.

        Returns:
            InvokeResult: Launch receipt.
        """
        ...


class PromptFormatter(Protocol):
    """Turns a tracker task into prompt text."""

    def format(self, task: TrackerTask) -> str:
        ...


class Notifier(Protocol):
    """Chat notifier used by the surrounding application."""

    def post_message(self, channel: str, text: str) -> None:
        ...
