"""Single worker slot: claims one task, launches the agent, completes or rolls back."""

from __future__ import annotations

import logging
import re
import threading
from typing import Iterable, Optional

from ...config import DEFAULT_TERMINAL_STATUSES, InvocationFailurePolicy, WorkerConfig
from ..domain.models import InvokeResult, TrackerTask, WorkerSnapshot
from .errors import ClaimError, CompletionError, InvocationError, NoTaskInProgressError, RollbackError
from .interfaces import AgentInvoker, PromptFormatter, TaskTracker

logger = logging.getLogger(__name__)

_EXTERNAL_REF_RE = re.compile(r"([A-Z]+-\d+)")


def extract_external_ref(text: str) -> str:
    """Return the first issue key such as ``ITSM-5168`` found in ``text``, or ``""``."""
    match = _EXTERNAL_REF_RE.search(text or "")
    return match.group(1) if match else ""


def fallback_prompt(task: TrackerTask) -> str:
    return f"# {task.name}\n\n{task.description}\n\nLink: {task.url}"


class Worker:
    """Own the lifecycle of at most one claimed task for a single slot.

    The worker is either idle or holding a claim. Runtime fields are guarded by
    ``_lock``; ``current_task_id`` is non-empty exactly while ``processing`` is
    set. Lifecycle calls (:meth:`process_task`, :meth:`complete_task`,
    :meth:`rollback_status`) are expected to be issued one at a time per worker,
    while the accessors are safe to call concurrently from any thread.
    """

    def __init__(
        self,
        config: WorkerConfig,
        tracker: TaskTracker,
        invoker: AgentInvoker,
        *,
        status_working: str,
        status_completed: str,
        completed_queue_id: Optional[str] = None,
        formatter: Optional[PromptFormatter] = None,
        terminal_statuses: Iterable[str] = DEFAULT_TERMINAL_STATUSES,
        invocation_failure_policy: InvocationFailurePolicy = "hold",
    ) -> None:
        """Initialize the Worker.

        Args:
            config (WorkerConfig): Static slot settings.
            tracker (TaskTracker): Tracker used to read and transition tasks.
            invoker (AgentInvoker): Launcher for the external agent.
            status_working (str): Status applied when a task is claimed.
            status_completed (str): Status applied when the agent reports completion.
            completed_queue_id (Optional[str]): Queue completed tasks are moved to.
            formatter (Optional[PromptFormatter]): Prompt builder; a plain Markdown
                prompt is used when absent or failing.
            terminal_statuses (Iterable[str]): Statuses never considered pending.
            invocation_failure_policy (InvocationFailurePolicy): What to do with a
                claim whose agent launch failed.
        """
        self.config = config
        self._tracker = tracker
        self._invoker = invoker
        self._formatter = formatter
        self._status_working = status_working
        self._status_completed = status_completed
        self._completed_queue_id = completed_queue_id
        self._terminal_statuses = frozenset(s.strip().lower() for s in terminal_statuses)
        self._invocation_failure_policy = invocation_failure_policy

        self._lock = threading.Lock()
        self._processing = False
        self._current_task_id = ""
        self._current_task_name = ""
        self._current_external_ref = ""
        self._original_status = ""

    @property
    def id(self) -> str:
        return self.config.id

    def set_formatter(self, formatter: Optional[PromptFormatter]) -> None:
        self._formatter = formatter

    # -- runtime state -------------------------------------------------------

    def _begin_claim(self, task_id: str, task_name: str, external_ref: str, original_status: str) -> bool:
        with self._lock:
            if self._processing:
                return False
            self._processing = True
            self._current_task_id = task_id
            self._current_task_name = task_name
            self._current_external_ref = external_ref
            self._original_status = original_status
            return True

    def _clear_processing(self) -> None:
        with self._lock:
            self._processing = False
            self._current_task_id = ""
            self._current_task_name = ""
            self._current_external_ref = ""
            self._original_status = ""

    def is_processing(self) -> bool:
        with self._lock:
            return self._processing

    def current_task_id(self) -> str:
        with self._lock:
            return self._current_task_id

    def current_task_name(self) -> str:
        with self._lock:
            return self._current_task_name

    def current_external_ref(self) -> str:
        with self._lock:
            return self._current_external_ref

    def original_status(self) -> str:
        with self._lock:
            return self._original_status

    def snapshot(self) -> WorkerSnapshot:
        """Copy config and runtime state under one lock acquisition."""
        with self._lock:
            return WorkerSnapshot(
                worker_id=self.config.id,
                source_queue_id=self.config.source_queue_id,
                src_path=self.config.src_path,
                processing=self._processing,
                task_id=self._current_task_id,
                task_name=self._current_task_name,
                external_ref=self._current_external_ref,
                original_status=self._original_status,
            )

    # -- lifecycle -----------------------------------------------------------

    def pending_tasks(self) -> list[TrackerTask]:
        """List tasks in this slot's queue that are not in a terminal status, oldest first."""
        tasks = self._tracker.get_tasks(self.config.source_queue_id, order_by="created", reverse=False)
        return [task for task in tasks if task.status.strip().lower() not in self._terminal_statuses]

    def process_task(self, task_id: str) -> InvokeResult:
        """Claim ``task_id``, move it to the working status and launch the agent.

        Args:
            task_id (str): Tracker task to claim.

        Returns:
            InvokeResult: Launch receipt from the invoker.

        Raises:
            ClaimError: If the worker is busy, or fetching the task or changing its
                status failed. The worker is left idle.
            InvocationError: If the agent could not be launched after the status
                change. Under the ``"hold"`` policy the claim is kept
                (``stuck_claim=True``); under ``"rollback"`` it is reverted first.
        """
        wid = self.config.id
        if self.is_processing():
            raise ClaimError(f"[{wid}] task {task_id}: worker is already processing {self.current_task_id()}")

        try:
            task = self._tracker.get_task(task_id)
        except Exception as exc:
            raise ClaimError(f"[{wid}] task {task_id}: fetching task failed: {exc}") from exc
        if task is None:
            raise ClaimError(f"[{wid}] task {task_id}: task not found")

        # Captured before any mutation so a cancellation can restore it.
        original_status = task.status
        if not self._begin_claim(task_id, task.name, extract_external_ref(task.description), original_status):
            raise ClaimError(f"[{wid}] task {task_id}: worker is already processing {self.current_task_id()}")

        try:
            self._tracker.update_task_status(task_id, self._status_working)
        except Exception as exc:
            self._clear_processing()
            raise ClaimError(f"[{wid}] task {task_id}: status change to {self._status_working!r} failed: {exc}") from exc
        logger.info("[%s] Claimed task %s (%s): %r -> %r", wid, task_id, task.name, original_status, self._status_working)

        prompt = self._build_prompt(task)
        try:
            result = self._invoker.invoke_plan(self.config.src_path, prompt, wid)
        except Exception as exc:
            if self._invocation_failure_policy == "rollback":
                logger.warning("[%s] Agent launch failed for task %s; rolling back claim", wid, task_id)
                try:
                    self.rollback_status()
                except RollbackError:
                    logger.exception("[%s] Rollback after failed launch of task %s failed", wid, task_id)
                raise InvocationError(f"[{wid}] task {task_id}: agent launch failed: {exc}", stuck_claim=False) from exc
            logger.error(
                "[%s] Agent launch failed for task %s after status moved to %r; claim is stuck until cleared",
                wid,
                task_id,
                self._status_working,
            )
            raise InvocationError(f"[{wid}] task {task_id}: agent launch failed: {exc}", stuck_claim=True) from exc

        logger.info("[%s] Agent launched for task %s in %s", wid, task_id, self.config.src_path)
        return result

    def _build_prompt(self, task: TrackerTask) -> str:
        if self._formatter is not None:
            try:
                text = self._formatter.format(task)
            except Exception:
                logger.warning("[%s] Prompt formatter failed for task %s; using plain prompt", self.config.id, task.id, exc_info=True)
            else:
                if text:
                    return text
        return fallback_prompt(task)

    def complete_task(self) -> None:
        """Mark the claimed task completed and return the worker to idle.

        When a destination queue is configured the task is also moved there. A
        failed move still raises, but the completed status has already been
        applied; the claim is kept so a repeated completion signal retries the move.

        Raises:
            NoTaskInProgressError: If the worker holds no claim. No tracker call is made.
            CompletionError: If the status change or the move failed.
        """
        wid = self.config.id
        task_id = self.current_task_id()
        if not task_id:
            raise NoTaskInProgressError(f"[{wid}] no task in progress")

        try:
            self._tracker.update_task_status(task_id, self._status_completed)
        except Exception as exc:
            raise CompletionError(
                f"[{wid}] task {task_id}: status change to {self._status_completed!r} failed: {exc}",
                status_updated=False,
            ) from exc

        if self._completed_queue_id:
            logger.info("[%s] Moving task %s to queue %s", wid, task_id, self._completed_queue_id)
            try:
                self._tracker.move_task_to_queue(task_id, self._completed_queue_id)
            except Exception as exc:
                raise CompletionError(
                    f"[{wid}] task {task_id}: move to queue {self._completed_queue_id} failed: {exc}",
                    status_updated=True,
                ) from exc
        else:
            logger.debug("[%s] No completed queue configured; leaving task %s in place", wid, task_id)

        self._clear_processing()
        logger.info("[%s] Task %s completed", wid, task_id)

    def rollback_status(self) -> None:
        """Restore the claimed task's original status and return the worker to idle.

        The runtime state is cleared whatever the tracker answers, so a failed
        remote call can leave a stale status but never a wedged slot.

        Raises:
            RollbackError: If the tracker rejected the revert (state already cleared).
        """
        wid = self.config.id
        with self._lock:
            task_id = self._current_task_id
            original_status = self._original_status

        if not task_id:
            return
        if not original_status:
            logger.warning("[%s] No original status recorded for task %s; clearing claim only", wid, task_id)
            self._clear_processing()
            return

        try:
            self._tracker.update_task_status(task_id, original_status)
        except Exception as exc:
            raise RollbackError(f"[{wid}] task {task_id}: reverting status to {original_status!r} failed: {exc}") from exc
        finally:
            self._clear_processing()
        logger.info("[%s] Task %s rolled back to %r", wid, task_id, original_status)
