"""Own the fixed set of worker slots, run their polling loops and route hook signals."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ...config import DispatcherConfig
from ..domain.models import QueuedTask, WorkerSnapshot
from .errors import ClaimError, DispatcherError, InvocationError, NoTaskInProgressError, QueueCancelledError
from .interfaces import AgentInvoker, PromptFormatter, TaskTracker
from .queue import TaskQueue
from .worker import Worker

logger = logging.getLogger(__name__)

SESSION_END_CANCEL_REASON = "prompt_input_exit"


def _normalize_path(path: str) -> str:
    return (path or "").rstrip("/\\") or path or ""


class Manager:
    """Coordinate worker slots, their polling loops and the push-ingestion queue.

    The worker tuple is built once and never changes, so lookups need no lock
    beyond the per-worker locks that guard runtime state. A single stop event
    ends every loop the manager started.
    """

    def __init__(
        self,
        config: DispatcherConfig,
        tracker: TaskTracker,
        invoker: AgentInvoker,
        *,
        formatter: Optional[PromptFormatter] = None,
        queue: Optional[TaskQueue] = None,
    ) -> None:
        """Initialize the Manager.

        Args:
            config (DispatcherConfig): Resolved dispatcher configuration.
            tracker (TaskTracker): Tracker shared by every worker.
            invoker (AgentInvoker): Agent launcher shared by every worker.
            formatter (Optional[PromptFormatter]): Prompt builder shared by every worker.
            queue (Optional[TaskQueue]): Queue fed by webhook ingestion.
        """
        self.config = config
        self.queue = queue if queue is not None else TaskQueue()
        self._workers: tuple[Worker, ...] = tuple(
            Worker(
                worker_config,
                tracker,
                invoker,
                status_working=config.status_working,
                status_completed=config.status_completed,
                completed_queue_id=config.completed_queue_id,
                formatter=formatter,
                terminal_statuses=config.terminal_statuses,
                invocation_failure_policy=config.invocation_failure_policy,
            )
            for worker_config in config.workers
        )
        self._source_queue_ids = frozenset(worker.config.source_queue_id for worker in self._workers)
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    # -- lookup --------------------------------------------------------------

    @property
    def workers(self) -> tuple[Worker, ...]:
        return self._workers

    def worker_by_source_queue(self, queue_id: str) -> Optional[Worker]:
        for worker in self._workers:
            if worker.config.source_queue_id == queue_id:
                return worker
        return None

    def worker_by_src_path(self, src_path: str) -> Optional[Worker]:
        """Resolve the worker whose working directory equals ``src_path``.

        When several workers share the path, the one currently processing wins so
        a completion signal reaches the slot that is actually mid-task; otherwise
        the first configured match is returned.
        """
        wanted = _normalize_path(src_path)
        first_match: Optional[Worker] = None
        for worker in self._workers:
            if _normalize_path(worker.config.src_path) != wanted:
                continue
            if worker.is_processing():
                return worker
            if first_match is None:
                first_match = worker
        return first_match

    def is_source_queue(self, queue_id: str) -> bool:
        return queue_id in self._source_queue_ids

    def all_idle(self) -> bool:
        return not any(worker.is_processing() for worker in self._workers)

    def snapshots(self) -> list[WorkerSnapshot]:
        return [worker.snapshot() for worker in self._workers]

    # -- loops ---------------------------------------------------------------

    def start(self) -> None:
        """Start one polling thread per worker plus the queue dispatch thread."""
        with self._lock:
            if any(thread.is_alive() for thread in self._threads):
                return
            self._stop.clear()
            self._threads = [
                threading.Thread(target=self.poll_loop, args=(worker,), daemon=True, name=f"poll-{worker.id}")
                for worker in self._workers
            ]
            self._threads.append(threading.Thread(target=self.dispatch_loop, daemon=True, name="queue-dispatch"))
            for thread in self._threads:
                thread.start()
        logger.info("Manager started %d worker loop(s)", len(self._workers))

    def stop(self, *, timeout: float = 10.0) -> None:
        """Signal every loop to stop and wait up to ``timeout`` seconds for each.

        External calls already in flight are not interrupted; only new
        iterations are suppressed.
        """
        with self._lock:
            self._stop.set()
            threads = list(self._threads)
            self._threads = []
        for thread in threads:
            if thread.is_alive():
                thread.join(timeout=max(timeout, 0.0))
        logger.info("Manager stopped")

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run_once(self, worker: Worker) -> bool:
        """Run one polling iteration for ``worker``.

        Returns:
            bool: ``True`` when a task was claimed (even if the agent launch failed).
        """
        if worker.is_processing():
            return False
        try:
            pending = worker.pending_tasks()
        except Exception:
            logger.warning("[%s] Fetching pending tasks failed; retrying next tick", worker.id, exc_info=True)
            return False
        if not pending:
            return False

        task = pending[0]
        logger.info("[%s] Starting task %s", worker.id, task.id)
        try:
            worker.process_task(task.id)
        except InvocationError as exc:
            logger.error("%s (stuck_claim=%s)", exc, exc.stuck_claim)
            return True
        except ClaimError as exc:
            logger.warning("%s", exc)
            return False
        return True

    def poll_loop(self, worker: Worker) -> None:
        """Poll ``worker``'s queue until the manager stops.

        The wait between iterations is fixed regardless of outcome, which bounds
        the tracker call rate; fetch errors are retried on the next tick.
        """
        logger.info("[%s] Worker loop started (queue: %s)", worker.id, worker.config.source_queue_id)
        while not self._stop.is_set():
            self.run_once(worker)
            self._stop.wait(self.config.poll_interval_seconds)
        logger.info("[%s] Worker loop stopped", worker.id)

    # -- push ingestion ------------------------------------------------------

    def enqueue_task(self, task_id: str, source_queue_id: str) -> bool:
        """Queue a pushed task for dispatch when it belongs to a configured source queue."""
        if not self.is_source_queue(source_queue_id):
            logger.debug("Ignoring task %s from unmanaged queue %s", task_id, source_queue_id)
            return False
        self.queue.enqueue(task_id, source_queue_id)
        logger.info("Queued task %s (queue: %s)", task_id, source_queue_id)
        return True

    def dispatch(self, item: QueuedTask) -> bool:
        """Hand one queued task to its worker if that worker is idle.

        Busy workers drop the item; their polling loop will find the task later.
        """
        worker = self.worker_by_source_queue(item.source_queue_id)
        if worker is None:
            logger.warning("No worker for queue %s; dropping task %s", item.source_queue_id, item.task_id)
            return False
        if worker.is_processing():
            logger.info("[%s] Busy with %s; dropping queued task %s", worker.id, worker.current_task_id(), item.task_id)
            return False
        try:
            worker.process_task(item.task_id)
        except DispatcherError as exc:
            logger.warning("%s", exc)
            return False
        return True

    def dispatch_loop(self) -> None:
        while not self._stop.is_set():
            try:
                item = self.queue.dequeue(cancel=self._stop)
            except QueueCancelledError:
                break
            self.dispatch(item)

    # -- hook entry points ---------------------------------------------------

    def on_hook_received(self, cwd: str) -> None:
        """Complete the task of the worker running in ``cwd``.

        Unknown paths and idle workers are logged no-ops: stray and duplicate
        notifications are expected.

        Raises:
            CompletionError: If the tracker rejected the completion.
        """
        worker = self.worker_by_src_path(cwd)
        if worker is None:
            logger.info("[Manager] No worker for path %s", cwd)
            return
        logger.info("[%s] Completion hook received", worker.id)
        try:
            worker.complete_task()
        except NoTaskInProgressError:
            logger.info("[%s] Completion hook ignored; no task in progress", worker.id)

    def on_session_end(self, cwd: str, reason: str) -> bool:
        """Roll back the claimed task when the user cancelled the agent session.

        Only ``prompt_input_exit`` triggers a rollback; every other reason,
        including ``other``, is logged and left alone.

        Returns:
            bool: ``True`` when a rollback was performed.

        Raises:
            RollbackError: If the tracker rejected the revert (the worker is idle anyway).
        """
        worker = self.worker_by_src_path(cwd)
        if worker is None or not worker.is_processing():
            logger.info("[Manager] Session ended in %s (reason=%s); no claimed task", cwd, reason)
            return False
        if reason != SESSION_END_CANCEL_REASON:
            logger.info("[%s] Session ended (reason=%s); waiting for completion signal", worker.id, reason)
            return False
        logger.info("[%s] User cancelled task %s; rolling back", worker.id, worker.current_task_id())
        worker.rollback_status()
        return True
