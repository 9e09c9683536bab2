"""In-memory FIFO queue decoupling pushed task events from worker dispatch."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Optional

from ..domain.models import QueuedTask
from .errors import QueueCancelledError, QueueTimeoutError


class TaskQueue:
    """Unbounded thread-safe FIFO of task ids awaiting a worker.

    A single lock guards the underlying deque, so items come out in strict
    insertion order no matter how many producers and consumers run. The
    ``_has_data`` event only wakes blocked consumers; it is coalesced and
    consumers always re-check the deque under the lock. Contents are not
    persisted and are lost when the process exits.
    """

    # Granularity at which a blocked dequeue notices cancellation.
    _CANCEL_POLL_SECONDS = 0.05

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: deque[QueuedTask] = deque()
        self._has_data = threading.Event()

    def enqueue(self, task_id: str, source_queue_id: str) -> QueuedTask:
        """Append a task and wake one waiting consumer.

        Args:
            task_id (str): Tracker task identifier.
            source_queue_id (str): Queue the task belongs to.

        Returns:
            QueuedTask: The queued entry.
        """
        item = QueuedTask(task_id=task_id, source_queue_id=source_queue_id)
        with self._lock:
            self._tasks.append(item)
            self._has_data.set()
        return item

    def try_dequeue(self) -> Optional[QueuedTask]:
        """Pop the oldest task without blocking, or return ``None`` when empty."""
        with self._lock:
            if not self._tasks:
                self._has_data.clear()
                return None
            item = self._tasks.popleft()
            if not self._tasks:
                self._has_data.clear()
            return item

    def dequeue(self, cancel: Optional[threading.Event] = None, timeout: Optional[float] = None) -> QueuedTask:
        """Pop the oldest task, blocking until one arrives.

        Args:
            cancel (Optional[threading.Event]): Cancellation signal; once set, an empty
                queue raises instead of waiting.
            timeout (Optional[float]): Maximum seconds to wait, ``None`` waits forever.

        Returns:
            QueuedTask: The oldest queued entry.

        Raises:
            QueueCancelledError: If ``cancel`` is set before a task arrives.
            QueueTimeoutError: If ``timeout`` elapses before a task arrives.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            item = self.try_dequeue()
            if item is not None:
                return item
            if cancel is not None and cancel.is_set():
                raise QueueCancelledError("dequeue cancelled while waiting for a task")

            wait: Optional[float] = self._CANCEL_POLL_SECONDS if cancel is not None else None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise QueueTimeoutError(f"no task arrived within {timeout}s")
                wait = remaining if wait is None else min(wait, remaining)
            self._has_data.wait(wait)

    def clear(self) -> None:
        with self._lock:
            self._tasks.clear()
            self._has_data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
