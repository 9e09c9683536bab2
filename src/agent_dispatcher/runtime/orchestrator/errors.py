"""Exception hierarchy for worker lifecycle and queue operations."""

from __future__ import annotations


class DispatcherError(RuntimeError):
    """Base class for dispatcher runtime failures."""


class ClaimError(DispatcherError):
    """Claiming a task failed before the agent was launched.

    The worker's runtime state is left idle when this is raised.
    """


class InvocationError(DispatcherError):
    """Launching the agent failed after the tracker status was already changed.

    ``stuck_claim`` is ``True`` when the worker is still processing the task with no
    agent running; nothing recovers that slot until a hook or an operator clears it.
    """

    def __init__(self, message: str, *, stuck_claim: bool) -> None:
        super().__init__(message)
        self.stuck_claim = stuck_claim


class CompletionError(DispatcherError):
    """Marking a task completed failed.

    ``status_updated`` is ``True`` when the completed status was applied and only the
    move to the destination queue failed.
    """

    def __init__(self, message: str, *, status_updated: bool) -> None:
        super().__init__(message)
        self.status_updated = status_updated


class NoTaskInProgressError(DispatcherError):
    """A completion was requested for a worker that has no claimed task."""


class RollbackError(DispatcherError):
    """Reverting the tracker status failed; local state was cleared anyway."""


class QueueCancelledError(DispatcherError):
    """A blocking dequeue was cancelled before a task arrived."""


class QueueTimeoutError(DispatcherError):
    """A blocking dequeue timed out before a task arrived."""
