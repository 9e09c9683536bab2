"""Worker slots, their manager and the push-ingestion queue."""

from .errors import (
    ClaimError,
    CompletionError,
    DispatcherError,
    InvocationError,
    NoTaskInProgressError,
    QueueCancelledError,
    QueueTimeoutError,
    RollbackError,
)
from .formatter import TaskPromptFormatter
from .interfaces import AgentInvoker, Notifier, PromptFormatter, TaskTracker
from .manager import Manager
from .queue import TaskQueue
from .worker import Worker

__all__ = [
    "AgentInvoker",
    "ClaimError",
    "CompletionError",
    "DispatcherError",
    "InvocationError",
    "Manager",
    "NoTaskInProgressError",
    "Notifier",
    "PromptFormatter",
    "QueueCancelledError",
    "QueueTimeoutError",
    "RollbackError",
    "TaskPromptFormatter",
    "TaskQueue",
    "TaskTracker",
    "Worker",
]
