"""Chat notifications for agent lifecycle events."""

from __future__ import annotations

import logging
from typing import Optional

from .domain.models import WorkerSnapshot
from .hooks.classifier import StopClassification, StopOutcome
from .hooks.payloads import PlanReadyPayload, SessionEndPayload, StopHookPayload, TaskCompletePayload
from .hooks.router import HookEventRouter
from .orchestrator.interfaces import Notifier
from .orchestrator.manager import Manager

logger = logging.getLogger(__name__)

_STOP_HEADLINES = {
    StopOutcome.PLAN_READY: "Plan is waiting for review",
    StopOutcome.RATE_LIMIT: "Agent hit a rate limit",
    StopOutcome.CONTEXT_EXCEEDED: "Agent ran out of context",
    StopOutcome.API_ERROR: "Agent stopped on an API error",
}


class LogNotifier:
    """Notifier that writes every message to the application log."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def post_message(self, channel: str, text: str) -> None:
        self._log.info("[Notify #%s] %s", channel or "-", text.replace("\n", " | "))


def _task_lines(snapshot: WorkerSnapshot) -> list[str]:
    lines = [f"Worker: {snapshot.worker_id}"]
    if snapshot.task_name:
        lines.append(f"Title: {snapshot.task_name}")
    if snapshot.task_id:
        lines.append(f"Task: {snapshot.task_id}")
    if snapshot.external_ref:
        lines.append(f"Related issue: {snapshot.external_ref}")
    return lines


def completion_message(snapshot: WorkerSnapshot) -> str:
    return "\n".join(["AI task completed.", *_task_lines(snapshot)])


def stop_message(snapshot: Optional[WorkerSnapshot], cwd: str, classification: StopClassification) -> str:
    headline = _STOP_HEADLINES.get(classification.outcome, "Agent stopped")
    lines = [f"{headline}."]
    lines.extend(_task_lines(snapshot) if snapshot is not None else [f"Directory: {cwd}"])
    if classification.matched_pattern:
        lines.append(f"Matched: {classification.matched_pattern}")
    return "\n".join(lines)


class NotificationBridge:
    """Connect hook events to manager state changes and chat notifications.

    State changes are delegated to :class:`Manager`; this class only decides
    what to tell people. The completion message is built from a snapshot taken
    before :meth:`Manager.on_hook_received` clears the worker.
    """

    def __init__(self, manager: Manager, notifier: Notifier, channel: str = "") -> None:
        self.manager = manager
        self.notifier = notifier
        self.channel = channel

    def register(self, router: HookEventRouter) -> None:
        """Install all four callbacks on ``router``, replacing any bound earlier."""
        router.set_stop_callback(self.on_stop)
        router.set_session_end_callback(self.on_session_end)
        router.set_plan_ready_callback(self.on_plan_ready)
        router.set_task_complete_callback(self.on_task_complete)

    def _snapshot(self, cwd: str) -> Optional[WorkerSnapshot]:
        worker = self.manager.worker_by_src_path(cwd)
        return worker.snapshot() if worker is not None else None

    def _post(self, text: str) -> None:
        if not self.channel:
            logger.debug("No notify channel configured; dropping message: %s", text)
            return
        try:
            self.notifier.post_message(self.channel, text)
        except Exception:
            logger.warning("Posting notification to %s failed", self.channel, exc_info=True)

    def on_stop(self, payload: StopHookPayload, classification: StopClassification) -> None:
        self._post(stop_message(self._snapshot(payload.cwd), payload.cwd, classification))

    def on_session_end(self, payload: SessionEndPayload) -> None:
        before = self._snapshot(payload.cwd)
        if self.manager.on_session_end(payload.cwd, payload.reason) and before is not None:
            self._post("\n".join([f"Task cancelled; status restored to {before.original_status!r}.", *_task_lines(before)]))

    def on_plan_ready(self, payload: PlanReadyPayload) -> None:
        snapshot = self._snapshot(payload.cwd)
        lines = ["Plan ready for review."]
        if payload.plan_title:
            lines.append(f"Plan: {payload.plan_title}")
        if snapshot is not None:
            lines.extend(_task_lines(snapshot))
        else:
            lines.append(f"Directory: {payload.cwd}")
            if payload.task_name or payload.task_id:
                lines.append(f"Task: {payload.task_name or payload.task_id}")
        self._post("\n".join(lines))

    def on_task_complete(self, payload: TaskCompletePayload) -> None:
        before = self._snapshot(payload.cwd)
        self.manager.on_hook_received(payload.cwd)
        if before is None or not before.processing:
            return
        after = self._snapshot(payload.cwd)
        if after is not None and after.processing and after.task_id == before.task_id:
            return
        self._post(completion_message(before))
