"""Dispatch parsed hook notifications to registered callbacks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from .classifier import TRANSCRIPT_TAIL_BYTES, StopClassification, classify_stop
from .payloads import PlanReadyPayload, SessionEndPayload, StopHookPayload, TaskCompletePayload, describe_reason

if TYPE_CHECKING:
    from ..orchestrator.manager import Manager

logger = logging.getLogger(__name__)

StopCallback = Callable[[StopHookPayload, StopClassification], None]
SessionEndCallback = Callable[[SessionEndPayload], None]
PlanReadyCallback = Callable[[PlanReadyPayload], None]
TaskCompleteCallback = Callable[[TaskCompletePayload], None]


class HookEventRouter:
    """Route the four hook notification kinds to one callback each.

    Notifications arrive in any order and may repeat, so each handler acts on
    its own payload only. Ambiguous stop notifications resolve to the least
    destructive action: an ``UNKNOWN`` classification is logged and dropped.
    A failing callback is logged with its cwd and never reaches the sender.
    """

    def __init__(self, *, transcript_tail_bytes: int = TRANSCRIPT_TAIL_BYTES) -> None:
        self.transcript_tail_bytes = transcript_tail_bytes
        self._stop_callback: Optional[StopCallback] = None
        self._session_end_callback: Optional[SessionEndCallback] = None
        self._plan_ready_callback: Optional[PlanReadyCallback] = None
        self._task_complete_callback: Optional[TaskCompleteCallback] = None

    def set_stop_callback(self, callback: Optional[StopCallback]) -> None:
        self._stop_callback = callback

    def set_session_end_callback(self, callback: Optional[SessionEndCallback]) -> None:
        self._session_end_callback = callback

    def set_plan_ready_callback(self, callback: Optional[PlanReadyCallback]) -> None:
        self._plan_ready_callback = callback

    def set_task_complete_callback(self, callback: Optional[TaskCompleteCallback]) -> None:
        self._task_complete_callback = callback

    def bind_manager(self, manager: "Manager") -> None:
        """Wire the state-changing hooks straight to ``manager``.

        Session end may roll back a cancelled claim; task complete is the only
        signal that completes a task.
        """
        self.set_session_end_callback(lambda payload: manager.on_session_end(payload.cwd, payload.reason))
        self.set_task_complete_callback(lambda payload: manager.on_hook_received(payload.cwd))

    def handle_stop(self, payload: StopHookPayload) -> StopClassification:
        """Classify a stop notification and forward actionable outcomes.

        Args:
            payload (StopHookPayload): Parsed stop notification.

        Returns:
            StopClassification: Outcome derived from the transcript tail.
        """
        classification = classify_stop(payload, self.transcript_tail_bytes)
        logger.info(
            "[Hook] Stop received: cwd=%s permission_mode=%s exit_code=%d outcome=%s pattern=%r",
            payload.cwd,
            payload.permission_mode,
            payload.exit_code,
            classification.outcome.value,
            classification.matched_pattern,
        )
        if not classification.actionable:
            return classification
        self._dispatch("stop", payload.cwd, self._stop_callback, payload, classification)
        return classification

    def handle_session_end(self, payload: SessionEndPayload) -> None:
        logger.info(
            "[Hook] SessionEnd received: cwd=%s reason=%s (%s)",
            payload.cwd,
            payload.reason,
            describe_reason(payload.reason),
        )
        self._dispatch("session-end", payload.cwd, self._session_end_callback, payload)

    def handle_plan_ready(self, payload: PlanReadyPayload) -> None:
        logger.info("[Hook] PlanReady received: cwd=%s task=%s", payload.cwd, payload.task_name or payload.task_id)
        self._dispatch("plan-ready", payload.cwd, self._plan_ready_callback, payload)

    def handle_task_complete(self, payload: TaskCompletePayload) -> None:
        logger.info("[Hook] TaskComplete received: cwd=%s status=%s", payload.cwd, payload.status)
        self._dispatch("task-complete", payload.cwd, self._task_complete_callback, payload)

    @staticmethod
    def _dispatch(kind: str, cwd: str, callback: Optional[Callable[..., None]], *args: Any) -> bool:
        if callback is None:
            return False
        try:
            callback(*args)
        except Exception:
            logger.exception("[Hook] %s callback failed (cwd=%s)", kind, cwd)
            return False
        return True
