"""Pydantic payloads for the four agent hook notifications.

Every payload is correlated to a worker slot by ``cwd`` alone; the agent's hook
configuration provides no session token that is unique across slots.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator

REASON_CLEAR = "clear"
REASON_LOGOUT = "logout"
REASON_PROMPT_INPUT_EXIT = "prompt_input_exit"
REASON_OTHER = "other"

_REASON_DESCRIPTIONS = {
    REASON_CLEAR: "session cleared",
    REASON_LOGOUT: "user logged out",
    REASON_PROMPT_INPUT_EXIT: "user cancelled at prompt",
    REASON_OTHER: "session closed",
}


def describe_reason(reason: str) -> str:
    return _REASON_DESCRIPTIONS.get(reason, "unknown")


class _HookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cwd: str = ""

    @model_validator(mode="before")
    @classmethod
    def _null_fields_take_defaults(cls, data: Any) -> Any:
        # Hook senders emit null for unset fields; treat it as absent.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class StopHookPayload(_HookPayload):
    """Generic end-of-turn notification; fires on normal pauses and on failures alike."""

    session_id: Optional[str] = None
    transcript_path: Optional[str] = None
    exit_code: int = 0
    permission_mode: Optional[str] = None
    stop_hook_active: bool = False


class SessionEndPayload(_HookPayload):
    """Session termination notification with an explicit reason."""

    session_id: Optional[str] = None
    transcript_path: Optional[str] = None
    reason: str = ""
    hook_event_name: Optional[str] = None


class PlanReadyPayload(_HookPayload):
    """Agent-initiated notice that a plan awaits human review."""

    task_id: Optional[str] = None
    task_name: Optional[str] = None
    plan_title: Optional[str] = None


class TaskCompletePayload(_HookPayload):
    """Agent-initiated notice that the task is done; the only completion trigger."""

    status: str = ""
