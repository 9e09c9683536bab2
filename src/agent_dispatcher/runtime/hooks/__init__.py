"""Agent hook payloads, stop classification and event routing."""

from .classifier import STOP_RULES, StopClassification, StopOutcome, classify_stop, classify_transcript, read_transcript_tail
from .payloads import PlanReadyPayload, SessionEndPayload, StopHookPayload, TaskCompletePayload
from .router import HookEventRouter
from .settings import build_hook_config, default_settings_path, merge_hook_settings

__all__ = [
    "HookEventRouter",
    "PlanReadyPayload",
    "STOP_RULES",
    "SessionEndPayload",
    "StopClassification",
    "StopHookPayload",
    "StopOutcome",
    "TaskCompletePayload",
    "build_hook_config",
    "classify_stop",
    "classify_transcript",
    "default_settings_path",
    "merge_hook_settings",
    "read_transcript_tail",
]
