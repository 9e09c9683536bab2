"""Deterministic classification of agent stop notifications from the transcript tail."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .payloads import StopHookPayload

logger = logging.getLogger(__name__)

TRANSCRIPT_TAIL_BYTES = 4096


class StopOutcome(str, enum.Enum):
    PLAN_READY = "plan_ready"
    RATE_LIMIT = "rate_limit"
    CONTEXT_EXCEEDED = "context_exceeded"
    API_ERROR = "api_error"
    UNKNOWN = "unknown"


_PLAN_READY_PATTERNS: tuple[str, ...] = (
    "exitplanmode",
    "exit_plan_mode",
    "plan is ready",
    "here is my plan",
    "here's my plan",
    "would you like to proceed",
    "ready to code?",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "usage limit",
    "limit reached",
    "too many requests",
    "quota",
)
_CONTEXT_EXCEEDED_PATTERNS: tuple[str, ...] = (
    "context window",
    "context length",
    "context_length_exceeded",
    "context limit",
    "maximum context",
    "prompt is too long",
    "conversation is too long",
)
_API_ERROR_PATTERNS: tuple[str, ...] = (
    "api error",
    "api_error",
    "overloaded",
    "internal server error",
    "service unavailable",
    "error",
)

# Evaluated top to bottom; the first rule with a matching pattern wins. Plan
# proposals come first because a plan can quote error text it intends to fix,
# and the generic error terms come last because they overlap everything else.
STOP_RULES: tuple[tuple[StopOutcome, tuple[str, ...]], ...] = (
    (StopOutcome.PLAN_READY, _PLAN_READY_PATTERNS),
    (StopOutcome.RATE_LIMIT, _RATE_LIMIT_PATTERNS),
    (StopOutcome.CONTEXT_EXCEEDED, _CONTEXT_EXCEEDED_PATTERNS),
    (StopOutcome.API_ERROR, _API_ERROR_PATTERNS),
)

# Transcript JSON marks every healthy tool result with is_error=false.
_BENIGN_ERROR_FLAG_RE = re.compile(r'"is_error"\s*:\s*false')


@dataclass(frozen=True)
class StopClassification:
    """Classification result for one stop notification."""

    outcome: StopOutcome
    matched_pattern: Optional[str] = None

    @property
    def actionable(self) -> bool:
        return self.outcome is not StopOutcome.UNKNOWN


def read_transcript_tail(path: Optional[str | Path], max_bytes: int = TRANSCRIPT_TAIL_BYTES) -> str:
    """Read at most the last ``max_bytes`` bytes of a transcript file.

    Missing, unreadable or empty files yield ``""``.
    """
    if not path or max_bytes <= 0:
        return ""
    transcript = Path(path).expanduser()
    try:
        size = transcript.stat().st_size
        if size <= 0:
            return ""
        with transcript.open("rb") as fh:
            fh.seek(max(0, size - max_bytes))
            raw = fh.read(max_bytes)
    except OSError:
        logger.debug("Cannot read transcript tail from %s", transcript, exc_info=True)
        return ""
    return raw.decode("utf-8", errors="replace")


def _normalize_text(text: str) -> str:
    return _BENIGN_ERROR_FLAG_RE.sub("", text.lower())


def _first_match(haystack: str, patterns: tuple[str, ...]) -> Optional[str]:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None


def classify_transcript(text: str) -> StopClassification:
    """Classify transcript text into exactly one :class:`StopOutcome` using :data:`STOP_RULES`."""
    haystack = _normalize_text(text or "")
    for outcome, patterns in STOP_RULES:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return StopClassification(outcome=outcome, matched_pattern=pattern)
    return StopClassification(outcome=StopOutcome.UNKNOWN)


def classify_stop(payload: StopHookPayload, max_bytes: int = TRANSCRIPT_TAIL_BYTES) -> StopClassification:
    return classify_transcript(read_transcript_tail(payload.transcript_path, max_bytes))
