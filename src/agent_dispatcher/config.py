"""Parse dispatcher configuration from YAML and environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, cast

import yaml

logger = logging.getLogger(__name__)

InvocationFailurePolicy = Literal["hold", "rollback"]

DEFAULT_STATUS_WORKING = "in progress"
DEFAULT_STATUS_COMPLETED = "complete"
DEFAULT_TERMINAL_STATUSES = frozenset({"complete", "cancelled", "deployed", "on hold", "closed"})
DEFAULT_HOOK_SERVER_PORT = 8081
DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_AGENT_COMMAND = "claude --permission-mode plan"
MAX_ENV_WORKERS = 4


class ConfigError(ValueError):
    """Raised when the dispatcher configuration is invalid."""


@dataclass(frozen=True)
class WorkerConfig:
    """Static settings for one worker slot.

    Attributes:
        id: Slot identifier used in logs and terminal identification (``"AI_01"``).
        source_queue_id: Tracker queue/list this slot pulls tasks from.
        src_path: Absolute working directory of the slot's agent. Hook
            notifications are correlated to the slot by this path only.
    """

    id: str
    source_queue_id: str
    src_path: str


@dataclass(frozen=True)
class DispatcherConfig:
    """Fully resolved configuration for one dispatcher process.

    Attributes:
        workers: Configured worker slots, in declaration order.
        status_working: Tracker status applied when a slot claims a task.
        status_completed: Tracker status applied when the agent reports completion.
        completed_queue_id: Optional queue completed tasks are moved to.
        terminal_statuses: Lower-cased statuses that are never claimed.
        poll_interval_seconds: Fixed wait between polling iterations.
        hook_server_host: Bind host for the hook HTTP server.
        hook_server_port: Bind port for the hook HTTP server.
        notify_channel: Chat channel passed to the notifier, if any.
        invocation_failure_policy: ``"hold"`` keeps a claim whose agent launch
            failed, ``"rollback"`` reverts it.
        webhook_secret: Shared secret for signed webhook ingestion.
        agent_command: Shell command that starts the agent and reads the prompt on stdin.
        tracker_path: YAML document backing the file tracker.
    """

    workers: tuple[WorkerConfig, ...] = ()
    status_working: str = DEFAULT_STATUS_WORKING
    status_completed: str = DEFAULT_STATUS_COMPLETED
    completed_queue_id: Optional[str] = None
    terminal_statuses: frozenset[str] = field(default_factory=lambda: DEFAULT_TERMINAL_STATUSES)
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    hook_server_host: str = "127.0.0.1"
    hook_server_port: int = DEFAULT_HOOK_SERVER_PORT
    notify_channel: Optional[str] = None
    invocation_failure_policy: InvocationFailurePolicy = "hold"
    webhook_secret: Optional[str] = None
    agent_command: str = DEFAULT_AGENT_COMMAND
    tracker_path: Optional[Path] = None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    return str(value or "").strip() or None


def _coerce_port(value: Any, *, name: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"{name} out of range: {port}")
    return port


def _parse_workers(raw: Any) -> list[WorkerConfig]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("'workers' must be a list")
    workers: list[WorkerConfig] = []
    for index, item in enumerate(raw, start=1):
        entry = _as_dict(item)
        worker_id = _text(entry.get("id")) or f"AI_{index:02d}"
        queue_id = _text(entry.get("source_queue_id") or entry.get("list_id"))
        src_path = _text(entry.get("src_path"))
        if not queue_id or not src_path:
            raise ConfigError(f"Worker '{worker_id}' requires 'source_queue_id' and 'src_path'")
        workers.append(WorkerConfig(id=worker_id, source_queue_id=queue_id, src_path=src_path))
    return workers


def parse_config(data: Mapping[str, Any], *, base_dir: Optional[Path] = None) -> DispatcherConfig:
    """Build a :class:`DispatcherConfig` from a parsed YAML mapping.

    Args:
        data (Mapping[str, Any]): Parsed configuration document. Recognized keys are
            ``workers``, ``statuses``, ``completed_queue_id``, ``poll_interval_seconds``,
            ``hook_server``, ``notify_channel``, ``invocation_failure_policy``,
            ``webhook_secret``, ``agent_command`` and ``tracker_path``.
        base_dir (Optional[Path]): Directory relative ``tracker_path`` values resolve against.

    Returns:
        DispatcherConfig: Normalized configuration.

    Raises:
        ConfigError: If a value has the wrong shape or is out of range.
    """
    root = _as_dict(dict(data))
    statuses = _as_dict(root.get("statuses"))
    hook_server = _as_dict(root.get("hook_server"))

    terminal_raw = statuses.get("terminal")
    if terminal_raw is None:
        terminal = DEFAULT_TERMINAL_STATUSES
    elif isinstance(terminal_raw, list):
        terminal = frozenset(str(item).strip().lower() for item in terminal_raw if str(item).strip())
    else:
        raise ConfigError("'statuses.terminal' must be a list")

    policy = str(root.get("invocation_failure_policy") or "hold").strip().lower()
    if policy not in {"hold", "rollback"}:
        raise ConfigError(f"Unsupported invocation_failure_policy '{policy}' (expected hold or rollback)")

    try:
        poll_interval = float(root.get("poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS))
    except (TypeError, ValueError) as exc:
        raise ConfigError("'poll_interval_seconds' must be a number") from exc
    if poll_interval <= 0:
        raise ConfigError("'poll_interval_seconds' must be positive")

    tracker_path: Optional[Path] = None
    tracker_raw = _text(root.get("tracker_path"))
    if tracker_raw:
        tracker_path = Path(tracker_raw).expanduser()
        if not tracker_path.is_absolute() and base_dir is not None:
            tracker_path = base_dir / tracker_path

    return DispatcherConfig(
        workers=tuple(_parse_workers(root.get("workers"))),
        status_working=_text(statuses.get("working")) or DEFAULT_STATUS_WORKING,
        status_completed=_text(statuses.get("completed")) or DEFAULT_STATUS_COMPLETED,
        completed_queue_id=_text(root.get("completed_queue_id")),
        terminal_statuses=terminal,
        poll_interval_seconds=poll_interval,
        hook_server_host=_text(hook_server.get("host")) or "127.0.0.1",
        hook_server_port=_coerce_port(hook_server.get("port", DEFAULT_HOOK_SERVER_PORT), name="hook_server.port"),
        notify_channel=_text(root.get("notify_channel")),
        invocation_failure_policy=cast(InvocationFailurePolicy, policy),
        webhook_secret=_text(root.get("webhook_secret")),
        agent_command=_text(root.get("agent_command")) or DEFAULT_AGENT_COMMAND,
        tracker_path=tracker_path,
    )


def _workers_from_env(env: Mapping[str, str]) -> list[WorkerConfig]:
    workers: list[WorkerConfig] = []
    for index in range(1, MAX_ENV_WORKERS + 1):
        prefix = f"AI_{index:02d}"
        queue_id = _text(env.get(f"{prefix}_LIST_ID"))
        src_path = _text(env.get(f"{prefix}_SRC_PATH"))
        if queue_id and src_path:
            workers.append(WorkerConfig(id=prefix, source_queue_id=queue_id, src_path=src_path))
    if workers:
        return workers

    # Legacy layout: several lists sharing one source directory.
    list_ids = _text(env.get("AI_LIST_IDS"))
    src_path = _text(env.get("AI_SRC_PATH"))
    if not list_ids or not src_path:
        return []
    queue_ids = [item.strip() for item in list_ids.split(",") if item.strip()]
    return [
        WorkerConfig(id=f"AI_{index:02d}", source_queue_id=queue_id, src_path=src_path)
        for index, queue_id in enumerate(queue_ids, start=1)
    ]


def apply_env_overrides(config: DispatcherConfig, env: Optional[Mapping[str, str]] = None) -> DispatcherConfig:
    """Overlay environment variables on top of a parsed configuration.

    Worker slots from ``AI_0N_LIST_ID``/``AI_0N_SRC_PATH`` (or the legacy
    ``AI_LIST_IDS``/``AI_SRC_PATH`` pair) replace the configured slots when present.
    """
    env = os.environ if env is None else env
    changes: dict[str, Any] = {}

    workers = _workers_from_env(env)
    if workers:
        changes["workers"] = tuple(workers)
    if _text(env.get("HOOK_SERVER_PORT")):
        changes["hook_server_port"] = _coerce_port(env["HOOK_SERVER_PORT"], name="HOOK_SERVER_PORT")
    if _text(env.get("AI_STATUS_WORKING")):
        changes["status_working"] = env["AI_STATUS_WORKING"].strip()
    if _text(env.get("AI_STATUS_COMPLETED")):
        changes["status_completed"] = env["AI_STATUS_COMPLETED"].strip()
    if _text(env.get("AI_COMPLETED_LIST_ID")):
        changes["completed_queue_id"] = env["AI_COMPLETED_LIST_ID"].strip()
    if _text(env.get("SLACK_NOTIFY_CHANNEL")):
        changes["notify_channel"] = env["SLACK_NOTIFY_CHANNEL"].strip()
    if _text(env.get("WEBHOOK_SECRET")):
        changes["webhook_secret"] = env["WEBHOOK_SECRET"].strip()

    return replace(config, **changes) if changes else config


def _warn_duplicate_paths(config: DispatcherConfig) -> None:
    seen: dict[str, str] = {}
    for worker in config.workers:
        key = worker.src_path.rstrip("/\\") or worker.src_path
        if key in seen:
            logger.warning(
                "Workers %s and %s share src_path %s; hooks will prefer the processing one",
                seen[key],
                worker.id,
                worker.src_path,
            )
        else:
            seen[key] = worker.id


def load_config(path: Optional[Path] = None, *, env: Optional[Mapping[str, str]] = None) -> DispatcherConfig:
    """Load configuration from an optional YAML file plus environment overrides.

    Args:
        path (Optional[Path]): YAML configuration file. A missing file is treated as empty.
        env (Optional[Mapping[str, str]]): Environment mapping, defaults to ``os.environ``.

    Returns:
        DispatcherConfig: Resolved configuration.

    Raises:
        ConfigError: If the document is not a mapping or holds invalid values.
    """
    data: dict[str, Any] = {}
    base_dir: Optional[Path] = None
    if path is not None:
        base_dir = path.resolve().parent
        if path.exists():
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
            if raw is not None and not isinstance(raw, dict):
                raise ConfigError(f"Configuration root must be a mapping: {path}")
            data = raw or {}
        else:
            logger.warning("Configuration file %s not found; using defaults", path)
    config = apply_env_overrides(parse_config(data, base_dir=base_dir), env)
    _warn_duplicate_paths(config)
    return config
