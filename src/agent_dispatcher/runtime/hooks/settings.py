"""Install hook forwarding entries into the agent's settings file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ...io_utils import atomic_write_json

logger = logging.getLogger(__name__)

HOOK_TIMEOUT_SECONDS = 5

# Agent hook event name -> hook server path. Both forward the hook's stdin JSON.
FORWARDED_EVENTS: dict[str, str] = {
    "Stop": "/hook/stop",
    "SessionEnd": "/hook/session-end",
}


def default_settings_path() -> Path:
    return Path.home() / ".claude" / "settings.json"


def forward_command(port: int, path: str) -> str:
    return f"curl -s -X POST http://localhost:{port}{path} -H 'Content-Type: application/json' -d @-"


def build_hook_config(port: int) -> dict[str, Any]:
    """Build the ``hooks`` settings fragment forwarding agent events to the hook server.

    Args:
        port (int): Hook server port on localhost.

    Returns:
        dict[str, Any]: ``{"hooks": {event: [matcher entry]}}`` for every forwarded event.
    """
    hooks: dict[str, Any] = {}
    for event, path in FORWARDED_EVENTS.items():
        hooks[event] = [
            {
                "matcher": "",
                "hooks": [
                    {
                        "type": "command",
                        "command": forward_command(port, path),
                        "timeout": HOOK_TIMEOUT_SECONDS,
                    }
                ],
            }
        ]
    return {"hooks": hooks}


def _load_settings(settings_path: Path) -> dict[str, Any]:
    if not settings_path.exists():
        return {}
    try:
        raw = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("Agent settings at %s are unreadable; starting from an empty document", settings_path)
        return {}
    return raw if isinstance(raw, dict) else {}


def merge_hook_settings(settings_path: Path, port: int) -> dict[str, Any]:
    """Merge the forwarding hooks into ``settings_path`` and write it atomically.

    Keys other than the forwarded events are preserved. A corrupt file is
    replaced rather than rejected.

    Returns:
        dict[str, Any]: The settings document that was written.
    """
    settings = _load_settings(settings_path)
    hooks = settings.get("hooks")
    if not isinstance(hooks, dict):
        hooks = {}
    hooks.update(build_hook_config(port)["hooks"])
    settings["hooks"] = hooks
    atomic_write_json(settings_path, settings)
    logger.info("Installed %s hooks into %s (port %d)", ", ".join(FORWARDED_EVENTS), settings_path, port)
    return settings
