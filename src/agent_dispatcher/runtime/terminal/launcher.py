"""Detached agent process launcher."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from typing import Mapping, Optional

from ..domain.models import InvokeResult, now_iso

logger = logging.getLogger(__name__)

TDD_HINT = "Develop this change test-first (TDD)."
WORKER_ID_ENV = "AGENT_DISPATCHER_WORKER_ID"
_PROMPT_FILE_PREFIX = "agent_prompt_"


def add_tdd_hint(prompt: str) -> str:
    """Append :data:`TDD_HINT` unless the prompt already mentions TDD."""
    if "TDD" in prompt:
        return prompt
    return prompt.rstrip() + "\n\n" + TDD_HINT


def build_shell_command(prompt_path: str, agent_command: str) -> str:
    """Shell line that pipes the prompt file into the agent, then removes the file."""
    quoted = shlex.quote(prompt_path)
    return f"cat {quoted} | {agent_command}; rm -f {quoted}"


class SubprocessInvoker:
    """Launch the agent as a detached process group in the worker's directory.

    The call returns as soon as the process is spawned; the agent's outcome is
    reported later through hook notifications, never through this object.
    """

    def __init__(self, agent_command: str, *, env: Optional[Mapping[str, str]] = None) -> None:
        self.agent_command = agent_command.strip()
        self._env = dict(env) if env is not None else None

    def _write_prompt(self, prompt: str) -> str:
        fd, path = tempfile.mkstemp(prefix=_PROMPT_FILE_PREFIX, suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(prompt)
        except OSError:
            os.unlink(path)
            raise
        return path

    def invoke_plan(self, work_dir: str, prompt: str, worker_id: str) -> InvokeResult:
        """Start the agent in ``work_dir`` with ``prompt`` on stdin.

        Args:
            work_dir (str): Directory the agent runs in.
            prompt (str): Prompt text; the TDD hint is appended once.
            worker_id (str): Exported to the agent as ``AGENT_DISPATCHER_WORKER_ID``.

        Returns:
            InvokeResult: Launch receipt carrying the spawned pid.

        Raises:
            OSError: If the prompt file cannot be written or the process cannot start.
        """
        if not os.path.isdir(work_dir):
            raise FileNotFoundError(f"working directory does not exist: {work_dir}")
        full_prompt = add_tdd_hint(prompt)
        prompt_path = self._write_prompt(full_prompt)

        env = dict(self._env if self._env is not None else os.environ)
        env[WORKER_ID_ENV] = worker_id
        try:
            proc = subprocess.Popen(
                ["/bin/sh", "-c", build_shell_command(prompt_path, self.agent_command)],
                cwd=work_dir,
                env=env,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
                close_fds=True,
            )
        except OSError:
            os.unlink(prompt_path)
            raise
        logger.info("[%s] Agent process %d started in %s", worker_id, proc.pid, work_dir)
        return InvokeResult(
            work_dir=work_dir,
            prompt=full_prompt,
            worker_id=worker_id,
            started_at=now_iso(),
            pid=proc.pid,
        )
