"""Render tracker tasks into agent prompts with hook callback instructions."""

from __future__ import annotations

from ..domain.models import TrackerTask
from .worker import extract_external_ref

_PLAN_READY_TEMPLATE = """
---
## Plan review

When your plan is ready for human review, run:

```bash
curl -s -X POST {base_url}/hook/plan-ready -H 'Content-Type: application/json' -d '{{"cwd": "'$(pwd)'", "task_id": "{task_id}", "task_name": {task_name_json}, "plan_title": "<short plan title>"}}'
```
"""

_TASK_COMPLETE_TEMPLATE = """
---
## Completion

Once every change is implemented and verified, run:

```bash
curl -s -X POST {base_url}/hook/task-complete -H 'Content-Type: application/json' -d '{{"cwd": "'$(pwd)'", "status": "completed"}}'
```

Do not run this command if the work is unfinished or failed.
---"""


def _shell_safe_json_string(value: str) -> str:
    # Embedded in a single-quoted shell argument, so quotes must not survive.
    cleaned = value.replace("'", "").replace("\\", "").replace('"', "")
    return f'"{cleaned}"'


class TaskPromptFormatter:
    """Markdown prompt builder that tells the agent how to report back.

    The completion instruction is the only source of the task-complete hook,
    so every prompt carries it.
    """

    def __init__(self, *, hook_server_port: int, hook_server_host: str = "localhost") -> None:
        self.base_url = f"http://{hook_server_host}:{hook_server_port}"

    def format(self, task: TrackerTask) -> str:
        lines = [f"# {task.name}".rstrip(), ""]
        if task.description:
            lines.extend([task.description.strip(), ""])
        if task.url:
            lines.append(f"Link: {task.url}")
        external_ref = extract_external_ref(task.description)
        if external_ref:
            lines.append(f"Related issue: {external_ref}")
        body = "\n".join(lines).rstrip()
        return body + "\n" + self.plan_ready_instruction(task) + self.task_complete_instruction()

    def plan_ready_instruction(self, task: TrackerTask) -> str:
        return _PLAN_READY_TEMPLATE.format(
            base_url=self.base_url,
            task_id=task.id,
            task_name_json=_shell_safe_json_string(task.name),
        )

    def task_complete_instruction(self) -> str:
        return _TASK_COMPLETE_TEMPLATE.format(base_url=self.base_url)
