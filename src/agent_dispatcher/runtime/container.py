"""Dependency container wiring the dispatcher runtime."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..config import DispatcherConfig
from .hooks.router import HookEventRouter
from .notifications import LogNotifier, NotificationBridge
from .orchestrator.formatter import TaskPromptFormatter
from .orchestrator.interfaces import AgentInvoker, Notifier, PromptFormatter, TaskTracker
from .orchestrator.manager import Manager
from .storage.yaml_tracker import YamlTaskTracker
from .terminal.launcher import SubprocessInvoker

STATE_DIR_NAME = ".agent_dispatcher"


def default_tracker_path(base_dir: Optional[Path] = None) -> Path:
    return (base_dir or Path.cwd()) / STATE_DIR_NAME / "tasks.yaml"


class Container:
    """Build and hold every collaborator the HTTP app and CLI need.

    Any collaborator may be injected; the rest are built from ``config``.
    """

    def __init__(
        self,
        config: DispatcherConfig,
        *,
        tracker: Optional[TaskTracker] = None,
        invoker: Optional[AgentInvoker] = None,
        formatter: Optional[PromptFormatter] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        """Initialize the Container.

        Args:
            config (DispatcherConfig): Resolved configuration.
            tracker (Optional[TaskTracker]): Tracker; defaults to a YAML tracker.
            invoker (Optional[AgentInvoker]): Agent launcher; defaults to a subprocess launcher.
            formatter (Optional[PromptFormatter]): Prompt builder pointing at the hook server.
            notifier (Optional[Notifier]): Chat notifier; defaults to logging.
        """
        self.config = config
        self.tracker = tracker if tracker is not None else YamlTaskTracker(config.tracker_path or default_tracker_path())
        self.invoker = invoker if invoker is not None else SubprocessInvoker(config.agent_command)
        self.formatter = formatter if formatter is not None else TaskPromptFormatter(hook_server_port=config.hook_server_port)
        self.notifier = notifier if notifier is not None else LogNotifier()
        self.manager = Manager(config, self.tracker, self.invoker, formatter=self.formatter)
        self.hook_router = HookEventRouter()
        self.bridge = NotificationBridge(self.manager, self.notifier, config.notify_channel or "")
        self.bridge.register(self.hook_router)
