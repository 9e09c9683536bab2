from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

from agent_dispatcher.runtime.hooks.classifier import StopOutcome
from agent_dispatcher.runtime.hooks.payloads import (
    PlanReadyPayload,
    SessionEndPayload,
    StopHookPayload,
    TaskCompletePayload,
    describe_reason,
)
from agent_dispatcher.runtime.hooks.router import HookEventRouter
from agent_dispatcher.runtime.notifications import LogNotifier, NotificationBridge


def test_actionable_stop_reaches_callback(tmp_path: Path) -> None:
    transcript = tmp_path / "t.jsonl"
    transcript.write_text("API Error: overloaded", encoding="utf-8")
    callback = MagicMock()
    router = HookEventRouter()
    router.set_stop_callback(callback)

    result = router.handle_stop(StopHookPayload(cwd="/src/a", transcript_path=str(transcript)))

    assert result.outcome is StopOutcome.API_ERROR
    payload, classification = callback.call_args.args
    assert payload.cwd == "/src/a"
    assert classification is result


def test_unknown_stop_skips_callback() -> None:
    callback = MagicMock()
    router = HookEventRouter()
    router.set_stop_callback(callback)

    router.handle_stop(StopHookPayload(cwd="/src/a"))

    callback.assert_not_called()


def test_callback_errors_are_contained() -> None:
    router = HookEventRouter()
    router.set_task_complete_callback(MagicMock(side_effect=RuntimeError("boom")))
    router.set_plan_ready_callback(MagicMock(side_effect=ValueError("bad")))

    router.handle_task_complete(TaskCompletePayload(cwd="/src/a"))
    router.handle_plan_ready(PlanReadyPayload(cwd="/src/a"))


def test_handlers_without_callbacks_are_noops() -> None:
    router = HookEventRouter()
    router.handle_session_end(SessionEndPayload(cwd="/src/a", reason="clear"))
    router.handle_task_complete(TaskCompletePayload(cwd="/src/a"))


def test_bind_manager_routes_state_changes() -> None:
    manager = MagicMock()
    router = HookEventRouter()
    router.bind_manager(manager)

    router.handle_session_end(SessionEndPayload(cwd="/src/a", reason="prompt_input_exit"))
    router.handle_task_complete(TaskCompletePayload(cwd="/src/a", status="completed"))

    manager.on_session_end.assert_called_once_with("/src/a", "prompt_input_exit")
    manager.on_hook_received.assert_called_once_with("/src/a")


def test_describe_reason() -> None:
    assert describe_reason("prompt_input_exit") == "user cancelled at prompt"
    assert describe_reason("mystery") == "unknown"


def test_bridge_session_end_notifies_only_on_rollback(manager_factory, config_factory) -> None:
    manager = manager_factory(config_factory(notify_channel="ai-dev"))
    notifier = MagicMock()
    bridge = NotificationBridge(manager, notifier, "ai-dev")
    router = HookEventRouter()
    bridge.register(router)
    manager.run_once(manager.workers[0])

    router.handle_session_end(SessionEndPayload(cwd="/src/alpha", reason="logout"))
    notifier.post_message.assert_not_called()

    router.handle_session_end(SessionEndPayload(cwd="/src/alpha", reason="prompt_input_exit"))
    channel, text = notifier.post_message.call_args.args
    assert channel == "ai-dev"
    assert "status restored to 'Open'" in text
    assert manager.all_idle()


def test_bridge_without_channel_stays_quiet(manager_factory) -> None:
    manager = manager_factory()
    notifier = MagicMock()
    router = HookEventRouter()
    NotificationBridge(manager, notifier, "").register(router)
    manager.run_once(manager.workers[0])

    router.handle_task_complete(TaskCompletePayload(cwd="/src/alpha"))

    assert manager.all_idle()
    notifier.post_message.assert_not_called()


def test_bridge_survives_notifier_failure(manager_factory) -> None:
    manager = manager_factory()
    notifier = MagicMock()
    notifier.post_message.side_effect = ConnectionError("chat down")
    router = HookEventRouter()
    NotificationBridge(manager, notifier, "ai-dev").register(router)
    manager.run_once(manager.workers[0])

    router.handle_task_complete(TaskCompletePayload(cwd="/src/alpha"))

    assert manager.all_idle()
    notifier.post_message.assert_called_once()


def test_log_notifier_writes_single_line() -> None:
    log = MagicMock()
    LogNotifier(log).post_message("ai-dev", "line one\nline two")
    log.info.assert_called_once_with("[Notify #%s] %s", "ai-dev", "line one | line two")
