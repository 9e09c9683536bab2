from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from agent_dispatcher.runtime.container import Container
from agent_dispatcher.server.api import create_app


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def container(config_factory, tracker, invoker, notifier) -> Container:
    config = config_factory(completed_queue_id="done-list", notify_channel="ai-dev")
    return Container(config, tracker=tracker, invoker=invoker, notifier=notifier)


@pytest.fixture
def client(container: Container):
    with TestClient(create_app(container, start_manager=False)) as test_client:
        yield test_client


def _claim(container: Container) -> None:
    assert container.manager.run_once(container.manager.workers[0]) is True


def test_cancelled_session_rolls_back_claim(client, container, tracker) -> None:
    _claim(container)
    assert tracker.tasks["T1"].status == "Working"

    response = client.post("/hook/session-end", json={"cwd": "/src/alpha", "reason": "prompt_input_exit", "session_id": "s-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert tracker.tasks["T1"].status == "Open"
    assert container.manager.all_idle()


def test_session_end_with_other_reason_keeps_claim(client, container, tracker) -> None:
    _claim(container)

    response = client.post("/hook/session-end", json={"cwd": "/src/alpha", "reason": "other"})

    assert response.status_code == 200
    assert tracker.tasks["T1"].status == "Working"
    assert container.manager.workers[0].is_processing()


def test_task_complete_marks_completed_and_moves(client, container, tracker, notifier) -> None:
    tracker.tasks["T1"].description = "Follow-up for ITSM-42"
    _claim(container)

    response = client.post("/hook/task-complete", json={"cwd": "/src/alpha", "status": "completed"})

    assert response.status_code == 200
    assert tracker.tasks["T1"].status == "Completed"
    assert tracker.tasks["T1"].queue_id == "done-list"
    assert container.manager.all_idle()
    channel, text = notifier.post_message.call_args.args
    assert channel == "ai-dev"
    assert "Task: T1" in text
    assert "Related issue: ITSM-42" in text


def test_task_complete_for_unknown_cwd_changes_nothing(client, container, tracker, notifier) -> None:
    _claim(container)
    calls = list(tracker.calls)

    response = client.post("/hook/task-complete", json={"cwd": "/unrelated", "status": "completed"})

    assert response.status_code == 200
    assert tracker.calls == calls
    assert container.manager.workers[0].is_processing()
    notifier.post_message.assert_not_called()


def test_failed_completion_still_answers_ok(client, container, tracker, notifier) -> None:
    _claim(container)
    tracker.fail_statuses.add("Completed")

    response = client.post("/hook/task-complete", json={"cwd": "/src/alpha"})

    assert response.status_code == 200
    assert container.manager.workers[0].current_task_id() == "T1"
    notifier.post_message.assert_not_called()


def test_stop_hook_reports_classification(client, container, tmp_path: Path, notifier) -> None:
    _claim(container)
    transcript = tmp_path / "session.jsonl"
    transcript.write_text('{"message":"Claude usage limit reached"}', encoding="utf-8")

    response = client.post("/hook/stop", json={"cwd": "/src/alpha", "transcript_path": str(transcript)})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "outcome": "rate_limit"}
    assert container.manager.workers[0].is_processing()
    assert "rate limit" in notifier.post_message.call_args.args[1]


def test_unknown_stop_is_only_logged(client, container, notifier) -> None:
    response = client.post("/hook/stop", json={"cwd": "/src/alpha", "transcript_path": "/does/not/exist"})

    assert response.status_code == 200
    assert response.json()["outcome"] == "unknown"
    notifier.post_message.assert_not_called()


def test_plan_ready_notifies(client, container, notifier) -> None:
    _claim(container)

    response = client.post("/hook/plan-ready", json={"cwd": "/src/alpha", "task_id": "T1", "plan_title": "Split auth module"})

    assert response.status_code == 200
    text = notifier.post_message.call_args.args[1]
    assert "Plan: Split auth module" in text
    assert "Worker: AI_01" in text


def test_unknown_fields_are_ignored(client) -> None:
    response = client.post("/hook/session-end", json={"cwd": "/src/alpha", "reason": "clear", "extra": {"nested": True}})
    assert response.status_code == 200


@pytest.mark.parametrize("path", ["/hook/stop", "/hook/session-end", "/hook/plan-ready", "/hook/task-complete"])
def test_malformed_body_is_rejected(client, container, tracker, path: str) -> None:
    _claim(container)

    response = client.post(path, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert tracker.tasks["T1"].status == "Working"


def test_wrong_field_type_is_rejected(client) -> None:
    response = client.post("/hook/stop", json={"cwd": "/src/alpha", "exit_code": "not-a-number"})
    assert response.status_code == 400


@pytest.mark.parametrize("path", ["/hook/stop", "/hook/session-end", "/hook/plan-ready", "/hook/task-complete"])
def test_wrong_method_is_rejected(client, path: str) -> None:
    assert client.get(path).status_code == 405


def test_task_complete_with_null_status_completes(client, container, tracker) -> None:
    _claim(container)

    response = client.post("/hook/task-complete", json={"cwd": "/src/alpha", "status": None})

    assert response.status_code == 200
    assert tracker.tasks["T1"].status == "Completed"
    assert container.manager.all_idle()


@pytest.mark.parametrize(
    ("path", "payload"),
    [
        ("/hook/stop", {"cwd": None, "exit_code": None, "stop_hook_active": None, "transcript_path": None}),
        ("/hook/session-end", {"cwd": "/src/alpha", "reason": None, "session_id": None}),
        ("/hook/plan-ready", {"cwd": "/src/alpha", "task_id": None, "plan_title": None}),
        ("/hook/task-complete", {"cwd": None, "status": None}),
    ],
)
def test_null_fields_are_treated_as_absent(client, path: str, payload: dict) -> None:
    assert client.post(path, json=payload).status_code == 200


def test_deeply_nested_body_is_rejected(client, container, tracker) -> None:
    _claim(container)
    body = ("[" * 100000 + "]" * 100000).encode("ascii")

    response = client.post("/hook/task-complete", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert tracker.tasks["T1"].status == "Working"
