from __future__ import annotations

import time

import pytest

from agent_dispatcher.config import WorkerConfig
from agent_dispatcher.runtime.domain.models import QueuedTask
from agent_dispatcher.runtime.orchestrator.errors import CompletionError, RollbackError


def _two_slots_same_path(config_factory):
    return config_factory(
        WorkerConfig(id="AI_01", source_queue_id="list-1", src_path="/src/shared"),
        WorkerConfig(id="AI_02", source_queue_id="list-2", src_path="/src/shared/"),
    )


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_lookup_by_queue_and_path(manager_factory, config_factory) -> None:
    manager = manager_factory(
        config_factory(
            WorkerConfig(id="AI_01", source_queue_id="list-1", src_path="/src/alpha"),
            WorkerConfig(id="AI_02", source_queue_id="list-2", src_path="/src/beta"),
        )
    )

    assert manager.worker_by_source_queue("list-2").id == "AI_02"
    assert manager.worker_by_source_queue("missing") is None
    assert manager.worker_by_src_path("/src/beta/").id == "AI_02"
    assert manager.worker_by_src_path("/src/gamma") is None
    assert manager.is_source_queue("list-1")
    assert not manager.is_source_queue("list-9")
    assert [snapshot.worker_id for snapshot in manager.snapshots()] == ["AI_01", "AI_02"]


def test_shared_path_prefers_processing_worker(manager_factory, config_factory, tracker, task_factory) -> None:
    tracker.tasks["T2"] = task_factory("T2", queue_id="list-2")
    manager = manager_factory(_two_slots_same_path(config_factory))

    assert manager.worker_by_src_path("/src/shared").id == "AI_01"
    manager.workers[1].process_task("T2")
    assert manager.worker_by_src_path("/src/shared").id == "AI_02"


def test_run_once_claims_oldest_pending_task(manager_factory, tracker, task_factory, invoker) -> None:
    tracker.tasks["T0"] = task_factory("T0", created_at="2023-06-01T00:00:00+00:00")
    manager = manager_factory()
    worker = manager.workers[0]

    assert manager.run_once(worker) is True
    assert worker.current_task_id() == "T0"
    assert manager.run_once(worker) is False
    assert len(invoker.calls) == 1
    assert not manager.all_idle()


def test_run_once_survives_fetch_errors(manager_factory, tracker) -> None:
    tracker.fail_list = True
    manager = manager_factory()
    assert manager.run_once(manager.workers[0]) is False
    assert manager.all_idle()


def test_run_once_with_empty_queue(manager_factory, tracker) -> None:
    tracker.tasks.clear()
    manager = manager_factory()
    assert manager.run_once(manager.workers[0]) is False


def test_run_once_reports_stuck_claim_on_launch_failure(manager_factory, invoker) -> None:
    invoker.fail = True
    manager = manager_factory()
    worker = manager.workers[0]

    assert manager.run_once(worker) is True
    assert worker.is_processing()


def test_enqueue_ignores_unmanaged_queue(manager_factory) -> None:
    manager = manager_factory()
    assert manager.enqueue_task("T1", "other-list") is False
    assert manager.enqueue_task("T1", "list-1") is True
    assert len(manager.queue) == 1


def test_dispatch_hands_item_to_idle_worker(manager_factory) -> None:
    manager = manager_factory()
    assert manager.dispatch(QueuedTask(task_id="T1", source_queue_id="list-1")) is True
    assert manager.workers[0].current_task_id() == "T1"


def test_dispatch_drops_item_for_busy_worker(manager_factory, tracker, task_factory) -> None:
    tracker.tasks["T2"] = task_factory("T2")
    manager = manager_factory()
    manager.dispatch(QueuedTask(task_id="T1", source_queue_id="list-1"))

    assert manager.dispatch(QueuedTask(task_id="T2", source_queue_id="list-1")) is False
    assert tracker.tasks["T2"].status == "Open"


def test_dispatch_reports_missing_task(manager_factory) -> None:
    manager = manager_factory()
    assert manager.dispatch(QueuedTask(task_id="ghost", source_queue_id="list-1")) is False
    assert manager.all_idle()


def test_hook_completes_task_of_matching_worker(manager_factory, config_factory, tracker) -> None:
    manager = manager_factory(config_factory(completed_queue_id="done-list"))
    manager.run_once(manager.workers[0])

    manager.on_hook_received("/src/alpha")

    assert tracker.tasks["T1"].status == "Completed"
    assert tracker.tasks["T1"].queue_id == "done-list"
    assert manager.all_idle()


def test_hook_for_unknown_path_is_noop(manager_factory, tracker) -> None:
    manager = manager_factory()
    manager.run_once(manager.workers[0])
    before = list(tracker.calls)

    manager.on_hook_received("/somewhere/else")

    assert tracker.calls == before
    assert manager.workers[0].is_processing()


def test_duplicate_completion_hook_is_harmless(manager_factory, tracker) -> None:
    manager = manager_factory()
    manager.run_once(manager.workers[0])
    manager.on_hook_received("/src/alpha")
    calls = len(tracker.calls)

    manager.on_hook_received("/src/alpha")

    assert len(tracker.calls) == calls


def test_completion_failure_propagates(manager_factory, tracker) -> None:
    manager = manager_factory()
    manager.run_once(manager.workers[0])
    tracker.fail_statuses.add("Completed")

    with pytest.raises(CompletionError):
        manager.on_hook_received("/src/alpha")


def test_session_end_rolls_back_only_on_cancel(manager_factory, tracker) -> None:
    manager = manager_factory()
    manager.run_once(manager.workers[0])

    assert manager.on_session_end("/src/alpha", "other") is False
    assert manager.on_session_end("/src/alpha", "clear") is False
    assert manager.workers[0].is_processing()

    assert manager.on_session_end("/src/alpha", "prompt_input_exit") is True
    assert tracker.tasks["T1"].status == "Open"
    assert manager.all_idle()


def test_session_end_for_idle_or_unknown_worker(manager_factory) -> None:
    manager = manager_factory()
    assert manager.on_session_end("/src/alpha", "prompt_input_exit") is False
    assert manager.on_session_end("/nowhere", "prompt_input_exit") is False


def test_session_end_rollback_failure_propagates_but_clears(manager_factory, tracker) -> None:
    manager = manager_factory()
    manager.run_once(manager.workers[0])
    tracker.fail_statuses.add("Open")

    with pytest.raises(RollbackError):
        manager.on_session_end("/src/alpha", "prompt_input_exit")
    assert manager.all_idle()


def test_start_polls_and_dispatches_until_stopped(manager_factory, config_factory, tracker, task_factory) -> None:
    tracker.tasks.clear()
    tracker.tasks["Q1"] = task_factory("Q1", queue_id="list-2")
    manager = manager_factory(
        config_factory(
            WorkerConfig(id="AI_01", source_queue_id="list-1", src_path="/src/alpha"),
            WorkerConfig(id="AI_02", source_queue_id="list-2", src_path="/src/beta"),
        )
    )

    manager.start()
    try:
        assert _wait_for(lambda: manager.workers[1].current_task_id() == "Q1")
        tracker.tasks["P1"] = task_factory("P1", queue_id="list-1")
        manager.enqueue_task("P1", "list-1")
        assert _wait_for(lambda: manager.workers[0].current_task_id() == "P1")
    finally:
        manager.stop(timeout=2.0)

    assert manager.stopped
