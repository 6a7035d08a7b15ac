"""
content-integrity — unit tests for the execution coordinator

File: tests/unit/engine/test_coordinator.py
Last updated: 2026-10-19

Purpose
- Validate single-flight execution, status and log polling, result merging
  across workspaces, upload handling and retention.

Non-functional requirements
- Synchronization through events and ``wait``, never sleeps.
"""

from __future__ import annotations

import threading

import pytest

from content_integrity.checks.base import CheckBase, CheckConfiguration
from content_integrity.checks.registry import CheckRegistry
from content_integrity.domain.models import (
    ContentIntegrityErrorList,
    ContentIntegrityResults,
    single_error,
)
from content_integrity.engine.coordinator import (
    ConcurrentExecutionError,
    ExecutionCoordinator,
    ExecutionRecord,
    ExecutionStatus,
    ScanRequest,
    run_to_completion,
)
from content_integrity.engine.fixes import ResultsStore
from content_integrity.observability.events import ScanLogEvent
from content_integrity.store import ContentNode, InMemoryContentStore

_WAIT = 10.0


class _FlagCheck(CheckBase):
    check_id = "flag"

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        if node.path == "/":
            return None
        return single_error(self.create_error(node, f"flagged {node.path}"))


class _BlockingCheck(CheckBase):
    check_id = "blocking"

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        self.entered.set()
        self.release.wait(_WAIT)
        return None


class _Sink:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.written: list[ContentIntegrityResults] = []

    def write(self, results: ContentIntegrityResults) -> None:
        if self.fail:
            raise OSError("sink unavailable")
        self.written.append(results)


def _store() -> InMemoryContentStore:
    store = InMemoryContentStore()
    store.add_node("default", "/a")
    store.add_node("default", "/b")
    store.add_node("live", "/a")
    store.add_node("live", "/b")
    store.add_node("live", "/c")
    return store


def _coordinator(*checks: CheckBase, **kwargs: object) -> ExecutionCoordinator:
    registry = CheckRegistry()
    for check in checks:
        registry.register_builtin(check)
    return ExecutionCoordinator(registry, _store(), **kwargs)  # type: ignore[arg-type]


def test_scan_request_normalizes_its_inputs() -> None:
    request = ScanRequest(
        root_path="sites//a/",
        excluded_paths=("/x/", "/x", ""),
        check_whitelist=(" flag ", "flag", ""),
        workspaces=("live", " live", "default"),
    )

    assert request.root_path == "/sites/a"
    assert request.excluded_paths == ("/x",)
    assert request.check_whitelist == ("flag",)
    assert request.workspaces == ("live", "default")

    with pytest.raises(ValueError, match="at least one workspace"):
        ScanRequest(workspaces=())


def test_start_runs_in_background_and_finishes() -> None:
    coordinator = _coordinator(_FlagCheck())

    started = coordinator.start(ScanRequest(upload_results=False))

    assert started.accepted
    execution_id = started.unwrap()
    assert execution_id.startswith("scan-")
    assert coordinator.wait(execution_id, _WAIT) is ExecutionStatus.FINISHED
    results = coordinator.results(execution_id)
    assert results is not None
    assert results.error_count == 2
    assert results.execution_id == execution_id
    assert coordinator.current_execution_id() is None
    logs = coordinator.logs(execution_id)
    assert logs[0] == "Starting to check the integrity under / in the workspace default"
    assert not any(line.endswith("found") for line in logs)


def test_second_start_is_rejected_while_a_scan_runs() -> None:
    blocking = _BlockingCheck()
    coordinator = _coordinator(blocking)

    first = coordinator.start(ScanRequest()).unwrap()
    assert blocking.entered.wait(_WAIT)
    assert coordinator.status(first) is ExecutionStatus.RUNNING

    rejected = coordinator.start(ScanRequest())

    assert not rejected.accepted
    assert rejected.execution_id is None
    assert isinstance(rejected.error, ConcurrentExecutionError)
    assert rejected.error.running_execution_id == first
    assert str(rejected.error) == f"The scan {first} is already running"
    with pytest.raises(ConcurrentExecutionError):
        rejected.unwrap()

    blocking.release.set()
    assert coordinator.wait(first, _WAIT) is ExecutionStatus.FINISHED
    following = coordinator.start(ScanRequest())
    assert following.accepted
    assert coordinator.wait(following.unwrap(), _WAIT) is ExecutionStatus.FINISHED


def test_unknown_execution_ids_get_sentinels() -> None:
    coordinator = _coordinator(_FlagCheck())

    assert coordinator.status("scan-unknown") is ExecutionStatus.UNKNOWN
    assert coordinator.status("scan-unknown").value == "Unknown execution ID"
    assert coordinator.logs("scan-unknown") == ("Unknown execution ID",)
    assert coordinator.results("scan-unknown") is None
    assert coordinator.wait("scan-unknown", 0) is ExecutionStatus.UNKNOWN


def test_workspaces_are_merged_and_counted_in_the_final_line() -> None:
    sink = _Sink()
    coordinator = _coordinator(_FlagCheck(), results_sink=sink)

    execution_id, status = run_to_completion(
        coordinator, ScanRequest(workspaces=("default", "live")), timeout=_WAIT
    )

    assert status is ExecutionStatus.FINISHED
    results = coordinator.results(execution_id)
    assert results is not None
    assert results.workspaces == ("default", "live")
    assert results.error_count == 5
    assert [error.node.workspace for error in results.errors] == ["default"] * 2 + ["live"] * 3
    assert coordinator.logs(execution_id)[-1] == "5 errors found"
    assert sink.written == [results]


def test_upload_without_errors_logs_no_error_and_skips_the_sink() -> None:
    sink = _Sink()
    results_store = ResultsStore()
    coordinator = _coordinator(results_sink=sink, results_store=results_store)

    execution_id, _ = run_to_completion(coordinator, ScanRequest(), timeout=_WAIT)

    logs = coordinator.logs(execution_id)
    assert "No check to run in the workspace default" in logs
    assert logs[-1] == "No error found"
    assert sink.written == []
    assert results_store.latest_handle == execution_id


def test_sink_failure_does_not_fail_the_scan() -> None:
    coordinator = _coordinator(_FlagCheck(), results_sink=_Sink(fail=True))

    execution_id, status = run_to_completion(coordinator, ScanRequest(), timeout=_WAIT)

    assert status is ExecutionStatus.FINISHED
    assert coordinator.logs(execution_id)[-1] == "2 errors found"


def test_unknown_whitelisted_checks_are_reported_once() -> None:
    coordinator = _coordinator(_FlagCheck())

    execution_id, _ = run_to_completion(
        coordinator,
        ScanRequest(check_whitelist=("ghost", "flag"), workspaces=("default", "live")),
        timeout=_WAIT,
    )

    logs = coordinator.logs(execution_id)
    assert logs.count("Unknown check: ghost") == 1
    results = coordinator.results(execution_id)
    assert results is not None
    assert results.error_count == 5


def test_disabled_checks_contribute_nothing() -> None:
    registry = CheckRegistry()
    registry.register_builtin(_FlagCheck(), enabled=False)
    coordinator = ExecutionCoordinator(registry, _store())

    execution_id, _ = run_to_completion(coordinator, ScanRequest(), timeout=_WAIT)

    results = coordinator.results(execution_id)
    assert results is not None
    assert results.error_count == 0
    assert coordinator.logs(execution_id)[-1] == "No error found"


def test_unexpected_failure_marks_the_execution_failed_and_frees_the_slot() -> None:
    class _BrokenStore(InMemoryContentStore):
        def get_node(self, workspace: str, path: str) -> ContentNode:
            raise RuntimeError("store down")

    registry = CheckRegistry()
    registry.register_builtin(_FlagCheck())
    coordinator = ExecutionCoordinator(registry, _BrokenStore())

    execution_id, status = run_to_completion(coordinator, ScanRequest(), timeout=_WAIT)

    assert status is ExecutionStatus.FAILED
    assert coordinator.logs(execution_id)[-1] == "store down"
    assert coordinator.results(execution_id) is None
    assert coordinator.current_execution_id() is None


def test_finished_executions_are_evicted_beyond_the_bound() -> None:
    coordinator = _coordinator(_FlagCheck(), max_retained=2)

    ids = [run_to_completion(coordinator, ScanRequest(), timeout=_WAIT)[0] for _ in range(3)]

    assert coordinator.execution_ids() == tuple(ids[1:])
    assert coordinator.status(ids[0]) is ExecutionStatus.UNKNOWN


def test_log_subscribers_receive_lines_in_order() -> None:
    coordinator = _coordinator(_FlagCheck())
    received: list[ScanLogEvent] = []
    token = coordinator.subscribe(received.append)

    execution_id, _ = run_to_completion(coordinator, ScanRequest(), timeout=_WAIT)

    assert coordinator.unsubscribe(token)
    assert [event.line for event in received] == list(coordinator.logs(execution_id))
    assert [event.sequence for event in received] == list(range(1, len(received) + 1))
    assert {event.execution_id for event in received} == {execution_id}


def test_record_status_only_moves_forward() -> None:
    record = ExecutionRecord(execution_id="scan-x", request=ScanRequest())

    assert record.finish(ExecutionStatus.FINISHED)
    assert not record.finish(ExecutionStatus.FAILED)
    assert record.status is ExecutionStatus.FINISHED
    assert record.finished_at is not None
    with pytest.raises(ValueError, match="not a terminal status"):
        record.finish(ExecutionStatus.RUNNING)


def test_the_running_slot_is_shared_by_every_coordinator_of_the_process() -> None:
    entered = threading.Event()
    release = threading.Event()
    seen: list[object] = []

    class _Gate(CheckBase):
        check_id = "gate"

        def declare_parameters(self, configuration: CheckConfiguration) -> None:
            configuration.declare("mode", "a")

        def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
            seen.append(self.get_parameter("mode"))
            if node.path == "/":
                entered.set()
                release.wait(_WAIT)
            return None

    registry = CheckRegistry()
    registry.register_builtin(_Gate())
    store = _store()
    first_coordinator = ExecutionCoordinator(registry, store)
    second_coordinator = ExecutionCoordinator(registry, store)

    first = first_coordinator.start(ScanRequest()).unwrap()
    assert entered.wait(_WAIT)
    registry.set_parameter("gate", "mode", "b")
    rejected = second_coordinator.start(ScanRequest())

    assert not rejected.accepted
    assert rejected.error is not None
    assert rejected.error.running_execution_id == first
    assert second_coordinator.current_execution_id() == first
    assert second_coordinator.execution_ids() == ()

    release.set()
    assert first_coordinator.wait(first, _WAIT) is ExecutionStatus.FINISHED
    assert seen == ["a", "a", "a"]

    seen.clear()
    _, status = run_to_completion(second_coordinator, ScanRequest(), timeout=_WAIT)
    assert status is ExecutionStatus.FINISHED
    assert second_coordinator.current_execution_id() is None
    assert seen == ["b", "b", "b"]


def test_a_scan_seen_finished_leaves_the_slot_free() -> None:
    coordinator = _coordinator(_FlagCheck())

    previous = ""
    for _ in range(20):
        started = coordinator.start(ScanRequest(upload_results=False))
        assert started.accepted, f"rejected after {previous} reported finished"
        previous = started.unwrap()
        while coordinator.status(previous) is ExecutionStatus.RUNNING:
            coordinator.wait(previous, 0.001)
        assert coordinator.status(previous) is ExecutionStatus.FINISHED
    assert coordinator.wait(previous, _WAIT) is ExecutionStatus.FINISHED
