"""
content-integrity — unit tests for result retention and error fixing

File: tests/unit/engine/test_fixes.py
Last updated: 2026-10-19

Purpose
- Validate the bounded results store and the fix coordinator outcomes.

What this test file should cover
- Latest-results default, lookup by handle and eviction.
- NOT_FOUND, FAILED, FIXED and ALREADY_FIXED outcomes with their messages.
- Fixes never raise, whatever the check or the store does.
"""

from __future__ import annotations

from content_integrity.checks.base import CheckBase
from content_integrity.checks.registry import CheckRegistry
from content_integrity.domain.models import (
    ContentIntegrityError,
    ContentIntegrityErrorList,
    ContentIntegrityResults,
    create_error,
)
from content_integrity.engine.fixes import FixCoordinator, FixOutcome, ResultsSink, ResultsStore
from content_integrity.store import ContentNode, InMemoryContentStore


class _FixableCheck(CheckBase):
    check_id = "fixable"

    def __init__(self, *, outcome: object = True) -> None:
        super().__init__()
        self.outcome = outcome
        self.fixed_paths: list[str] = []

    def fix_error(self, node: ContentNode, error: ContentIntegrityError) -> bool:
        if isinstance(self.outcome, Exception):
            raise self.outcome
        self.fixed_paths.append(node.path)
        return self.outcome  # type: ignore[return-value]


class _ReadOnlyCheck(CheckBase):
    check_id = "read-only"


def _setup(
    check: CheckBase | None = None,
) -> tuple[InMemoryContentStore, CheckRegistry, ResultsStore, FixCoordinator]:
    store = InMemoryContentStore()
    store.add_node("default", "/a", identifier="a")
    registry = CheckRegistry()
    registry.register_builtin(check if check is not None else _FixableCheck())
    registry.register_builtin(_ReadOnlyCheck())
    results_store = ResultsStore(max_retained=3)
    return store, registry, results_store, FixCoordinator(registry, store, results_store)


def _results(
    store: InMemoryContentStore, *check_ids: str, execution_id: str = "scan-1"
) -> ContentIntegrityResults:
    node = store.get_node("default", "/a")
    errors = ContentIntegrityErrorList(
        create_error(node, "problem", check_id=check_id) for check_id in check_ids
    )
    return ContentIntegrityResults(
        workspaces=("default",), errors=errors, execution_id=execution_id
    )


def test_results_store_keeps_latest_and_evicts_oldest() -> None:
    results_store = ResultsStore(max_retained=2)
    for index in range(3):
        results = ContentIntegrityResults(workspaces=("default",), execution_id=f"s{index}")
        results_store.put(results)

    assert results_store.handles() == ("s1", "s2")
    assert results_store.latest_handle == "s2"
    assert results_store.get() is results_store.get("s2")
    assert results_store.get("s0") is None
    assert isinstance(results_store, ResultsSink)


def test_results_without_execution_id_get_a_generated_handle() -> None:
    results_store = ResultsStore()

    handle = results_store.put(ContentIntegrityResults(workspaces=("default",)))

    assert handle.startswith("results-")
    assert len(results_store) == 1


def test_fix_outcomes_and_messages() -> None:
    check = _FixableCheck()
    store, _, results_store, fixes = _setup(check)

    none_yet = fixes.fix_error(0)
    assert none_yet.outcome is FixOutcome.NOT_FOUND
    assert none_yet.message == "No test results found"

    results_store.put(_results(store, "fixable", "read-only"))

    unknown_handle = fixes.fix_error(0, "scan-missing")
    assert unknown_handle.message == "The specified test results couldn't be found"

    out_of_range = fixes.fix_error(7)
    assert out_of_range.outcome is FixOutcome.NOT_FOUND
    assert out_of_range.message == "The specified error (7) couldn't be found"
    assert fixes.fix_error(-1).outcome is FixOutcome.NOT_FOUND

    first = fixes.fix_error(0, "scan-1")
    assert first.outcome is FixOutcome.FIXED
    assert first.newly_fixed
    assert first.message == "Error fixed: 0"
    assert check.fixed_paths == ["/a"]

    second = fixes.fix_error(0)
    assert second.outcome is FixOutcome.ALREADY_FIXED
    assert second.message == "The error (0) is already fixed"
    assert check.fixed_paths == ["/a"]

    not_fixable = fixes.fix_error(1)
    assert not_fixable.outcome is FixOutcome.FAILED
    assert not_fixable.message == "Impossible to fix the error: 1"


def test_fix_failures_never_raise_and_leave_the_error_unfixed() -> None:
    for outcome in (False, None, RuntimeError("boom")):
        store, _, results_store, fixes = _setup(_FixableCheck(outcome=outcome))
        results = _results(store, "fixable")
        results_store.put(results)

        report = fixes.fix_error(0)

        assert report.outcome is FixOutcome.FAILED
        assert results.errors[0].fixed is False


def test_fix_fails_when_node_or_check_is_gone() -> None:
    store, _, results_store, fixes = _setup()
    results_store.put(_results(store, "fixable", "unregistered"))
    store.remove_node(store.get_node("default", "/a"))

    assert fixes.fix_error(0).outcome is FixOutcome.FAILED
    assert fixes.fix_error(1).outcome is FixOutcome.FAILED


def test_fix_errors_reports_each_index() -> None:
    store, _, results_store, fixes = _setup()
    results_store.put(_results(store, "fixable"))

    reports = fixes.fix_errors([0, 0, 3])

    assert [report.outcome for report in reports] == [
        FixOutcome.FIXED,
        FixOutcome.ALREADY_FIXED,
        FixOutcome.NOT_FOUND,
    ]
