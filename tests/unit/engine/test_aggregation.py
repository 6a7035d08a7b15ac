"""Unit tests for result merging and summaries."""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from content_integrity.domain.models import (
    ContentIntegrityErrorList,
    ContentIntegrityResults,
    ContentNodeRef,
    create_error,
)
from content_integrity.engine.aggregation import error_count_line, merge_results, summarize

_WORKSPACES = st.sampled_from(["default", "live", "archive"])


@st.composite
def _results(draw: st.DrawFn) -> ContentIntegrityResults:
    workspace = draw(_WORKSPACES)
    count = draw(st.integers(min_value=0, max_value=3))
    node = ContentNodeRef(identifier="n", path="/n", workspace=workspace)
    errors = ContentIntegrityErrorList(
        create_error(node, f"error {index}", check_id="c") for index in range(count)
    )
    return ContentIntegrityResults(
        workspaces=(workspace,),
        errors=errors,
        execution_id=draw(st.one_of(st.none(), st.just("scan-1"))),
        nodes_scanned=draw(st.integers(min_value=0, max_value=50)),
        duration_ms=draw(st.integers(min_value=0, max_value=1000)),
    )


def _shape(results: ContentIntegrityResults | None) -> tuple[object, ...] | None:
    if results is None:
        return None
    return (
        results.workspaces,
        tuple(id(error) for error in results.errors),
        results.nodes_scanned,
        results.duration_ms,
        results.execution_id,
    )


@settings(max_examples=60, deadline=None)
@given(_results(), _results(), _results())
def test_merge_is_associative(
    first: ContentIntegrityResults,
    second: ContentIntegrityResults,
    third: ContentIntegrityResults,
) -> None:
    left = merge_results([merge_results([first, second]), third])
    right = merge_results([first, merge_results([second, third])])

    assert _shape(left) == _shape(right)


@settings(max_examples=60, deadline=None)
@given(st.lists(st.one_of(st.none(), _results()), max_size=4))
def test_merge_preserves_every_error_in_order(
    items: list[ContentIntegrityResults | None],
) -> None:
    merged = merge_results(items)
    present = [item for item in items if item is not None]

    if not present:
        assert merged is None
        return
    assert merged is not None
    expected = [id(error) for item in present for error in item.errors]
    assert [id(error) for error in merged.errors] == expected
    assert merged.error_count == sum(item.error_count for item in present)
    assert merged.nodes_scanned == sum(item.nodes_scanned for item in present)


def test_merge_with_absent_operand_is_identity_on_content() -> None:
    node = ContentNodeRef(identifier="n", path="/n", workspace="default")
    only = ContentIntegrityResults(
        workspaces=("default",),
        errors=ContentIntegrityErrorList([create_error(node, "x", check_id="c")]),
        root_path="/sites",
    )

    merged = merge_results([None, only, None])

    assert merged is not None
    assert _shape(merged) == _shape(only)
    assert merged.root_path == "/sites"
    assert merge_results([]) is None
    assert merge_results([None]) is None


def test_merge_deduplicates_workspaces_in_order() -> None:
    items = [
        ContentIntegrityResults(workspaces=("live",)),
        ContentIntegrityResults(workspaces=("default",)),
        ContentIntegrityResults(workspaces=("live",)),
    ]

    merged = merge_results(items)

    assert merged is not None
    assert merged.workspaces == ("live", "default")


def test_summary_counts_fixed_errors() -> None:
    node = ContentNodeRef(identifier="n", path="/n", workspace="default")
    errors = ContentIntegrityErrorList(
        [create_error(node, "a", check_id="c"), create_error(node, "b", check_id="d")]
    )
    errors[1].mark_fixed()

    summary = summarize(ContentIntegrityResults(workspaces=("default",), errors=errors))

    assert summary.error_count == 2
    assert summary.fixed_count == 1
    assert summary.errors_by_check == {"c": 1, "d": 1}


def test_error_count_line_wording() -> None:
    assert error_count_line(0) == "No error found"
    assert error_count_line(1) == "1 error found"
    assert error_count_line(5) == "5 errors found"
