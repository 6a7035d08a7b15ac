"""Merging of per-workspace results and summary counters."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from content_integrity.constants import NO_ERROR_FOUND
from content_integrity.domain.models import ContentIntegrityErrorList, ContentIntegrityResults


@dataclass(frozen=True, slots=True)
class ResultsSummary:
    workspaces: tuple[str, ...]
    nodes_scanned: int
    error_count: int
    fixed_count: int
    duration_ms: int
    errors_by_check: dict[str, int]
    errors_by_type: dict[str, int]


def merge_results(
    results: Iterable[ContentIntegrityResults | None],
) -> ContentIntegrityResults | None:
    """Combine result sets in input order.

    Error lists are concatenated, so an index into the merged list points at
    the same error object as in the originating pass. ``None`` is returned
    only when there is nothing to merge.
    """

    present = [item for item in results if item is not None]
    if not present:
        return None

    errors = ContentIntegrityErrorList()
    for item in present:
        errors.extend_from(item.errors)

    execution_id = next(
        (item.execution_id for item in present if item.execution_id is not None), None
    )
    return ContentIntegrityResults(
        workspaces=tuple(dict.fromkeys(ws for item in present for ws in item.workspaces)),
        errors=errors,
        execution_id=execution_id,
        root_path=present[0].root_path,
        nodes_scanned=sum(item.nodes_scanned for item in present),
        duration_ms=sum(item.duration_ms for item in present),
    )


def summarize(results: ContentIntegrityResults) -> ResultsSummary:
    return ResultsSummary(
        workspaces=results.workspaces,
        nodes_scanned=results.nodes_scanned,
        error_count=results.error_count,
        fixed_count=sum(1 for error in results.errors if error.fixed),
        duration_ms=results.duration_ms,
        errors_by_check=results.errors_by_check(),
        errors_by_type=results.errors_by_type(),
    )


def error_count_line(count: int) -> str:
    """Final user-facing line of a scan log."""

    if count <= 0:
        return NO_ERROR_FOUND
    if count == 1:
        return "1 error found"
    return f"{count} errors found"


__all__ = ["ResultsSummary", "error_count_line", "merge_results", "summarize"]
