"""Traversal, aggregation, fixing and execution coordination."""

from content_integrity.engine.aggregation import (
    ResultsSummary,
    error_count_line,
    merge_results,
    summarize,
)
from content_integrity.engine.coordinator import (
    ConcurrentExecutionError,
    ExecutionCoordinator,
    ExecutionRecord,
    ExecutionStatus,
    ScanRequest,
    StartResult,
    run_to_completion,
)
from content_integrity.engine.fixes import (
    FixCoordinator,
    FixOutcome,
    FixReport,
    ResultsSink,
    ResultsStore,
)
from content_integrity.engine.traversal import LoggerConsole, ScanConsole, TraversalEngine

__all__ = [
    "ConcurrentExecutionError",
    "ExecutionCoordinator",
    "ExecutionRecord",
    "ExecutionStatus",
    "FixCoordinator",
    "FixOutcome",
    "FixReport",
    "LoggerConsole",
    "ResultsSink",
    "ResultsStore",
    "ResultsSummary",
    "ScanConsole",
    "ScanRequest",
    "StartResult",
    "TraversalEngine",
    "error_count_line",
    "merge_results",
    "run_to_completion",
    "summarize",
]
