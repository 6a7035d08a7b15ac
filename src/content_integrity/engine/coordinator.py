"""
content-integrity — execution coordinator.

File: src/content_integrity/engine/coordinator.py
Last updated: 2026-10-19

Purpose
- Run one scan at a time on a background thread, give it an execution id, and
  expose its status, log lines and merged results to pollers.

Functional requirements
- ``start`` returns immediately. While any scan of the process is running,
  whichever coordinator started it, ``start`` is rejected with
  ``ConcurrentExecutionError`` carried in the ``StartResult``.
- Log lines of an execution are append-only and read as snapshots.
- Status moves from RUNNING to exactly one terminal state and never back.
- With upload requested, the log ends with the error count line.
- The single-flight slot is released however the worker ends, in the same step
  that records the terminal status.

Non-functional requirements
- Finished executions are retained up to a bound; a running one is never evicted.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from content_integrity.checks.registry import CheckRegistry
from content_integrity.constants import (
    DEFAULT_MAX_RETAINED_EXECUTIONS,
    DEFAULT_PROGRESS_INTERVAL,
    EDIT_WORKSPACE,
    ROOT_PATH,
    UNKNOWN_EXECUTION_ID,
)
from content_integrity.domain.ids import generate_execution_id, short_id
from content_integrity.domain.models import ContentIntegrityResults
from content_integrity.engine.aggregation import error_count_line, merge_results
from content_integrity.engine.fixes import ResultsSink, ResultsStore
from content_integrity.engine.traversal import TraversalEngine
from content_integrity.observability.events import LogEventBus, ScanLogEvent, Subscriber
from content_integrity.observability.logging import correlation_scope
from content_integrity.store.base import ContentStore, normalize_path

logger = logging.getLogger(__name__)

# One scan at a time per process, whichever coordinator started it: checks and
# their pinned configuration are shared through the registry.
_SLOT_LOCK = threading.Lock()
_current_execution: str | None = None


def running_execution_id() -> str | None:
    with _SLOT_LOCK:
        return _current_execution


class ExecutionStatus(StrEnum):
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    UNKNOWN = UNKNOWN_EXECUTION_ID

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.FINISHED, ExecutionStatus.FAILED)


class ConcurrentExecutionError(RuntimeError):
    """Raised when a scan is requested while another one is running."""

    def __init__(self, running_execution_id: str) -> None:
        super().__init__(f"The scan {running_execution_id} is already running")
        self.running_execution_id = running_execution_id


@dataclass(frozen=True, slots=True)
class ScanRequest:
    root_path: str = ROOT_PATH
    excluded_paths: tuple[str, ...] = ()
    check_whitelist: tuple[str, ...] = ()
    workspaces: tuple[str, ...] = (EDIT_WORKSPACE,)
    upload_results: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "root_path", normalize_path(self.root_path or ROOT_PATH))
        object.__setattr__(
            self,
            "excluded_paths",
            tuple(dict.fromkeys(normalize_path(item) for item in self.excluded_paths if item)),
        )
        object.__setattr__(
            self,
            "check_whitelist",
            tuple(dict.fromkeys(item.strip() for item in self.check_whitelist if item.strip())),
        )
        workspaces = tuple(dict.fromkeys(item.strip() for item in self.workspaces if item.strip()))
        if not workspaces:
            raise ValueError("workspaces: at least one workspace is required")
        object.__setattr__(self, "workspaces", workspaces)
        object.__setattr__(self, "upload_results", bool(self.upload_results))


@dataclass(frozen=True, slots=True)
class StartResult:
    execution_id: str | None
    error: ConcurrentExecutionError | None = None

    @property
    def accepted(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the execution id, raising the rejection when there is none."""

        if self.error is not None:
            raise self.error
        assert self.execution_id is not None
        return self.execution_id


@dataclass(slots=True)
class ExecutionRecord:
    """Bookkeeping of one execution; also the console its passes write to."""

    execution_id: str
    request: ScanRequest
    bus: LogEventBus | None = field(default=None, repr=False)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    results: ContentIntegrityResults | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    finished_at: datetime | None = None
    _lines: list[str] = field(default_factory=list, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    _done: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    def log_line(self, line: str) -> None:
        with self._lock:
            self._lines.append(line)
            sequence = len(self._lines)
        logger.info(line)
        if self.bus is not None:
            self.bus.publish(
                ScanLogEvent(execution_id=self.execution_id, sequence=sequence, line=line)
            )

    def lines(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._lines)

    def finish(self, status: ExecutionStatus) -> bool:
        """Move to a terminal status; returns False when already terminal."""

        if not status.is_terminal:
            raise ValueError(f"status: {status.value!r} is not a terminal status")
        with self._lock:
            if self.status.is_terminal:
                return False
            self.status = status
            self.finished_at = datetime.now(tz=UTC)
            return True

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    def mark_done(self) -> None:
        self._done.set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)


class ExecutionCoordinator:
    """Single-flight runner of scans over the registered checks."""

    def __init__(
        self,
        registry: CheckRegistry,
        store: ContentStore,
        *,
        results_sink: ResultsSink | None = None,
        results_store: ResultsStore | None = None,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
        max_retained: int = DEFAULT_MAX_RETAINED_EXECUTIONS,
    ) -> None:
        if isinstance(max_retained, bool) or not isinstance(max_retained, int):
            raise ValueError("max_retained must be an integer")
        if max_retained < 1:
            raise ValueError("max_retained must be >= 1")
        self._registry = registry
        self._engine = TraversalEngine(store, progress_interval=progress_interval)
        self._results_sink = results_sink
        self._results_store = results_store
        self._max_retained = max_retained
        self._records: OrderedDict[str, ExecutionRecord] = OrderedDict()
        self._lock = threading.Lock()
        self._bus = LogEventBus()

    def start(self, request: ScanRequest | None = None) -> StartResult:
        global _current_execution

        request = request if request is not None else ScanRequest()
        with _SLOT_LOCK:
            if _current_execution is not None:
                logger.warning("Scan rejected, %s is still running", _current_execution)
                return StartResult(
                    execution_id=None, error=ConcurrentExecutionError(_current_execution)
                )
            execution_id = generate_execution_id()
            record = ExecutionRecord(execution_id=execution_id, request=request, bus=self._bus)
            _current_execution = execution_id
            with self._lock:
                self._records[execution_id] = record
                self._evict_locked()

        worker = threading.Thread(
            target=self._run,
            args=(record,),
            name=f"content-integrity-{short_id(execution_id)}",
            daemon=True,
        )
        try:
            worker.start()
        except RuntimeError as exc:
            record.log_line(str(exc))
            _settle(record, ExecutionStatus.FAILED)
            raise
        return StartResult(execution_id=execution_id)

    def status(self, execution_id: str) -> ExecutionStatus:
        record = self._record(execution_id)
        if record is None:
            return ExecutionStatus.UNKNOWN
        return record.status

    def logs(self, execution_id: str) -> tuple[str, ...]:
        record = self._record(execution_id)
        if record is None:
            return (UNKNOWN_EXECUTION_ID,)
        return record.lines()

    def results(self, execution_id: str) -> ContentIntegrityResults | None:
        record = self._record(execution_id)
        return None if record is None else record.results

    def current_execution_id(self) -> str | None:
        return running_execution_id()

    def execution_ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._records)

    def wait(self, execution_id: str, timeout: float | None = None) -> ExecutionStatus:
        """Block until the execution ends (or ``timeout`` elapses) and return its status."""

        record = self._record(execution_id)
        if record is None:
            return ExecutionStatus.UNKNOWN
        record.wait(timeout)
        return record.status

    def subscribe(self, listener: Subscriber, *, execution_id: str | None = None) -> int:
        return self._bus.subscribe(listener, execution_id=execution_id)

    def unsubscribe(self, token: int) -> bool:
        return self._bus.unsubscribe(token)

    def _record(self, execution_id: str) -> ExecutionRecord | None:
        with self._lock:
            return self._records.get(execution_id)

    def _evict_locked(self) -> None:
        overflow = len(self._records) - self._max_retained
        if overflow <= 0:
            return
        evictable = [key for key, item in self._records.items() if item.status.is_terminal]
        for key in evictable[:overflow]:
            del self._records[key]
            logger.debug("Evicted execution record %s", key)

    def _run(self, record: ExecutionRecord) -> None:
        outcome = ExecutionStatus.FAILED
        with correlation_scope(execution_id=record.execution_id):
            try:
                self._execute(record)
                outcome = ExecutionStatus.FINISHED
            except Exception as exc:  # noqa: BLE001
                logger.exception("Scan %s failed", record.execution_id)
                record.log_line(str(exc) or exc.__class__.__name__)
            finally:
                _settle(record, outcome)

    def _execute(self, record: ExecutionRecord) -> None:
        if self.current_execution_id() != record.execution_id:
            raise ConcurrentExecutionError(self.current_execution_id() or "<unknown>")

        request = record.request
        passes: list[ContentIntegrityResults] = []
        reported_unknown: set[str] = set()
        for workspace in request.workspaces:
            with correlation_scope(workspace=workspace):
                resolution = self._registry.resolve(request.check_whitelist, workspace=workspace)
                for unknown in resolution.unknown_ids:
                    if unknown not in reported_unknown:
                        reported_unknown.add(unknown)
                        record.log_line(f"Unknown check: {unknown}")
                if resolution.is_empty():
                    record.log_line(f"No check to run in the workspace {workspace}")
                    passes.append(
                        ContentIntegrityResults(
                            workspaces=(workspace,),
                            execution_id=record.execution_id,
                            root_path=request.root_path,
                        )
                    )
                    continue
                passes.append(
                    self._engine.run(
                        workspace=workspace,
                        checks=resolution,
                        root_path=request.root_path,
                        excluded_paths=request.excluded_paths,
                        console=record,
                        execution_id=record.execution_id,
                    )
                )

        merged = merge_results(passes)
        record.results = merged
        if merged is not None and self._results_store is not None:
            self._results_store.put(merged)
        if not request.upload_results:
            return
        count = 0 if merged is None else merged.error_count
        record.log_line(error_count_line(count))
        if merged is None or count == 0 or self._results_sink is None:
            return
        try:
            self._results_sink.write(merged)
        except Exception:  # noqa: BLE001
            logger.exception("Results of %s could not be written", record.execution_id)


def _settle(record: ExecutionRecord, status: ExecutionStatus) -> None:
    """Record the terminal status and free the slot in one step, then wake waiters."""

    global _current_execution

    with _SLOT_LOCK:
        record.finish(status)
        if _current_execution == record.execution_id:
            _current_execution = None
    record.mark_done()


def run_to_completion(
    coordinator: ExecutionCoordinator,
    request: ScanRequest,
    *,
    timeout: float | None = None,
) -> tuple[str, ExecutionStatus]:
    """Start a scan and wait for it; raises ``ConcurrentExecutionError`` on rejection."""

    execution_id = coordinator.start(request).unwrap()
    return execution_id, coordinator.wait(execution_id, timeout)


__all__ = [
    "ConcurrentExecutionError",
    "ExecutionCoordinator",
    "ExecutionRecord",
    "ExecutionStatus",
    "ScanRequest",
    "StartResult",
    "run_to_completion",
    "running_execution_id",
]
