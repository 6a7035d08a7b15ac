"""
content-integrity — stored result sets and error fixing.

File: src/content_integrity/engine/fixes.py
Last updated: 2026-10-19

Purpose
- Keep the most recent merged result sets addressable by execution id, and
  repair a listed error by delegating to the check that raised it.

Functional requirements
- Errors are addressed by their position in a stored result set; positions
  never shift, fixing only flips the ``fixed`` flag.
- An error already fixed is reported as such and the check is not called.
- A vanished node, a missing or non-fixable check, a check returning False or
  raising all report FAILED and leave the flag untouched.

Non-functional requirements
- Fixes are serialized; two callers never run the same error's fix at once.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable

from content_integrity.checks.base import FixableCheck
from content_integrity.checks.registry import CheckRegistry, UnknownCheckError
from content_integrity.constants import DEFAULT_MAX_RETAINED_RESULTS
from content_integrity.domain.ids import generate_ulid
from content_integrity.domain.models import ContentIntegrityError, ContentIntegrityResults
from content_integrity.observability.logging import correlation_scope
from content_integrity.store.base import ContentStore, NodeNotFoundError, StoreAccessError

logger = logging.getLogger(__name__)


@runtime_checkable
class ResultsSink(Protocol):
    """Receives the merged results of a scan run with upload requested."""

    def write(self, results: ContentIntegrityResults) -> None: ...


class ResultsStore:
    """Bounded store of merged result sets; also usable as a ``ResultsSink``."""

    def __init__(self, *, max_retained: int = DEFAULT_MAX_RETAINED_RESULTS) -> None:
        if isinstance(max_retained, bool) or not isinstance(max_retained, int):
            raise ValueError("max_retained must be an integer")
        if max_retained < 1:
            raise ValueError("max_retained must be >= 1")
        self._max_retained = max_retained
        self._entries: OrderedDict[str, ContentIntegrityResults] = OrderedDict()
        self._lock = threading.Lock()

    def write(self, results: ContentIntegrityResults) -> None:
        self.put(results)

    def put(self, results: ContentIntegrityResults) -> str:
        handle = results.execution_id or f"results-{generate_ulid()}"
        with self._lock:
            self._entries.pop(handle, None)
            self._entries[handle] = results
            while len(self._entries) > self._max_retained:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted stored results %s", evicted)
        return handle

    def get(self, handle: str | None = None) -> ContentIntegrityResults | None:
        """Return the results for ``handle``, or the most recent ones when omitted."""

        with self._lock:
            if handle is None:
                if not self._entries:
                    return None
                return next(reversed(self._entries.values()))
            return self._entries.get(handle)

    def handles(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._entries)

    @property
    def latest_handle(self) -> str | None:
        with self._lock:
            return next(reversed(self._entries), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class FixOutcome(StrEnum):
    ALREADY_FIXED = "already_fixed"
    FIXED = "fixed"
    FAILED = "failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class FixReport:
    index: int
    outcome: FixOutcome
    message: str

    @property
    def newly_fixed(self) -> bool:
        return self.outcome is FixOutcome.FIXED


class FixCoordinator:
    """Resolves a stored error by position and asks its check to repair it."""

    def __init__(
        self,
        registry: CheckRegistry,
        store: ContentStore,
        results_store: ResultsStore,
    ) -> None:
        self._registry = registry
        self._store = store
        self._results_store = results_store
        self._lock = threading.Lock()

    def fix_error(self, index: int, handle: str | None = None) -> FixReport:
        with self._lock:
            results = self._results_store.get(handle)
            if results is None:
                message = (
                    "No test results found"
                    if handle is None
                    else "The specified test results couldn't be found"
                )
                return FixReport(index=index, outcome=FixOutcome.NOT_FOUND, message=message)
            if isinstance(index, bool) or not isinstance(index, int):
                return _not_found(index)
            if index < 0 or index >= len(results.errors):
                return _not_found(index)

            error = results.errors[index]
            if error.fixed:
                return FixReport(
                    index=index,
                    outcome=FixOutcome.ALREADY_FIXED,
                    message=f"The error ({index}) is already fixed",
                )
            with correlation_scope(check_id=error.check_id, workspace=error.node.workspace):
                fixed = self._delegate(error)
            if not fixed:
                return FixReport(
                    index=index,
                    outcome=FixOutcome.FAILED,
                    message=f"Impossible to fix the error: {index}",
                )
            error.mark_fixed()
            logger.info("Fixed error %s (%s on %s)", index, error.check_id, error.node.path)
            return FixReport(index=index, outcome=FixOutcome.FIXED, message=f"Error fixed: {index}")

    def fix_errors(
        self, indexes: Iterable[int], handle: str | None = None
    ) -> tuple[FixReport, ...]:
        return tuple(self.fix_error(index, handle) for index in indexes)

    def _delegate(self, error: ContentIntegrityError) -> bool:
        try:
            check = self._registry.get_check(error.check_id)
        except UnknownCheckError:
            logger.error("Check %s is not registered anymore", error.check_id)
            return False
        if not isinstance(check, FixableCheck):
            logger.info("Check %s does not support fixing", error.check_id)
            return False
        try:
            node = self._store.get_node_by_identifier(error.node.workspace, error.node.identifier)
        except (NodeNotFoundError, StoreAccessError):
            logger.warning(
                "Node %s (%s) is not available anymore in %s",
                error.node.path,
                error.node.identifier,
                error.node.workspace,
            )
            return False
        try:
            return check.fix_error(node, error) is True
        except Exception:  # noqa: BLE001
            logger.exception("Fix of %s failed on %s", error.check_id, error.node.path)
            return False


def _not_found(index: object) -> FixReport:
    position = index if isinstance(index, int) and not isinstance(index, bool) else -1
    return FixReport(
        index=position,
        outcome=FixOutcome.NOT_FOUND,
        message=f"The specified error ({index}) couldn't be found",
    )


__all__ = [
    "FixCoordinator",
    "FixOutcome",
    "FixReport",
    "ResultsSink",
    "ResultsStore",
]
