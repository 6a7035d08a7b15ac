"""
content-integrity — tree traversal driver.

File: src/content_integrity/engine/traversal.py
Last updated: 2026-10-19

Purpose
- Walk one workspace subtree once, depth-first pre-order, and run every
  resolved check on entry to and on exit from each node.

Functional requirements
- Nodes at or below an excluded path are skipped with their whole subtree.
- A check raising on a node is logged and contributes nothing for that node;
  the other checks and the walk continue.
- Unreadable children lists are logged; the walk continues with siblings.
- Check parameters are pinned for the duration of the pass.

Non-functional requirements
- Iterative walk with an explicit stack: tree depth is not bounded by the
  interpreter recursion limit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Final, Protocol

from content_integrity.checks.registry import CheckDescriptor, CheckResolution
from content_integrity.constants import DEFAULT_PROGRESS_INTERVAL, ROOT_PATH
from content_integrity.domain.models import ContentIntegrityErrorList, ContentIntegrityResults
from content_integrity.observability.logging import correlation_scope
from content_integrity.store.base import (
    ContentNode,
    ContentStore,
    NodeNotFoundError,
    StoreAccessError,
    is_same_or_descendant,
    normalize_path,
)

logger = logging.getLogger(__name__)

_ENTER: Final[int] = 0
_EXIT: Final[int] = 1


class ScanConsole(Protocol):
    """User-facing progress sink for one execution."""

    def log_line(self, line: str) -> None: ...


class LoggerConsole:
    """Console that only mirrors lines to the diagnostic logger."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target if target is not None else logger

    def log_line(self, line: str) -> None:
        self._logger.info(line)


@dataclass(slots=True)
class _Frame:
    node: ContentNode
    phase: int
    checks: tuple[CheckDescriptor, ...] = ()


class TraversalEngine:
    """Runs resolved checks over one workspace subtree."""

    def __init__(
        self,
        store: ContentStore,
        *,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if isinstance(progress_interval, bool) or not isinstance(progress_interval, int):
            raise ValueError("progress_interval must be an integer")
        if progress_interval < 1:
            raise ValueError("progress_interval must be >= 1")
        self._store = store
        self._progress_interval = progress_interval
        self._clock = clock

    def run(
        self,
        *,
        workspace: str,
        checks: CheckResolution | Sequence[CheckDescriptor],
        root_path: str = ROOT_PATH,
        excluded_paths: Sequence[str] = (),
        console: ScanConsole | None = None,
        execution_id: str | None = None,
    ) -> ContentIntegrityResults:
        out = console if console is not None else LoggerConsole()
        root = normalize_path(root_path)
        excluded = tuple(dict.fromkeys(normalize_path(path) for path in excluded_paths))
        descriptors = tuple(checks.descriptors if isinstance(checks, CheckResolution) else checks)
        started = self._clock()
        errors = ContentIntegrityErrorList()

        def _results(nodes_scanned: int) -> ContentIntegrityResults:
            return ContentIntegrityResults(
                workspaces=(workspace,),
                errors=errors,
                execution_id=execution_id,
                root_path=root,
                nodes_scanned=nodes_scanned,
                duration_ms=int((self._clock() - started) * 1000),
            )

        out.log_line(f"Starting to check the integrity under {root} in the workspace {workspace}")
        if _is_excluded(root, excluded):
            out.log_line(f"The scan root {root} is excluded, nothing to check")
            return _results(0)
        try:
            scan_root = self._store.get_node(workspace, root)
        except NodeNotFoundError:
            out.log_line(f"No node at {root} in the workspace {workspace}, nothing to check")
            return _results(0)
        except StoreAccessError as exc:
            logger.exception("Impossible to load the scan root %s in %s", root, workspace)
            out.log_line(f"Impossible to load the scan root {root}: {exc}")
            return _results(0)

        with ExitStack() as pins:
            for descriptor in descriptors:
                configuration = descriptor.configuration
                if configuration is not None:
                    pins.enter_context(configuration.pinned())
            active = self._initialize(descriptors, scan_root, excluded, out)
            if not active:
                out.log_line(f"No check to run in the workspace {workspace}")
                return _results(0)
            out.log_line(f"Checks to run: {', '.join(item.check_id for item in active)}")
            nodes_scanned = self._walk(scan_root, active, excluded, errors, out)

        result = _results(nodes_scanned)
        out.log_line(
            f"Integrity checked under {root} in the workspace {workspace} "
            f"in {result.duration_ms} ms ({nodes_scanned} nodes, {len(errors)} errors)"
        )
        return result

    def _initialize(
        self,
        descriptors: tuple[CheckDescriptor, ...],
        scan_root: ContentNode,
        excluded: tuple[str, ...],
        out: ScanConsole,
    ) -> tuple[CheckDescriptor, ...]:
        active: list[CheckDescriptor] = []
        for descriptor in descriptors:
            try:
                descriptor.check.initialize(scan_root, excluded)
            except Exception as exc:  # noqa: BLE001
                with correlation_scope(check_id=descriptor.check_id):
                    logger.exception("Initialization of %s failed", descriptor.check_id)
                out.log_line(f"Check {descriptor.check_id} disabled for this scan: {exc}")
                continue
            active.append(descriptor)
        return tuple(active)

    def _walk(
        self,
        scan_root: ContentNode,
        checks: tuple[CheckDescriptor, ...],
        excluded: tuple[str, ...],
        errors: ContentIntegrityErrorList,
        out: ScanConsole,
    ) -> int:
        nodes_scanned = 0
        stack: list[_Frame] = [_Frame(node=scan_root, phase=_ENTER)]
        while stack:
            frame = stack.pop()
            node = frame.node
            if frame.phase == _EXIT:
                for descriptor in frame.checks:
                    self._collect(descriptor, "check_after_children", node, errors)
                continue

            if _is_excluded(node.path, excluded):
                continue
            nodes_scanned += 1
            applicable = tuple(item for item in checks if _applies(item, node))
            for descriptor in applicable:
                self._collect(descriptor, "check_before_children", node, errors)
            stack.append(_Frame(node=node, phase=_EXIT, checks=applicable))
            try:
                children = self._store.children(node)
            except (StoreAccessError, NodeNotFoundError):
                logger.exception("Impossible to load the children of %s", node.path)
                out.log_line(f"Impossible to load the children of {node.path}, subtree skipped")
                children = ()
            for child in reversed(children):
                stack.append(_Frame(node=child, phase=_ENTER))

            if nodes_scanned % self._progress_interval == 0:
                out.log_line(f"{nodes_scanned} nodes scanned, {len(errors)} errors found so far")
        return nodes_scanned

    def _collect(
        self,
        descriptor: CheckDescriptor,
        hook: str,
        node: ContentNode,
        errors: ContentIntegrityErrorList,
    ) -> None:
        try:
            found = getattr(descriptor.check, hook)(node)
        except Exception:  # noqa: BLE001
            with correlation_scope(check_id=descriptor.check_id):
                logger.exception("%s.%s failed on %s", descriptor.check_id, hook, node.path)
            return
        if found is None:
            return
        if not isinstance(found, ContentIntegrityErrorList):
            logger.error(
                "%s.%s returned %s instead of an error list",
                descriptor.check_id,
                hook,
                type(found).__name__,
            )
            return
        errors.extend_from(found)


def _applies(descriptor: CheckDescriptor, node: ContentNode) -> bool:
    try:
        return descriptor.conditions.applies_to_node(node) and bool(
            descriptor.check.is_applicable(node)
        )
    except Exception:  # noqa: BLE001
        with correlation_scope(check_id=descriptor.check_id):
            logger.exception("Applicability of %s failed on %s", descriptor.check_id, node.path)
        return False


def _is_excluded(path: str, excluded: tuple[str, ...]) -> bool:
    return any(is_same_or_descendant(path, item) for item in excluded)


__all__ = ["LoggerConsole", "ScanConsole", "TraversalEngine"]
