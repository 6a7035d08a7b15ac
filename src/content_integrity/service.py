"""
content-integrity — service facade.

File: src/content_integrity/service.py
Last updated: 2026-10-19

Purpose
- Single entry point wiring the check registry, the execution coordinator,
  the stored results and the fix coordinator over one content store.

Functional requirements
- Built-in checks are registered at construction; external plugins and
  per-check settings come from the ``[plugins]`` and ``[checks.<id>]`` config
  sections.
- Scan requests fall back to the ``[scan]`` defaults for anything omitted.
- Status, logs and fix lookups never raise for unknown ids.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from content_integrity.checks.builtin import register_builtin_checks
from content_integrity.checks.registry import CheckInfo, CheckRegistry
from content_integrity.config.schema import (
    ConfigValidationError,
    ConfigValidationIssue,
    assert_valid_config,
    default_config,
)
from content_integrity.domain.models import ContentIntegrityResults
from content_integrity.engine.coordinator import (
    ExecutionCoordinator,
    ExecutionStatus,
    ScanRequest,
    StartResult,
)
from content_integrity.engine.fixes import (
    FixCoordinator,
    FixOutcome,
    FixReport,
    ResultsSink,
    ResultsStore,
)
from content_integrity.observability.events import Subscriber
from content_integrity.store.base import ContentStore

logger = logging.getLogger(__name__)


class ContentIntegrityService:
    """Operations exposed to callers: scan, poll, fix and check management."""

    def __init__(
        self,
        store: ContentStore,
        *,
        config: Mapping[str, object] | None = None,
        registry: CheckRegistry | None = None,
        results_sink: ResultsSink | None = None,
    ) -> None:
        self._config: dict[str, Any] = assert_valid_config(
            config if config is not None else default_config()
        )
        if registry is None:
            registry = CheckRegistry()
            register_builtin_checks(registry)
        self._registry = registry
        self._store = store

        plugins = self._config["plugins"]["factories"]
        if plugins:
            loaded = registry.load_plugins(plugins)
            logger.info("Loaded external checks: %s", ", ".join(loaded))
        apply_check_settings(registry, self._config["checks"])

        executions = self._config["executions"]
        self._results_store = ResultsStore(max_retained=executions["max_retained_results"])
        self._coordinator = ExecutionCoordinator(
            registry,
            store,
            results_sink=results_sink,
            results_store=self._results_store,
            progress_interval=self._config["scan"]["progress_interval"],
            max_retained=executions["max_retained"],
        )
        self._fixes = FixCoordinator(registry, store, self._results_store)

    @property
    def registry(self) -> CheckRegistry:
        return self._registry

    @property
    def store(self) -> ContentStore:
        return self._store

    @property
    def config(self) -> dict[str, Any]:
        return self._config

    @property
    def results_store(self) -> ResultsStore:
        return self._results_store

    # scans ---------------------------------------------------------------

    def start_scan(
        self,
        root_path: str | None = None,
        excluded_paths: Sequence[str] = (),
        check_whitelist: Sequence[str] = (),
        workspaces: Sequence[str] | None = None,
        upload_results: bool | None = None,
    ) -> StartResult:
        scan = self._config["scan"]
        request = ScanRequest(
            root_path=root_path or scan["default_root_path"],
            excluded_paths=tuple(excluded_paths),
            check_whitelist=tuple(check_whitelist),
            workspaces=tuple(workspaces) if workspaces else tuple(scan["default_workspaces"]),
            upload_results=scan["upload_results"] if upload_results is None else upload_results,
        )
        return self._coordinator.start(request)

    def get_status(self, execution_id: str) -> str:
        return self._coordinator.status(execution_id).value

    def get_logs(self, execution_id: str) -> tuple[str, ...]:
        return self._coordinator.logs(execution_id)

    def get_results(self, execution_id: str) -> ContentIntegrityResults | None:
        return self._coordinator.results(execution_id)

    def latest_results(self) -> ContentIntegrityResults | None:
        return self._results_store.get()

    def current_execution_id(self) -> str | None:
        return self._coordinator.current_execution_id()

    def wait(self, execution_id: str, timeout: float | None = None) -> ExecutionStatus:
        return self._coordinator.wait(execution_id, timeout)

    def subscribe_logs(self, listener: Subscriber, *, execution_id: str | None = None) -> int:
        return self._coordinator.subscribe(listener, execution_id=execution_id)

    def unsubscribe_logs(self, token: int) -> bool:
        return self._coordinator.unsubscribe(token)

    # fixes ---------------------------------------------------------------

    def fix_error(self, handle: str | None, index: int) -> bool:
        """Return True only when the error was fixed by this call."""

        return self.fix_error_report(handle, index).newly_fixed

    def fix_error_outcome(self, handle: str | None, index: int) -> FixOutcome:
        return self.fix_error_report(handle, index).outcome

    def fix_error_report(self, handle: str | None, index: int) -> FixReport:
        return self._fixes.fix_error(index, handle)

    def fix_errors(self, handle: str | None, indexes: Iterable[int]) -> tuple[FixReport, ...]:
        return self._fixes.fix_errors(indexes, handle)

    # checks --------------------------------------------------------------

    def list_checks(self) -> tuple[CheckInfo, ...]:
        return self._registry.list_checks()

    def set_check_enabled(self, check_id: str, enabled: bool) -> None:
        self._registry.set_enabled(check_id, enabled)

    def set_check_parameter(self, check_id: str, name: str, value: object) -> object:
        return self._registry.set_parameter(check_id, name, value)


def apply_check_settings(
    registry: CheckRegistry, settings: Mapping[str, Mapping[str, object]]
) -> None:
    """Apply ``[checks.<id>]`` sections: ``enabled`` plus parameter overrides."""

    unknown = [check_id for check_id in sorted(settings) if not registry.contains(check_id)]
    if unknown:
        raise ConfigValidationError(
            tuple(ConfigValidationIssue(f"checks.{item}", "unknown check") for item in unknown)
        )
    for check_id in sorted(settings):
        section = settings[check_id]
        for name in sorted(section):
            if name == "enabled":
                registry.set_enabled(check_id, bool(section[name]))
            else:
                registry.set_parameter(check_id, name, section[name])


__all__ = ["ContentIntegrityService", "apply_check_settings"]
