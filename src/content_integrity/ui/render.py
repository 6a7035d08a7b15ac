"""Human-readable CLI output on top of ``rich``.

Colour is used only when writing to a terminal, and never when ``NO_COLOR`` is
set or ``--no-color`` is passed. Content coming from the tree (paths, messages,
parameter values) is escaped so rich never interprets it as markup.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterable, Mapping, Sequence
from typing import TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from content_integrity.checks.registry import CheckInfo
from content_integrity.domain.models import ContentIntegrityResults
from content_integrity.engine.aggregation import summarize
from content_integrity.engine.coordinator import ExecutionStatus
from content_integrity.engine.fixes import FixOutcome, FixReport
from content_integrity.observability.events import ScanLogEvent

_FIX_STYLES = {
    FixOutcome.FIXED: "green",
    FixOutcome.ALREADY_FIXED: "dim",
    FixOutcome.FAILED: "red",
    FixOutcome.NOT_FOUND: "yellow",
}


def _is_terminal(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    return callable(isatty) and bool(isatty())


def format_parameter(value: object) -> str:
    if isinstance(value, tuple):
        return ",".join(str(item) for item in value) or "''"
    return str(value)


class ConsoleRenderer:
    def __init__(
        self, *, no_color: bool = False, verbose: bool = False, file: TextIO | None = None
    ) -> None:
        stream = sys.stdout if file is None else file
        colour = not no_color and not os.environ.get("NO_COLOR") and _is_terminal(stream)
        self.verbose = verbose
        self.console = Console(
            file=stream, no_color=not colour, highlight=False, soft_wrap=True, emoji=False
        )

    def _field(self, label: str, value: object) -> None:
        self.console.print(f"{label}: {escape(str(value))}")

    def _table(self, title: str, headers: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
        table = Table(title=title, title_justify="left")
        for header in headers:
            table.add_column(header, overflow="fold")
        for row in rows:
            table.add_row(*(escape(cell) for cell in row))
        if table.row_count:
            self.console.print(table)

    def checks(self, checks: Sequence[CheckInfo]) -> None:
        self._table(
            "Registered checks",
            ("Check", "Enabled", "Source", "Fixable", "Applies", "Configuration"),
            (
                (
                    info.check_id,
                    "yes" if info.enabled else "no",
                    str(info.source),
                    "yes" if info.fixable else "no",
                    info.conditions,
                    ", ".join(
                        f"{name}={format_parameter(value)}"
                        for name, value in info.configuration_pairs()
                    )
                    or "-",
                )
                for info in checks
            ),
        )
        if self.verbose:
            for info in checks:
                if info.description:
                    self._field(info.check_id, info.description)

    def log_line(self, event: ScanLogEvent) -> None:
        self.console.print(escape(event.line))

    def scan(
        self,
        execution_id: str,
        status: ExecutionStatus,
        results: ContentIntegrityResults | None,
        fix_reports: Sequence[FixReport] = (),
    ) -> None:
        self.console.print()
        self.console.print("Scan", style="bold")
        self._field("Execution", execution_id)
        self._field("Status", status.value)
        if results is None:
            return

        summary = summarize(results)
        self._field("Workspaces", ", ".join(summary.workspaces))
        self._field("Nodes scanned", summary.nodes_scanned)
        self._field("Errors", summary.error_count)
        self._table(
            "Errors",
            ("#", "Check", "Type", "Workspace", "Path", "Message", "Fixed"),
            (
                (
                    str(index),
                    error.check_id,
                    error.error_type_name or "-",
                    error.node.workspace,
                    error.node.path,
                    error.message,
                    "yes" if error.fixed else "no",
                )
                for index, error in enumerate(results.errors)
            ),
        )
        if self.verbose:
            for type_name, count in summary.errors_by_type.items():
                self._field(type_name, count)

        if fix_reports:
            self.console.print()
            self.console.print("Fixes", style="bold")
            for report in fix_reports:
                style = _FIX_STYLES[report.outcome]
                self.console.print(f"  - {escape(report.message)}", style=style)

    def config(self, config: Mapping[str, object], canonical: str) -> None:
        rendered = json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False)
        self.console.print(escape(rendered))
        if self.verbose:
            self._field("Canonical", canonical)


__all__ = ["ConsoleRenderer", "format_parameter"]
