"""
content-integrity — command-line interface.

File: src/content_integrity/ui/cli.py
Last updated: 2026-10-19

Purpose
- ``checks``: list registered checks with their effective configuration.
- ``scan``: scan a content tree described by a YAML document, stream the
  execution log, then optionally fix listed errors.
- ``config``: print the effective configuration.

Exit codes
- 0 success, 1 unfixed errors remain after a scan, 2 invalid input or
  configuration, 4 scan failed, timed out or was rejected.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from content_integrity.checks.base import CheckConfigurationError
from content_integrity.checks.registry import CheckInfo, PluginLoadError, UnknownCheckError
from content_integrity.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from content_integrity.domain.ids import generate_prefixed_id
from content_integrity.engine.coordinator import ExecutionStatus
from content_integrity.engine.fixes import FixReport
from content_integrity.main import ExitCode
from content_integrity.observability.logging import setup_logging, shutdown_logging
from content_integrity.service import ContentIntegrityService
from content_integrity.store import ContentStore, InMemoryContentStore, load_store_from_yaml
from content_integrity.ui.render import ConsoleRenderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """A failure reported as ``error: <message>`` with its own exit code."""

    message: str
    exit_code: ExitCode = ExitCode.CONFIG_ERROR

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _subcommand(
    subparsers: Any, name: str, common: argparse.ArgumentParser, summary: str, examples: str
) -> argparse.ArgumentParser:
    return subparsers.add_parser(
        name,
        parents=[common],
        help=summary,
        description=f"{summary}.\n\nExamples:\n{examples}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="content-integrity",
        description=(
            "Audit a hierarchical content tree with pluggable checks.\n\n"
            "  content-integrity checks                 List registered checks\n"
            "  content-integrity scan --tree site.yaml  Scan a YAML content tree\n"
            "  content-integrity config                 Show effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="TOML config file (default: ./content_integrity.toml when present)",
    )
    common.add_argument("--verbose", "-v", action="store_true", help="Show detailed output")
    common.add_argument(
        "--no-color", action="store_true", help="Disable colours (NO_COLOR is honoured too)"
    )
    common.add_argument("--json", action="store_true", help="Print one JSON document")

    subparsers = parser.add_subparsers(dest="command", required=True)

    checks = _subcommand(
        subparsers,
        "checks",
        common,
        "List registered checks with their state and configuration",
        "  content-integrity checks\n  content-integrity checks --json\n",
    )
    checks.set_defaults(handler=_cmd_checks)

    scan = _subcommand(
        subparsers,
        "scan",
        common,
        "Run the enabled checks over a content tree and report the errors found",
        "  content-integrity scan --tree site.yaml --workspace default --workspace live\n"
        "  content-integrity scan --tree site.yaml --check references --exclude /sites/a\n"
        "  content-integrity scan --tree site.yaml --enable hardcoded-domains \\\n"
        "      --param hardcoded-domains:domains=www.example.com\n"
        "  content-integrity scan --tree site.yaml --workspace live --fix 0 --fix 2\n",
    )
    scan.add_argument("--tree", required=True, help="YAML document describing the tree")
    scan.add_argument("--root", default=None, help="Path of the scan root (default: /)")
    scan.add_argument(
        "--exclude", action="append", default=[], help="Skip a path and its subtree (repeatable)"
    )
    scan.add_argument(
        "--check", dest="checks", action="append", default=[], help="Only run this check id"
    )
    scan.add_argument(
        "--workspace",
        dest="workspaces",
        action="append",
        default=[],
        help="Workspace to scan (repeatable, default from config)",
    )
    scan.add_argument("--enable", action="append", default=[], help="Enable a check id")
    scan.add_argument("--disable", action="append", default=[], help="Disable a check id")
    scan.add_argument(
        "--param",
        dest="params",
        action="append",
        default=[],
        help="Check parameter as CHECK:NAME=VALUE (repeatable)",
    )
    scan.add_argument(
        "--no-upload", action="store_true", help="Do not hand the results to the results sink"
    )
    scan.add_argument(
        "--fix",
        dest="fixes",
        action="append",
        type=int,
        default=[],
        help="Index of an error to fix once the scan is over (repeatable)",
    )
    scan.add_argument(
        "--timeout", type=float, default=None, help="Seconds to wait for the scan (default: none)"
    )
    scan.set_defaults(handler=_cmd_scan)

    config = _subcommand(
        subparsers,
        "config",
        common,
        "Show the configuration after merging defaults, file and environment",
        "  content-integrity config\n  content-integrity config --json\n",
    )
    config.set_defaults(handler=_cmd_config)
    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(None if argv is None else list(argv))
    try:
        return int(args.handler(args))
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_checks(args: argparse.Namespace) -> int:
    checks = _service(InMemoryContentStore(), _config(args)).list_checks()
    if args.json:
        _print_json({"command": "checks", "checks": [_check_payload(info) for info in checks]})
    else:
        _renderer(args).checks(checks)
    return ExitCode.SUCCESS


def _cmd_scan(args: argparse.Namespace) -> int:
    config = _config(args)
    tree_path = Path(args.tree).expanduser()
    if not tree_path.is_file():
        raise CLIError(f"tree file not found: {tree_path}")
    try:
        store = load_store_from_yaml(tree_path)
    except ValueError as exc:
        raise CLIError(str(exc)) from exc

    service = _service(store, config)
    _apply_overrides(service, args)
    renderer = _renderer(args)

    setup_logging(config["observability"], session_id=generate_prefixed_id("cli"))
    token = None if args.json else service.subscribe_logs(renderer.log_line)
    try:
        started = service.start_scan(
            root_path=args.root,
            excluded_paths=args.exclude,
            check_whitelist=args.checks,
            workspaces=args.workspaces or None,
            upload_results=False if args.no_upload else None,
        )
        if not started.accepted:
            raise CLIError(str(started.error), exit_code=ExitCode.INTERNAL_ERROR)
        execution_id = started.unwrap()
        status = service.wait(execution_id, args.timeout)
    finally:
        if token is not None:
            service.unsubscribe_logs(token)
        shutdown_logging()

    if status is ExecutionStatus.RUNNING:
        raise CLIError(f"scan {execution_id} did not finish in time", ExitCode.INTERNAL_ERROR)

    results = service.get_results(execution_id)
    fix_reports = service.fix_errors(execution_id, args.fixes)

    if args.json:
        _print_json(
            {
                "command": "scan",
                "execution_id": execution_id,
                "status": status.value,
                "logs": list(service.get_logs(execution_id)),
                "results": None if results is None else results.to_dict(),
                "fixes": [_fix_payload(report) for report in fix_reports],
            }
        )
    else:
        renderer.scan(execution_id, status, results, fix_reports)

    if status is ExecutionStatus.FAILED:
        return ExitCode.INTERNAL_ERROR
    if results is not None and any(not error.fixed for error in results.errors):
        return ExitCode.ERRORS_FOUND
    return ExitCode.SUCCESS


def _cmd_config(args: argparse.Namespace) -> int:
    config = _config(args)
    if args.json:
        _print_json({"command": "config", "config": config})
    else:
        _renderer(args).config(config, dump_effective_config(config))
    return ExitCode.SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(args: argparse.Namespace) -> dict[str, Any]:
    try:
        return load_config(args.config_path)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc)) from exc


def _service(store: ContentStore, config: Mapping[str, object]) -> ContentIntegrityService:
    try:
        return ContentIntegrityService(store, config=config)
    except (ConfigValidationError, CheckConfigurationError, PluginLoadError) as exc:
        raise CLIError(str(exc)) from exc


def _apply_overrides(service: ContentIntegrityService, args: argparse.Namespace) -> None:
    try:
        for check_id in args.enable:
            service.set_check_enabled(check_id, True)
        for check_id in args.disable:
            service.set_check_enabled(check_id, False)
        for raw in args.params:
            service.set_check_parameter(*_split_param(raw))
    except (UnknownCheckError, CheckConfigurationError) as exc:
        raise CLIError(str(exc)) from exc


def _split_param(raw: str) -> tuple[str, str, str]:
    check_id, colon, assignment = raw.partition(":")
    name, equals, value = assignment.partition("=")
    if not (colon and equals and check_id.strip() and name.strip()):
        raise CLIError(f"invalid --param {raw!r}: expected CHECK:NAME=VALUE")
    return check_id.strip(), name.strip(), value.strip()


def _renderer(args: argparse.Namespace) -> ConsoleRenderer:
    return ConsoleRenderer(no_color=args.no_color, verbose=args.verbose)


def _check_payload(info: CheckInfo) -> dict[str, object]:
    return {
        "id": info.check_id,
        "enabled": info.enabled,
        "source": str(info.source),
        "fixable": info.fixable,
        "conditions": info.conditions,
        "description": info.description,
        "configuration": {
            name: list(value) if isinstance(value, tuple) else value
            for name, value in info.configuration_pairs()
        },
    }


def _fix_payload(report: FixReport) -> dict[str, object]:
    return {"index": report.index, "outcome": report.outcome.value, "message": report.message}


def _print_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


__all__ = ["CLIError", "build_parser", "run_cli"]
