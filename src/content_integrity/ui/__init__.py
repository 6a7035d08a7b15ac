"""Command-line interface and its console rendering."""

from content_integrity.ui.cli import CLIError, build_parser, run_cli
from content_integrity.ui.render import ConsoleRenderer

__all__ = ["CLIError", "ConsoleRenderer", "build_parser", "run_cli"]
