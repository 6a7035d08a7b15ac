"""Stable constants shared across the scanning engine."""

from __future__ import annotations

from typing import Final

# Workspace names.
EDIT_WORKSPACE: Final[str] = "default"
LIVE_WORKSPACE: Final[str] = "live"
KNOWN_WORKSPACES: Final[tuple[str, ...]] = (EDIT_WORKSPACE, LIVE_WORKSPACE)

# Tree addressing.
ROOT_PATH: Final[str] = "/"
PATH_SEPARATOR: Final[str] = "/"

# Schema version of the configuration document.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Execution bookkeeping defaults.
DEFAULT_PROGRESS_INTERVAL: Final[int] = 1000
DEFAULT_MAX_RETAINED_EXECUTIONS: Final[int] = 50
DEFAULT_MAX_RETAINED_RESULTS: Final[int] = 20

# User-facing log lines.
NO_ERROR_FOUND: Final[str] = "No error found"
UNKNOWN_EXECUTION_ID: Final[str] = "Unknown execution ID"
CALCULATION_ERROR: Final[str] = "<failed to calculate>"

__all__ = [
    "CALCULATION_ERROR",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_MAX_RETAINED_EXECUTIONS",
    "DEFAULT_MAX_RETAINED_RESULTS",
    "DEFAULT_PROGRESS_INTERVAL",
    "EDIT_WORKSPACE",
    "KNOWN_WORKSPACES",
    "LIVE_WORKSPACE",
    "NO_ERROR_FOUND",
    "PATH_SEPARATOR",
    "ROOT_PATH",
    "UNKNOWN_EXECUTION_ID",
]
