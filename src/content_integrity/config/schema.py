"""
content-integrity — configuration defaults and validation.

File: src/content_integrity/config/schema.py
Last updated: 2026-10-19

Purpose
- Hold the built-in defaults and validate a merged configuration into its
  normalized form.

Functional requirements
- Every section and field is required once defaults are merged; unknown fields
  are rejected.
- ``[checks.<id>]`` sections accept ``enabled`` plus parameter overrides (a
  scalar or a list of strings); typing a parameter against its declared default
  happens when it is applied to the check.
- Issues carry the dotted path of the offending field and come back sorted by
  path.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from content_integrity.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_MAX_RETAINED_EXECUTIONS,
    DEFAULT_MAX_RETAINED_RESULTS,
    DEFAULT_PROGRESS_INTERVAL,
    EDIT_WORKSPACE,
    ROOT_PATH,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

# Relative values of these fields are resolved against the config file's directory.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("observability", "log_dir"),)

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "ERROR", "INFO", "WARNING")

CheckParameterValue = str | int | float | bool | list[str]

DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "scan": {
        "default_root_path": ROOT_PATH,
        "default_workspaces": [EDIT_WORKSPACE],
        "progress_interval": DEFAULT_PROGRESS_INTERVAL,
        "upload_results": True,
    },
    "executions": {
        "max_retained": DEFAULT_MAX_RETAINED_EXECUTIONS,
        "max_retained_results": DEFAULT_MAX_RETAINED_RESULTS,
    },
    "checks": {},
    "plugins": {"factories": []},
    "observability": {"log_level": "INFO", "log_dir": "logs", "log_to_stdout": False},
}

_CHECK_ID = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
_FACTORY_REFERENCE = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$")


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """``config`` is the normalized configuration, or ``None`` when issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "- unknown failure"))


class _Invalid(Exception):
    """Raised by a field validator; ``suffix`` narrows the path (e.g. ``[2]``)."""

    def __init__(self, message: str, suffix: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.suffix = suffix


# ---------------------------------------------------------------------------
# Field validators: return the normalized value or raise _Invalid.
# ---------------------------------------------------------------------------


def _text(value: object) -> str:
    if not isinstance(value, str):
        raise _Invalid(f"expected string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise _Invalid("must not be empty")
    return stripped


def _text_list(value: object) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise _Invalid(f"expected list of strings, got {type(value).__name__}")
    items: list[str] = []
    for index, item in enumerate(value):
        try:
            text = _text(item)
        except _Invalid as exc:
            raise _Invalid(exc.message, f"[{index}]") from None
        if text not in items:
            items.append(text)
    return items


def _flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise _Invalid(f"expected boolean, got {type(value).__name__}")
    return value


def _positive_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _Invalid(f"expected integer, got {type(value).__name__}")
    if value < 1:
        raise _Invalid("must be >= 1")
    return value


def _content_path(value: object) -> str:
    path = _text(value)
    if not path.startswith("/"):
        raise _Invalid("must be an absolute content path")
    return path


def _workspace_list(value: object) -> list[str]:
    workspaces = _text_list(value)
    if not workspaces:
        raise _Invalid("must name at least one workspace")
    return workspaces


def _log_level(value: object) -> str:
    level = _text(value)
    if level not in LOG_LEVELS:
        raise _Invalid(f"invalid value {level!r}; expected one of: {', '.join(LOG_LEVELS)}")
    return level


def _file_path(value: object) -> str:
    path = _text(value)
    if "\x00" in path:
        raise _Invalid("must not contain NUL bytes")
    return path


def _factory_references(value: object) -> list[str]:
    references = _text_list(value)
    for index, reference in enumerate(references):
        if not _FACTORY_REFERENCE.fullmatch(reference):
            raise _Invalid("expected 'module:attribute'", f"[{index}]")
    return references


def _schema_version(value: object) -> int:
    version = _positive_int(value)
    if version < ConfigSchemaVersion:
        raise _Invalid(
            f"schema version {version} is older than supported {ConfigSchemaVersion}; "
            "upgrade content_integrity.toml to the current schema"
        )
    if version > ConfigSchemaVersion:
        raise _Invalid(
            f"schema version {version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the content-integrity runtime"
        )
    return version


def _parameter(value: object) -> CheckParameterValue:
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return _text_list(value)
    raise _Invalid(f"expected scalar or list of strings, got {type(value).__name__}")


_Field = Callable[[object], Any]

_SECTIONS: Final[dict[str, dict[str, _Field]]] = {
    "meta": {"schema_version": _schema_version},
    "scan": {
        "default_root_path": _content_path,
        "default_workspaces": _workspace_list,
        "progress_interval": _positive_int,
        "upload_results": _flag,
    },
    "executions": {"max_retained": _positive_int, "max_retained_results": _positive_int},
    "plugins": {"factories": _factory_references},
    "observability": {"log_level": _log_level, "log_dir": _file_path, "log_to_stdout": _flag},
}


# ---------------------------------------------------------------------------
# Walking the document
# ---------------------------------------------------------------------------


class _Validation:
    def __init__(self) -> None:
        self.issues: list[ConfigValidationIssue] = []

    def report(self, path: str, message: str) -> None:
        self.issues.append(ConfigValidationIssue(path, message))

    def field(self, validator: _Field, value: object, path: str) -> tuple[bool, Any]:
        try:
            return True, validator(value)
        except _Invalid as exc:
            self.report(path + exc.suffix, exc.message)
            return False, None

    def mapping(self, value: object, path: str) -> Mapping[str, object] | None:
        if not isinstance(value, Mapping):
            self.report(path, f"expected object, got {type(value).__name__}")
            return None
        return value

    def section(
        self, payload: Mapping[str, object], fields: Mapping[str, _Field], path: str
    ) -> dict[str, Any]:
        for key in payload:
            if key not in fields:
                self.report(f"{path}.{key}", "unknown field")
        normalized: dict[str, Any] = {}
        for key, validator in fields.items():
            if key not in payload:
                self.report(f"{path}.{key}", "missing required field")
                continue
            ok, value = self.field(validator, payload[key], f"{path}.{key}")
            if ok:
                normalized[key] = value
        return normalized

    def checks(self, payload: Mapping[str, object]) -> dict[str, Any]:
        normalized: dict[str, Any] = {}
        for check_id, raw in payload.items():
            path = f"checks.{check_id}"
            if not _CHECK_ID.fullmatch(check_id):
                self.report(path, "check id must be lowercase (letters, digits, '.', '_', '-')")
                continue
            section = self.mapping(raw, path)
            if section is None:
                continue
            values: dict[str, Any] = {}
            for name, value in section.items():
                validator = _flag if name == "enabled" else _parameter
                ok, parsed = self.field(validator, value, f"{path}.{name}")
                if ok:
                    values[name] = parsed
            normalized[check_id] = values
        return normalized


def validate_config(config: object) -> ConfigValidationResult:
    """Validate a full configuration document (defaults already merged in)."""

    run = _Validation()
    root = run.mapping(config, "<root>")
    normalized: dict[str, Any] = {}
    if root is not None:
        expected = [*_SECTIONS, "checks"]
        for key in root:
            if key not in expected:
                run.report(key, "unknown field")
        for name in expected:
            if root.get(name) is None:
                run.report(name, "missing required field")
                continue
            section = run.mapping(root[name], name)
            if section is None:
                continue
            if name == "checks":
                normalized[name] = run.checks(section)
            else:
                normalized[name] = run.section(section, _SECTIONS[name], name)

    issues = tuple(sorted(run.issues, key=lambda issue: issue.path))
    if issues:
        return ConfigValidationResult(config=None, issues=issues)
    return ConfigValidationResult(config=merge_config({}, normalized), issues=())


def assert_valid_config(config: object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def default_config() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base`` into a new dict; neither input is modified.

    Nested mappings merge key by key, anything else in ``overlay`` replaces the
    base value. Keys come out sorted.
    """

    merged: dict[str, Any] = {key: _detached(value) for key, value in base.items()}
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = _detached(value)
    return dict(sorted(merged.items()))


def _detached(value: object) -> Any:
    if isinstance(value, Mapping):
        return merge_config({}, value)
    if isinstance(value, (list, tuple)):
        return [_detached(item) for item in value]
    return value


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "CheckParameterValue",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
