"""
content-integrity — check contract.

File: src/content_integrity/checks/base.py
Last updated: 2026-10-19

Purpose
- Defines what a check is: a capability protocol the traversal engine drives
  per node, plus optional configuration and fix capabilities.

What should be included in this file
- ``ContentIntegrityCheck``, ``ConfigurableCheck`` and ``FixableCheck`` protocols.
- Typed, declared check parameters with parsers and defaults.
- Applicability conditions (workspace filter, node-type include/exclude).
- ``CheckBase`` with no-op defaults for checks that only need a subset.

Functional requirements
- Optional capabilities are discovered with ``isinstance`` at dispatch time.
- A check's parameters can be pinned for the duration of one scan pass; writes
  made while pinned become visible once the pass releases the pin.

Non-functional requirements
- Thread-safe parameter access: the worker reads while the caller may write.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import ClassVar, NoReturn, Protocol, runtime_checkable

from content_integrity.domain.models import (
    ContentIntegrityError,
    ContentIntegrityErrorList,
    create_error,
)
from content_integrity.store.base import ContentNode, is_same_or_descendant

ParameterParser = Callable[[object], object]


class CheckConfigurationError(ValueError):
    """Raised for undeclared parameters or values a parameter parser rejects."""


@runtime_checkable
class ContentIntegrityCheck(Protocol):
    check_id: str

    def initialize(self, scan_root: ContentNode, excluded_paths: tuple[str, ...]) -> None: ...

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None: ...

    def check_after_children(self, node: ContentNode) -> ContentIntegrityErrorList | None: ...

    def is_applicable(self, node: ContentNode) -> bool: ...


@runtime_checkable
class ConfigurableCheck(Protocol):
    configuration: CheckConfiguration


@runtime_checkable
class FixableCheck(Protocol):
    def fix_error(self, node: ContentNode, error: ContentIntegrityError) -> bool: ...


# --------------------------------------------------------------------- parsers


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    raise ValueError(f"expected boolean, got {value!r}")


def parse_int(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError("expected integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"expected integer, got {value!r}") from None
    raise ValueError(f"expected integer, got {type(value).__name__}")


def parse_str(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected string, got {type(value).__name__}")
    return value


def parse_str_list(value: object) -> tuple[str, ...]:
    """Accept a comma-separated string or a sequence of strings."""

    if isinstance(value, str):
        items: Iterable[object] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ValueError(f"expected comma-separated string or list, got {type(value).__name__}")
    out: list[str] = []
    for item in items:
        if not isinstance(item, str):
            raise ValueError(f"list entries must be strings, got {type(item).__name__}")
        stripped = item.strip()
        if stripped and stripped not in out:
            out.append(stripped)
    return tuple(out)


def _parser_for_default(default: object) -> ParameterParser:
    if isinstance(default, bool):
        return parse_bool
    if isinstance(default, int):
        return parse_int
    if isinstance(default, tuple):
        return parse_str_list
    return parse_str


# --------------------------------------------------------------- configuration


@dataclass(frozen=True, slots=True)
class ParameterDefinition:
    name: str
    default: object
    parser: ParameterParser
    description: str = ""


class CheckConfiguration:
    """Ordered, declared parameters of one check."""

    def __init__(self, check_id: str) -> None:
        self._check_id = check_id
        self._lock = threading.RLock()
        self._definitions: dict[str, ParameterDefinition] = {}
        self._values: dict[str, object] = {}
        self._pinned: dict[str, object] | None = None

    @property
    def check_id(self) -> str:
        return self._check_id

    def declare(
        self,
        name: str,
        default: object,
        *,
        parser: ParameterParser | None = None,
        description: str = "",
    ) -> None:
        if not isinstance(name, str) or not name.strip():
            self._fail("name", "parameter name must be a non-empty string")
        resolved_parser = parser if parser is not None else _parser_for_default(default)
        with self._lock:
            if name in self._definitions:
                self._fail(name, "parameter already declared")
            try:
                parsed_default = resolved_parser(default)
            except ValueError as exc:
                self._fail(name, f"invalid default: {exc}")
            self._definitions[name] = ParameterDefinition(
                name=name,
                default=parsed_default,
                parser=resolved_parser,
                description=description,
            )
            self._values[name] = parsed_default

    def declared_parameters(self) -> tuple[ParameterDefinition, ...]:
        with self._lock:
            return tuple(self._definitions.values())

    def get_parameter(self, name: str) -> object:
        """Return the pinned value while a pass holds the pin, else the live value."""

        with self._lock:
            if name not in self._definitions:
                self._fail(name, "unknown parameter")
            source = self._pinned if self._pinned is not None else self._values
            return source[name]

    def set_parameter(self, name: str, value: object) -> object:
        with self._lock:
            definition = self._definitions.get(name)
            if definition is None:
                known = ", ".join(self._definitions) or "<none>"
                self._fail(name, f"unknown parameter; declared: [{known}]")
            try:
                parsed = definition.parser(value)
            except ValueError as exc:
                self._fail(name, str(exc))
            self._values[name] = parsed
            return parsed

    def reset_parameter(self, name: str) -> None:
        with self._lock:
            definition = self._definitions.get(name)
            if definition is None:
                self._fail(name, "unknown parameter")
            self._values[name] = definition.default

    def items(self) -> tuple[tuple[str, object], ...]:
        """Live name/value pairs in declaration order."""

        with self._lock:
            return tuple((name, self._values[name]) for name in self._definitions)

    def pin(self) -> None:
        with self._lock:
            self._pinned = dict(self._values)

    def unpin(self) -> None:
        with self._lock:
            self._pinned = None

    @property
    def is_pinned(self) -> bool:
        with self._lock:
            return self._pinned is not None

    @contextmanager
    def pinned(self) -> Iterator[None]:
        self.pin()
        try:
            yield
        finally:
            self.unpin()

    def _fail(self, name: str, message: str) -> NoReturn:
        raise CheckConfigurationError(f"{self._check_id}.{name}: {message}")


# --------------------------------------------------------------- applicability


@dataclass(frozen=True, slots=True)
class ExecutionConditions:
    """Workspace and node-type filters. Empty include sets mean "any"."""

    apply_on_workspaces: frozenset[str] = frozenset()
    skip_on_workspaces: frozenset[str] = frozenset()
    apply_on_node_types: frozenset[str] = frozenset()
    skip_on_node_types: frozenset[str] = frozenset()

    def applies_to_workspace(self, workspace: str) -> bool:
        if workspace in self.skip_on_workspaces:
            return False
        return not self.apply_on_workspaces or workspace in self.apply_on_workspaces

    def applies_to_node(self, node: ContentNode) -> bool:
        if not self.applies_to_workspace(node.workspace):
            return False
        if any(_is_node_type(node, item) for item in self.skip_on_node_types):
            return False
        if not self.apply_on_node_types:
            return True
        return any(_is_node_type(node, item) for item in self.apply_on_node_types)

    def describe(self) -> str:
        parts: list[str] = []
        if self.apply_on_workspaces:
            parts.append(f"workspaces={','.join(sorted(self.apply_on_workspaces))}")
        if self.skip_on_workspaces:
            parts.append(f"skip-workspaces={','.join(sorted(self.skip_on_workspaces))}")
        if self.apply_on_node_types:
            parts.append(f"types={','.join(sorted(self.apply_on_node_types))}")
        if self.skip_on_node_types:
            parts.append(f"skip-types={','.join(sorted(self.skip_on_node_types))}")
        return "; ".join(parts) or "all nodes"


def _is_node_type(node: ContentNode, type_name: str) -> bool:
    if node.store is None:
        return type_name == node.primary_type or type_name in node.mixins
    return node.is_node_type(type_name)


# -------------------------------------------------------------------- CheckBase


class CheckBase:
    """Convenience base: no-op hooks, parameter declaration and error helpers.

    Subclasses set ``check_id`` and override the hooks they need. Fixable
    checks additionally define ``fix_error``.
    """

    check_id: ClassVar[str] = ""
    description: ClassVar[str] = ""
    enabled_by_default: ClassVar[bool] = True
    conditions: ClassVar[ExecutionConditions] = ExecutionConditions()

    def __init__(self) -> None:
        if not self.check_id:
            raise CheckConfigurationError(f"{type(self).__name__}: check_id must be set")
        self.configuration = CheckConfiguration(self.check_id)
        self.scan_root: ContentNode | None = None
        self.excluded_paths: tuple[str, ...] = ()
        self.declare_parameters(self.configuration)

    def declare_parameters(self, configuration: CheckConfiguration) -> None:
        return None

    def initialize(self, scan_root: ContentNode, excluded_paths: tuple[str, ...]) -> None:
        self.scan_root = scan_root
        self.excluded_paths = tuple(excluded_paths)
        self.on_initialize()

    def on_initialize(self) -> None:
        return None

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        return None

    def check_after_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        return None

    def is_applicable(self, node: ContentNode) -> bool:
        return True

    def get_parameter(self, name: str) -> object:
        return self.configuration.get_parameter(name)

    def is_excluded(self, path: str) -> bool:
        return any(is_same_or_descendant(path, excluded) for excluded in self.excluded_paths)

    def create_error(
        self,
        node: ContentNode,
        message: str,
        error_type: object | None = None,
    ) -> ContentIntegrityError:
        return create_error(node, message, check_id=self.check_id, error_type=error_type)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(check_id={self.check_id!r})"


__all__ = [
    "CheckBase",
    "CheckConfiguration",
    "CheckConfigurationError",
    "ConfigurableCheck",
    "ContentIntegrityCheck",
    "ExecutionConditions",
    "FixableCheck",
    "ParameterDefinition",
    "ParameterParser",
    "parse_bool",
    "parse_int",
    "parse_str",
    "parse_str_list",
]
