"""Value constraints declared on property definitions.

The syntax of a constraint depends on the type of the property:

- LONG, DOUBLE, DATE: a range such as ``[0,10)`` or ``(,2024-01-01T00:00:00]``;
  a bracket includes its bound, a parenthesis excludes it, an empty bound is open.
- BOOLEAN: ``true`` or ``false``.
- REFERENCE, WEAKREFERENCE: a node type the referenced node must have.
- PATH: an exact path, or ``/some/path/*`` for any descendant of ``/some/path``.
- NAME: an exact name.
- STRING and the rest: a regular expression the whole value must match.

A value is valid when it satisfies at least one of the constraints.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import Final

from content_integrity.constants import PATH_SEPARATOR
from content_integrity.store.base import (
    REFERENCE_TYPES,
    ContentNode,
    NodeNotFoundError,
    PropertyType,
)

logger = logging.getLogger(__name__)

BINARY_PLACEHOLDER: Final[str] = "<binary>"

_RANGE = re.compile(r"^\s*([\[(])\s*([^,]*?)\s*,\s*([^,]*?)\s*([\])])\s*$")
_DESCENDANTS_SUFFIX: Final[str] = PATH_SEPARATOR + "*"


class ConstraintSyntaxError(ValueError):
    """Raised when a declared constraint cannot be parsed for its property type."""


def format_constraints(constraints: Sequence[str]) -> str:
    return "[" + ", ".join(constraints) + "]"


def display_value(value_type: PropertyType, value: object) -> str:
    if value_type is PropertyType.BINARY:
        return BINARY_PLACEHOLDER
    return str(value)


def satisfies_constraints(
    node: ContentNode,
    value_type: PropertyType,
    value: object,
    constraints: Sequence[str],
) -> bool:
    """True when ``value`` matches one of ``constraints`` (or there is none)."""

    if not constraints or value_type is PropertyType.BINARY:
        return True
    for constraint in constraints:
        try:
            if _satisfies(node, value_type, value, constraint):
                return True
        except ConstraintSyntaxError:
            logger.error(
                "Invalid %s constraint %r on a property of %s", value_type, constraint, node.path
            )
    return False


def matches_declared_type(value_type: PropertyType | None, value: object) -> bool:
    """True when ``value`` can be read as a value of ``value_type``."""

    if value_type is None:
        return True
    reader = _READERS.get(value_type)
    if reader is None:
        return True
    try:
        reader(value)
    except (TypeError, ValueError):
        return False
    return True


def _satisfies(node: ContentNode, value_type: PropertyType, value: object, constraint: str) -> bool:
    if value_type in (PropertyType.LONG, PropertyType.DOUBLE, PropertyType.DATE):
        return _in_range(_READERS[value_type], value, constraint)
    if value_type is PropertyType.BOOLEAN:
        expected = constraint.strip().lower()
        if expected not in ("true", "false"):
            raise ConstraintSyntaxError(f"not a boolean: {constraint!r}")
        try:
            return str(_read_bool(value)).lower() == expected
        except ValueError:
            return False
    if value_type in REFERENCE_TYPES:
        return _references_node_type(node, value, constraint.strip())
    if value_type is PropertyType.PATH:
        text = str(value)
        if constraint.endswith(_DESCENDANTS_SUFFIX):
            return text.startswith(constraint[: -len(_DESCENDANTS_SUFFIX)] + PATH_SEPARATOR)
        return text == constraint
    if value_type is PropertyType.NAME:
        return str(value) == constraint
    try:
        pattern = re.compile(constraint)
    except re.error as exc:
        raise ConstraintSyntaxError(str(exc)) from exc
    return pattern.fullmatch(str(value)) is not None


def _in_range(reader: Callable[[object], object], value: object, constraint: str) -> bool:
    match = _RANGE.match(constraint)
    if match is None:
        raise ConstraintSyntaxError(f"not a range: {constraint!r}")
    opening, lower_raw, upper_raw, closing = match.groups()
    try:
        lower = reader(lower_raw) if lower_raw else None
        upper = reader(upper_raw) if upper_raw else None
    except (TypeError, ValueError) as exc:
        raise ConstraintSyntaxError(f"invalid bound in {constraint!r}") from exc
    try:
        candidate = reader(value)
    except (TypeError, ValueError):
        return False
    if lower is not None:
        if candidate < lower or (opening == "(" and candidate == lower):  # type: ignore[operator]
            return False
    if upper is not None:
        if candidate > upper or (closing == ")" and candidate == upper):  # type: ignore[operator]
            return False
    return True


def _references_node_type(node: ContentNode, value: object, type_name: str) -> bool:
    if not type_name:
        raise ConstraintSyntaxError("empty node type")
    store = node.require_store()
    try:
        target = store.get_node_by_identifier(node.workspace, str(value))
    except NodeNotFoundError:
        # Missing targets are reported as broken references, not as constraint violations.
        return True
    return store.is_node_type(target, type_name)


def _read_long(value: object) -> int:
    if isinstance(value, bool):
        raise TypeError("boolean is not a LONG")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"expected a LONG, got {type(value).__name__}")


def _read_double(value: object) -> float:
    if isinstance(value, bool):
        raise TypeError("boolean is not a DOUBLE")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise TypeError(f"expected a DOUBLE, got {type(value).__name__}")


def _read_date(value: object) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
    raise TypeError(f"expected a DATE, got {type(value).__name__}")


def _read_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"expected a BOOLEAN, got {value!r}")


def _read_name(value: object) -> str:
    if not isinstance(value, str) or not value.strip() or PATH_SEPARATOR in value:
        raise ValueError(f"expected a NAME, got {value!r}")
    return value


def _read_text(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"expected a non-empty string, got {value!r}")
    return value


_READERS: Final[dict[PropertyType, Callable[[object], object]]] = {
    PropertyType.LONG: _read_long,
    PropertyType.DOUBLE: _read_double,
    PropertyType.DATE: _read_date,
    PropertyType.BOOLEAN: _read_bool,
    PropertyType.NAME: _read_name,
    PropertyType.PATH: _read_text,
    PropertyType.REFERENCE: _read_text,
    PropertyType.WEAKREFERENCE: _read_text,
}


__all__ = [
    "BINARY_PLACEHOLDER",
    "ConstraintSyntaxError",
    "display_value",
    "format_constraints",
    "matches_declared_type",
    "satisfies_constraints",
]
