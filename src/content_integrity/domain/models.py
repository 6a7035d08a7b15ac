"""Error model: node handles, integrity errors, error lists and per-workspace results."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import NoReturn, Protocol, overload

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class NodeLike(Protocol):
    """Anything exposing the identity fields captured by an error."""

    @property
    def identifier(self) -> str: ...

    @property
    def path(self) -> str: ...

    @property
    def workspace(self) -> str: ...

    @property
    def primary_type(self) -> str: ...


@dataclass(frozen=True, slots=True)
class ContentNodeRef:
    """Value copy of a node identity, taken at the time an error is raised."""

    identifier: str
    path: str
    workspace: str
    primary_type: str = ""

    @classmethod
    def of(cls, node: NodeLike) -> ContentNodeRef:
        if isinstance(node, ContentNodeRef):
            return node
        return cls(
            identifier=node.identifier,
            path=node.path,
            workspace=node.workspace,
            primary_type=node.primary_type,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "identifier": self.identifier,
            "path": self.path,
            "workspace": self.workspace,
            "primary_type": self.primary_type,
        }


@dataclass(frozen=True, slots=True)
class ExtraInfo:
    value: JSONValue
    long_form: bool = False


@dataclass(slots=True)
class ContentIntegrityError:
    """One finding raised by a check against one node.

    Builder-style setters are only usable until the error is appended to a
    list. After that the record is sealed and the only permitted mutation is
    ``mark_fixed``.
    """

    check_id: str
    node: ContentNodeRef
    message: str
    error_type: object | None = None
    extra_info: dict[str, ExtraInfo] = field(default_factory=dict)
    fixed: bool = False
    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    def set_error_type(self, error_type: object) -> ContentIntegrityError:
        self._ensure_open("error_type")
        self.error_type = error_type
        return self

    def add_extra_info(
        self, key: str, value: object, long_form: bool = False
    ) -> ContentIntegrityError:
        self._ensure_open("extra_info")
        if not isinstance(key, str) or not key.strip():
            _fail("extra_info", "key must be a non-empty string")
        self.extra_info[key] = ExtraInfo(value=_as_json_value(value), long_form=long_form)
        return self

    def extra_value(self, key: str) -> JSONValue:
        entry = self.extra_info.get(key)
        return None if entry is None else entry.value

    def mark_fixed(self) -> None:
        self.fixed = True

    def seal(self) -> None:
        self._sealed = True

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    @property
    def error_type_name(self) -> str | None:
        return error_type_name(self.error_type)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "check_id": self.check_id,
            "error_type": self.error_type_name,
            "message": self.message,
            "node": self.node.to_dict(),
            "extra_info": {key: entry.value for key, entry in self.extra_info.items()},
            "long_form_keys": [key for key, entry in self.extra_info.items() if entry.long_form],
            "fixed": self.fixed,
        }

    def _ensure_open(self, attribute: str) -> None:
        if self._sealed:
            _fail(attribute, "error is already part of a result list and cannot be modified")


def create_error(
    node: NodeLike,
    message: str,
    *,
    check_id: str,
    error_type: object | None = None,
) -> ContentIntegrityError:
    """Create an error, capturing the node identity and path now."""

    if not isinstance(message, str) or not message.strip():
        _fail("message", "must be a non-empty string")
    return ContentIntegrityError(
        check_id=check_id,
        node=ContentNodeRef.of(node),
        message=message,
        error_type=error_type,
    )


class ContentIntegrityErrorList:
    """Append-only ordered sequence of errors.

    Positions are the handle used by later fix lookups, so no removal or
    reordering operation is offered.
    """

    __slots__ = ("_errors",)

    def __init__(self, errors: Iterable[ContentIntegrityError] = ()) -> None:
        self._errors: list[ContentIntegrityError] = []
        for error in errors:
            self.add_error(error)

    def add_error(self, error: ContentIntegrityError) -> None:
        if not isinstance(error, ContentIntegrityError):
            _fail("error", f"expected ContentIntegrityError, got {type(error).__name__}")
        error.seal()
        self._errors.append(error)

    def extend_from(self, other: ContentIntegrityErrorList | None) -> None:
        if other is None:
            return
        for error in tuple(other):
            self.add_error(error)

    def errors(self) -> tuple[ContentIntegrityError, ...]:
        return tuple(self._errors)

    def is_empty(self) -> bool:
        return not self._errors

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[ContentIntegrityError]:
        return iter(tuple(self._errors))

    @overload
    def __getitem__(self, index: int) -> ContentIntegrityError: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[ContentIntegrityError, ...]: ...

    def __getitem__(
        self, index: int | slice
    ) -> ContentIntegrityError | tuple[ContentIntegrityError, ...]:
        if isinstance(index, slice):
            return tuple(self._errors[index])
        return self._errors[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContentIntegrityErrorList):
            return NotImplemented
        return self._errors == other._errors

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ContentIntegrityErrorList({len(self._errors)} errors)"


def empty_error_list() -> ContentIntegrityErrorList:
    return ContentIntegrityErrorList()


def single_error(error: ContentIntegrityError) -> ContentIntegrityErrorList:
    return ContentIntegrityErrorList((error,))


def merge_error_lists(
    *lists: ContentIntegrityErrorList | None,
) -> ContentIntegrityErrorList | None:
    """Concatenate lists in argument order without touching the inputs.

    ``None`` entries are treated as absent. The result is ``None`` only when
    every input is absent, so checks can combine partial results freely.
    """

    present = [item for item in lists if item is not None]
    if not present:
        return None
    merged = ContentIntegrityErrorList()
    for item in present:
        merged.extend_from(item)
    return merged


@dataclass(slots=True)
class ContentIntegrityResults:
    """Output of one scan pass over one workspace, or the merge of several."""

    workspaces: tuple[str, ...]
    errors: ContentIntegrityErrorList = field(default_factory=ContentIntegrityErrorList)
    execution_id: str | None = None
    root_path: str = "/"
    nodes_scanned: int = 0
    duration_ms: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def workspace(self) -> str:
        return ",".join(self.workspaces)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def errors_by_check(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for error in self.errors:
            counts[error.check_id] = counts.get(error.check_id, 0) + 1
        return {key: counts[key] for key in sorted(counts)}

    def errors_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for error in self.errors:
            key = f"{error.check_id}:{error.error_type_name or '-'}"
            counts[key] = counts.get(key, 0) + 1
        return {key: counts[key] for key in sorted(counts)}

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "execution_id": self.execution_id,
            "workspaces": list(self.workspaces),
            "root_path": self.root_path,
            "nodes_scanned": self.nodes_scanned,
            "duration_ms": self.duration_ms,
            "created_at": self.created_at.isoformat(timespec="milliseconds").replace(
                "+00:00", "Z"
            ),
            "errors": [error.to_dict() for error in self.errors],
        }


def error_type_name(error_type: object | None) -> str | None:
    if error_type is None:
        return None
    if isinstance(error_type, Enum):
        return str(error_type.name)
    return str(error_type)


def _as_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _as_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_as_json_value(item) for item in value]
        if isinstance(value, (set, frozenset)):
            items.sort(key=str)
        return items
    if isinstance(value, Enum):
        return str(value.name)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "ContentIntegrityError",
    "ContentIntegrityErrorList",
    "ContentIntegrityResults",
    "ContentNodeRef",
    "ExtraInfo",
    "JSONScalar",
    "JSONValue",
    "NodeLike",
    "create_error",
    "empty_error_list",
    "error_type_name",
    "merge_error_lists",
    "single_error",
]
