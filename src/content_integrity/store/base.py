"""
content-integrity — content store collaborator contract.

File: src/content_integrity/store/base.py
Last updated: 2026-10-19

Purpose
- Define the read/write surface the scanning engine and the checks consume from
  a hierarchical content store, keyed by workspace.

What should be included in this file
- Node handle, typed property values, node-type definitions.
- ``ContentStore`` protocol and the store-access error types.

Functional requirements
- Node handles carry their identity by value plus a back-reference to the store
  that produced them, so checks can resolve related nodes.

Non-functional requirements
- No I/O here; concrete drivers live beside this module.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from content_integrity.constants import PATH_SEPARATOR, ROOT_PATH

if TYPE_CHECKING:
    from content_integrity.domain.models import ContentNodeRef


class StoreAccessError(RuntimeError):
    """Raised when a node or one of its properties cannot be read."""


class NodeNotFoundError(LookupError):
    """Raised when no node exists for the requested path or identifier."""


class PropertyType(StrEnum):
    STRING = "STRING"
    REFERENCE = "REFERENCE"
    WEAKREFERENCE = "WEAKREFERENCE"
    LONG = "LONG"
    DOUBLE = "DOUBLE"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    NAME = "NAME"
    PATH = "PATH"
    BINARY = "BINARY"


REFERENCE_TYPES: frozenset[PropertyType] = frozenset(
    {PropertyType.REFERENCE, PropertyType.WEAKREFERENCE}
)

RESIDUAL_PROPERTY_NAME: Final[str] = "*"


@dataclass(frozen=True, slots=True)
class ContentProperty:
    """A named, typed property; single-valued properties hold one entry in ``values``."""

    name: str
    type: PropertyType
    values: tuple[object, ...]
    multiple: bool = False

    def __post_init__(self) -> None:
        if not self.multiple and len(self.values) != 1:
            raise ValueError(f"{self.name}: single-valued property must hold exactly one value")

    @property
    def value(self) -> object:
        if self.multiple:
            raise ValueError(f"{self.name}: multi-valued property has no single value")
        return self.values[0]

    def is_empty(self) -> bool:
        return all(item is None or item == "" for item in self.values)

    @classmethod
    def single(cls, name: str, value: object, type: PropertyType | None = None) -> ContentProperty:
        return cls(name=name, type=type or infer_property_type(value), values=(value,))

    @classmethod
    def multi(
        cls, name: str, values: Sequence[object], type: PropertyType | None = None
    ) -> ContentProperty:
        resolved = type or (infer_property_type(values[0]) if values else PropertyType.STRING)
        return cls(name=name, type=resolved, values=tuple(values), multiple=True)

    @classmethod
    def reference(cls, name: str, *identifiers: str, weak: bool = False) -> ContentProperty:
        ref_type = PropertyType.WEAKREFERENCE if weak else PropertyType.REFERENCE
        if len(identifiers) == 1:
            return cls(name=name, type=ref_type, values=(identifiers[0],))
        return cls(name=name, type=ref_type, values=tuple(identifiers), multiple=True)


@dataclass(frozen=True, slots=True)
class PropertyDefinition:
    """One property of a node type; the name ``*`` declares residual properties."""

    name: str
    mandatory: bool = False
    multiple: bool = False
    required_type: PropertyType | None = None
    value_constraints: tuple[str, ...] = ()
    internationalized: bool = False  # values live on the translation subnodes

    @property
    def is_residual(self) -> bool:
        return self.name == RESIDUAL_PROPERTY_NAME


@dataclass(frozen=True, slots=True)
class NodeTypeDefinition:
    name: str
    supertypes: tuple[str, ...] = ()
    properties: tuple[PropertyDefinition, ...] = ()
    mixin: bool = False


@dataclass(frozen=True, slots=True)
class BackReference:
    """A property on another node whose value points at the inspected node."""

    property_name: str
    referencing_identifier: str
    referencing_path: str


@dataclass(frozen=True, slots=True)
class ContentNode:
    """Handle to one node as returned by a store. Valid for one traversal step."""

    identifier: str
    path: str
    workspace: str
    primary_type: str
    mixins: tuple[str, ...] = ()
    store: ContentStore | None = field(default=None, compare=False, repr=False)

    @property
    def name(self) -> str:
        if self.path == ROOT_PATH:
            return ""
        return self.path.rsplit(PATH_SEPARATOR, 1)[-1]

    @property
    def parent_path(self) -> str | None:
        if self.path == ROOT_PATH:
            return None
        parent = self.path.rsplit(PATH_SEPARATOR, 1)[0]
        return parent or ROOT_PATH

    def ref(self) -> ContentNodeRef:
        from content_integrity.domain.models import ContentNodeRef

        return ContentNodeRef.of(self)

    def require_store(self) -> ContentStore:
        if self.store is None:
            raise StoreAccessError(f"node {self.path} is detached from its store")
        return self.store

    def properties(self) -> Mapping[str, ContentProperty]:
        return self.require_store().properties(self)

    def children(self) -> Sequence[ContentNode]:
        return self.require_store().children(self)

    def is_node_type(self, type_name: str) -> bool:
        return self.require_store().is_node_type(self, type_name)


@runtime_checkable
class ContentStore(Protocol):
    """Store collaborator consumed by the traversal engine and by checks."""

    def workspaces(self) -> tuple[str, ...]: ...

    def get_node(self, workspace: str, path: str) -> ContentNode: ...

    def get_node_by_identifier(self, workspace: str, identifier: str) -> ContentNode: ...

    def node_exists(self, workspace: str, identifier: str) -> bool: ...

    def children(self, node: ContentNode) -> Sequence[ContentNode]: ...

    def properties(self, node: ContentNode) -> Mapping[str, ContentProperty]: ...

    def references_to(self, node: ContentNode) -> Sequence[BackReference]: ...

    def node_type(self, type_name: str) -> NodeTypeDefinition | None: ...

    def is_node_type(self, node: ContentNode, type_name: str) -> bool: ...

    def remove_node(self, node: ContentNode) -> None: ...


def infer_property_type(value: object) -> PropertyType:
    if isinstance(value, bool):
        return PropertyType.BOOLEAN
    if isinstance(value, int):
        return PropertyType.LONG
    if isinstance(value, float):
        return PropertyType.DOUBLE
    return PropertyType.STRING


def normalize_path(path: str) -> str:
    """Return a canonical absolute path without trailing or doubled separators."""

    if not isinstance(path, str) or not path.strip():
        raise ValueError("path must be a non-empty string")
    parts = [part for part in path.strip().split(PATH_SEPARATOR) if part]
    return ROOT_PATH + PATH_SEPARATOR.join(parts)


def is_same_or_descendant(path: str, ancestor: str) -> bool:
    """Segment-aware prefix test: ``/a/b`` is below ``/a`` but ``/ab`` is not."""

    if ancestor == ROOT_PATH:
        return True
    return path == ancestor or path.startswith(ancestor + PATH_SEPARATOR)


__all__ = [
    "BackReference",
    "ContentNode",
    "ContentProperty",
    "ContentStore",
    "NodeNotFoundError",
    "NodeTypeDefinition",
    "PropertyDefinition",
    "PropertyType",
    "REFERENCE_TYPES",
    "RESIDUAL_PROPERTY_NAME",
    "StoreAccessError",
    "infer_property_type",
    "is_same_or_descendant",
    "normalize_path",
]
