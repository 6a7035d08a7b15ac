"""In-memory content store with per-node failure injection."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final, Literal, NoReturn

from content_integrity.constants import KNOWN_WORKSPACES, PATH_SEPARATOR, ROOT_PATH
from content_integrity.store.base import (
    BackReference,
    ContentNode,
    ContentProperty,
    NodeNotFoundError,
    NodeTypeDefinition,
    PropertyType,
    StoreAccessError,
    is_same_or_descendant,
    normalize_path,
)

ROOT_IDENTIFIER: Final[str] = "cafebabe-cafe-babe-cafe-babecafebabe"
ROOT_NODE_TYPE: Final[str] = "rep:root"
DEFAULT_NODE_TYPE: Final[str] = "nt:unstructured"
BASE_NODE_TYPE: Final[str] = "nt:base"

FailureOperation = Literal["properties", "children", "references"]
_FAILURE_OPERATIONS: Final[frozenset[str]] = frozenset({"properties", "children", "references"})


@dataclass(slots=True)
class _StoredNode:
    identifier: str
    path: str
    primary_type: str
    mixins: list[str] = field(default_factory=list)
    properties: dict[str, ContentProperty] = field(default_factory=dict)
    children: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _WorkspaceData:
    by_path: dict[str, _StoredNode] = field(default_factory=dict)
    by_id: dict[str, str] = field(default_factory=dict)
    dangling_back_references: dict[str, list[BackReference]] = field(default_factory=dict)


class InMemoryContentStore:
    """Workspaces of ordered trees held in dictionaries.

    Each workspace starts with a root node. Nodes keep child insertion order,
    which is the order ``children`` returns them in.
    """

    def __init__(self, workspaces: Iterable[str] = KNOWN_WORKSPACES) -> None:
        self._lock = threading.RLock()
        self._workspaces: dict[str, _WorkspaceData] = {}
        self._node_types: dict[str, NodeTypeDefinition] = {}
        self._failures: dict[tuple[str, str, str], str] = {}
        for name in workspaces:
            self.add_workspace(name)

    # ------------------------------------------------------------------ build

    def add_workspace(self, name: str, *, root_identifier: str = ROOT_IDENTIFIER) -> None:
        if not isinstance(name, str) or not name.strip():
            _fail("workspace", "must be a non-empty string")
        with self._lock:
            if name in self._workspaces:
                _fail("workspace", f"{name!r} already exists")
            data = _WorkspaceData()
            data.by_path[ROOT_PATH] = _StoredNode(
                identifier=root_identifier, path=ROOT_PATH, primary_type=ROOT_NODE_TYPE
            )
            data.by_id[root_identifier] = ROOT_PATH
            self._workspaces[name] = data

    def add_node(
        self,
        workspace: str,
        path: str,
        *,
        primary_type: str = DEFAULT_NODE_TYPE,
        identifier: str | None = None,
        mixins: Sequence[str] = (),
        properties: Mapping[str, object] | Iterable[ContentProperty] | None = None,
    ) -> ContentNode:
        normalized = normalize_path(path)
        if normalized == ROOT_PATH:
            _fail("path", "root node already exists")
        node_id = identifier if identifier is not None else str(uuid.uuid4())
        with self._lock:
            data = self._workspace(workspace)
            if normalized in data.by_path:
                _fail("path", f"{normalized} already exists in {workspace}")
            if node_id in data.by_id:
                _fail("identifier", f"{node_id} already used in {workspace}")
            parent_path = normalized.rsplit(PATH_SEPARATOR, 1)[0] or ROOT_PATH
            parent = data.by_path.get(parent_path)
            if parent is None:
                _fail("path", f"parent {parent_path} does not exist in {workspace}")
            stored = _StoredNode(
                identifier=node_id,
                path=normalized,
                primary_type=primary_type,
                mixins=list(mixins),
                properties=_coerce_properties(properties),
            )
            data.by_path[normalized] = stored
            data.by_id[node_id] = normalized
            parent.children.append(normalized)
            return self._handle(workspace, stored)

    def set_property(self, workspace: str, path: str, prop: ContentProperty) -> None:
        with self._lock:
            stored = self._stored_by_path(workspace, normalize_path(path))
            stored.properties[prop.name] = prop

    def remove_property(self, workspace: str, path: str, name: str) -> None:
        with self._lock:
            stored = self._stored_by_path(workspace, normalize_path(path))
            stored.properties.pop(name, None)

    def register_node_type(self, definition: NodeTypeDefinition) -> None:
        with self._lock:
            self._node_types[definition.name] = definition

    def add_dangling_back_reference(
        self,
        workspace: str,
        identifier: str,
        *,
        property_name: str,
        referencing_identifier: str,
        referencing_path: str,
    ) -> None:
        """Record a back-reference whose referencing node is not in the tree."""

        with self._lock:
            data = self._workspace(workspace)
            data.dangling_back_references.setdefault(identifier, []).append(
                BackReference(
                    property_name=property_name,
                    referencing_identifier=referencing_identifier,
                    referencing_path=referencing_path,
                )
            )

    def inject_failure(
        self,
        workspace: str,
        path: str,
        operation: FailureOperation = "properties",
        *,
        message: str = "simulated store failure",
    ) -> None:
        if operation not in _FAILURE_OPERATIONS:
            _fail("operation", f"expected one of {sorted(_FAILURE_OPERATIONS)}, got {operation!r}")
        with self._lock:
            self._failures[(workspace, normalize_path(path), operation)] = message

    def clear_failures(self) -> None:
        with self._lock:
            self._failures.clear()

    # --------------------------------------------------------------- protocol

    def workspaces(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._workspaces)

    def get_node(self, workspace: str, path: str) -> ContentNode:
        normalized = normalize_path(path)
        with self._lock:
            data = self._workspace(workspace)
            stored = data.by_path.get(normalized)
            if stored is None:
                raise NodeNotFoundError(f"no node at {normalized} in workspace {workspace}")
            return self._handle(workspace, stored)

    def get_node_by_identifier(self, workspace: str, identifier: str) -> ContentNode:
        with self._lock:
            data = self._workspace(workspace)
            path = data.by_id.get(identifier)
            if path is None:
                raise NodeNotFoundError(f"no node {identifier} in workspace {workspace}")
            return self._handle(workspace, data.by_path[path])

    def node_exists(self, workspace: str, identifier: str) -> bool:
        with self._lock:
            data = self._workspaces.get(workspace)
            return data is not None and identifier in data.by_id

    def children(self, node: ContentNode) -> Sequence[ContentNode]:
        with self._lock:
            self._raise_injected(node, "children")
            stored = self._stored_by_path(node.workspace, node.path)
            data = self._workspaces[node.workspace]
            return tuple(
                self._handle(node.workspace, data.by_path[child]) for child in stored.children
            )

    def properties(self, node: ContentNode) -> Mapping[str, ContentProperty]:
        with self._lock:
            self._raise_injected(node, "properties")
            return dict(self._stored_by_path(node.workspace, node.path).properties)

    def references_to(self, node: ContentNode) -> Sequence[BackReference]:
        with self._lock:
            self._raise_injected(node, "references")
            data = self._workspace(node.workspace)
            found: list[BackReference] = []
            for stored in data.by_path.values():
                for prop in stored.properties.values():
                    if prop.type is PropertyType.REFERENCE and node.identifier in prop.values:
                        found.append(
                            BackReference(
                                property_name=prop.name,
                                referencing_identifier=stored.identifier,
                                referencing_path=stored.path,
                            )
                        )
            found.sort(key=lambda item: (item.referencing_path, item.property_name))
            found.extend(data.dangling_back_references.get(node.identifier, ()))
            return tuple(found)

    def node_type(self, type_name: str) -> NodeTypeDefinition | None:
        with self._lock:
            return self._node_types.get(type_name)

    def is_node_type(self, node: ContentNode, type_name: str) -> bool:
        if type_name == BASE_NODE_TYPE:
            return True
        pending = [node.primary_type, *node.mixins]
        seen: set[str] = set()
        with self._lock:
            while pending:
                current = pending.pop()
                if current == type_name:
                    return True
                if current in seen:
                    continue
                seen.add(current)
                definition = self._node_types.get(current)
                if definition is not None:
                    pending.extend(definition.supertypes)
        return False

    def remove_node(self, node: ContentNode) -> None:
        if node.path == ROOT_PATH:
            raise StoreAccessError("the root node cannot be removed")
        with self._lock:
            data = self._workspace(node.workspace)
            stored = data.by_path.get(node.path)
            if stored is None or stored.identifier != node.identifier:
                raise NodeNotFoundError(f"no node {node.identifier} at {node.path}")
            for path in [item for item in data.by_path if is_same_or_descendant(item, node.path)]:
                removed = data.by_path.pop(path)
                data.by_id.pop(removed.identifier, None)
            parent = data.by_path.get(node.parent_path or ROOT_PATH)
            if parent is not None and node.path in parent.children:
                parent.children.remove(node.path)

    # ---------------------------------------------------------------- helpers

    def _workspace(self, workspace: str) -> _WorkspaceData:
        data = self._workspaces.get(workspace)
        if data is None:
            raise NodeNotFoundError(f"unknown workspace {workspace!r}")
        return data

    def _stored_by_path(self, workspace: str, path: str) -> _StoredNode:
        stored = self._workspace(workspace).by_path.get(path)
        if stored is None:
            raise NodeNotFoundError(f"no node at {path} in workspace {workspace}")
        return stored

    def _raise_injected(self, node: ContentNode, operation: str) -> None:
        message = self._failures.get((node.workspace, node.path, operation))
        if message is not None:
            raise StoreAccessError(f"{operation} of {node.path} in {node.workspace}: {message}")

    def _handle(self, workspace: str, stored: _StoredNode) -> ContentNode:
        return ContentNode(
            identifier=stored.identifier,
            path=stored.path,
            workspace=workspace,
            primary_type=stored.primary_type,
            mixins=tuple(stored.mixins),
            store=self,
        )


def _coerce_properties(
    properties: Mapping[str, object] | Iterable[ContentProperty] | None,
) -> dict[str, ContentProperty]:
    if properties is None:
        return {}
    out: dict[str, ContentProperty] = {}
    if isinstance(properties, Mapping):
        for name, value in properties.items():
            if isinstance(value, ContentProperty):
                out[name] = value
            elif isinstance(value, (list, tuple)):
                out[name] = ContentProperty.multi(name, list(value))
            else:
                out[name] = ContentProperty.single(name, value)
        return out
    for prop in properties:
        if not isinstance(prop, ContentProperty):
            _fail("properties", f"expected ContentProperty, got {type(prop).__name__}")
        out[prop.name] = prop
    return out


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "BASE_NODE_TYPE",
    "DEFAULT_NODE_TYPE",
    "FailureOperation",
    "InMemoryContentStore",
    "ROOT_IDENTIFIER",
    "ROOT_NODE_TYPE",
]
