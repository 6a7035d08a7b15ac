"""Content store collaborator interface and the in-memory implementation."""

from content_integrity.store.base import (
    REFERENCE_TYPES,
    BackReference,
    ContentNode,
    ContentProperty,
    ContentStore,
    NodeNotFoundError,
    NodeTypeDefinition,
    PropertyDefinition,
    PropertyType,
    StoreAccessError,
    is_same_or_descendant,
    normalize_path,
)
from content_integrity.store.fixtures import build_store, load_store_from_yaml
from content_integrity.store.memory import ROOT_IDENTIFIER, InMemoryContentStore

__all__ = [
    "BackReference",
    "ContentNode",
    "ContentProperty",
    "ContentStore",
    "InMemoryContentStore",
    "NodeNotFoundError",
    "NodeTypeDefinition",
    "PropertyDefinition",
    "PropertyType",
    "REFERENCE_TYPES",
    "ROOT_IDENTIFIER",
    "StoreAccessError",
    "build_store",
    "is_same_or_descendant",
    "load_store_from_yaml",
]
