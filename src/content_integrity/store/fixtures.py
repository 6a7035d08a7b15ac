"""
content-integrity — YAML tree fixtures.

File: src/content_integrity/store/fixtures.py
Last updated: 2026-10-19

Purpose
- Build an ``InMemoryContentStore`` from a YAML document so scans can be run
  against hand-written trees from the CLI and from tests.

Document layout
- ``node_types``: list of ``{name, supertypes?, mixin?, properties?}`` where each
  property is ``{name, mandatory?, multiple?, type?, constraints?, i18n?}``; the
  name ``*`` declares residual properties.
- ``workspaces``: mapping workspace name to a list of nodes, parents first.
  Each node is ``{path, type?, id?, mixins?, properties?}``. A property value is
  a scalar, a list, or ``{type, value}`` / ``{type, values}`` for typed values.
- ``dangling_back_references``: optional list of
  ``{workspace, target, property, from_id, from_path}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Final, cast

import yaml

from content_integrity.store.base import (
    ContentProperty,
    NodeTypeDefinition,
    PropertyDefinition,
    PropertyType,
)
from content_integrity.store.memory import DEFAULT_NODE_TYPE, InMemoryContentStore

_ALLOWED_TOP_LEVEL: Final[frozenset[str]] = frozenset(
    {"node_types", "workspaces", "dangling_back_references"}
)
_ALLOWED_NODE_FIELDS: Final[frozenset[str]] = frozenset(
    {"path", "type", "id", "mixins", "properties"}
)
_ALLOWED_NODE_TYPE_FIELDS: Final[frozenset[str]] = frozenset(
    {"name", "supertypes", "mixin", "properties"}
)
_ALLOWED_PROPERTY_DEFINITION_FIELDS: Final[frozenset[str]] = frozenset(
    {"name", "mandatory", "multiple", "type", "constraints", "i18n"}
)
_ALLOWED_BACK_REF_FIELDS: Final[frozenset[str]] = frozenset(
    {"workspace", "target", "property", "from_id", "from_path"}
)


def load_store_from_yaml(source: str | Path) -> InMemoryContentStore:
    """Load a fixture from a path or from YAML text."""

    if isinstance(source, Path):
        try:
            with source.open("r", encoding="utf-8") as handle:
                loaded = cast("object", yaml.safe_load(handle))
        except OSError as exc:
            raise ValueError(f"{source}: unable to read fixture ({exc})") from exc
        except yaml.YAMLError as exc:
            raise ValueError(f"{source}: invalid YAML ({exc})") from exc
        return build_store(loaded, location=source.name)

    try:
        loaded = cast("object", yaml.safe_load(source))
    except yaml.YAMLError as exc:
        raise ValueError(f"fixture: invalid YAML ({exc})") from exc
    return build_store(loaded, location="fixture")


def build_store(document: object, *, location: str = "fixture") -> InMemoryContentStore:
    parsed = _as_mapping(document, location)
    unknown = sorted(set(parsed) - _ALLOWED_TOP_LEVEL)
    if unknown:
        raise ValueError(f"{location}: unexpected fields: {unknown}")

    workspaces = _as_mapping(parsed.get("workspaces", {}), f"{location}.workspaces")
    store = InMemoryContentStore(workspaces=tuple(workspaces) or ("default",))

    for index, item in enumerate(_as_list(parsed.get("node_types", []), f"{location}.node_types")):
        store.register_node_type(_parse_node_type(item, f"{location}.node_types[{index}]"))

    for workspace, nodes in workspaces.items():
        for index, item in enumerate(_as_list(nodes, f"{location}.workspaces.{workspace}")):
            _add_node(store, workspace, item, f"{location}.workspaces.{workspace}[{index}]")

    back_refs = _as_list(
        parsed.get("dangling_back_references", []), f"{location}.dangling_back_references"
    )
    for index, item in enumerate(back_refs):
        entry_location = f"{location}.dangling_back_references[{index}]"
        entry = _as_mapping(item, entry_location)
        _reject_unknown(entry, _ALLOWED_BACK_REF_FIELDS, entry_location)
        store.add_dangling_back_reference(
            _as_str(entry.get("workspace", "default"), f"{entry_location}.workspace"),
            _as_str(entry.get("target"), f"{entry_location}.target"),
            property_name=_as_str(entry.get("property"), f"{entry_location}.property"),
            referencing_identifier=_as_str(entry.get("from_id"), f"{entry_location}.from_id"),
            referencing_path=_as_str(entry.get("from_path"), f"{entry_location}.from_path"),
        )
    return store


def _add_node(store: InMemoryContentStore, workspace: str, item: object, location: str) -> None:
    node = _as_mapping(item, location)
    _reject_unknown(node, _ALLOWED_NODE_FIELDS, location)
    raw_id = node.get("id")
    properties = _as_mapping(node.get("properties", {}), f"{location}.properties")
    try:
        store.add_node(
            workspace,
            _as_str(node.get("path"), f"{location}.path"),
            primary_type=_as_str(node.get("type", DEFAULT_NODE_TYPE), f"{location}.type"),
            identifier=None if raw_id is None else _as_str(raw_id, f"{location}.id"),
            mixins=_as_str_tuple(node.get("mixins", []), f"{location}.mixins"),
            properties=[
                _parse_property(name, value, f"{location}.properties.{name}")
                for name, value in properties.items()
            ],
        )
    except ValueError as exc:
        raise ValueError(f"{location}: {exc}") from exc


def _parse_property(name: str, value: object, location: str) -> ContentProperty:
    if isinstance(value, Mapping):
        typed = _as_mapping(value, location)
        prop_type = _as_property_type(typed.get("type", "STRING"), f"{location}.type")
        if "values" in typed:
            values = _as_list(typed["values"], f"{location}.values")
            return ContentProperty.multi(name, values, prop_type)
        if "value" not in typed:
            raise ValueError(f"{location}: typed property needs 'value' or 'values'")
        return ContentProperty.single(name, typed["value"], prop_type)
    if isinstance(value, list):
        return ContentProperty.multi(name, value)
    return ContentProperty.single(name, value)


def _parse_node_type(item: object, location: str) -> NodeTypeDefinition:
    entry = _as_mapping(item, location)
    _reject_unknown(entry, _ALLOWED_NODE_TYPE_FIELDS, location)
    definitions: list[PropertyDefinition] = []
    for index, raw in enumerate(_as_list(entry.get("properties", []), f"{location}.properties")):
        prop_location = f"{location}.properties[{index}]"
        prop = _as_mapping(raw, prop_location)
        _reject_unknown(prop, _ALLOWED_PROPERTY_DEFINITION_FIELDS, prop_location)
        raw_type = prop.get("type")
        definitions.append(
            PropertyDefinition(
                name=_as_str(prop.get("name"), f"{prop_location}.name"),
                mandatory=bool(prop.get("mandatory", False)),
                multiple=bool(prop.get("multiple", False)),
                required_type=(
                    None
                    if raw_type is None
                    else _as_property_type(raw_type, f"{prop_location}.type")
                ),
                value_constraints=_as_constraints(
                    prop.get("constraints", []), f"{prop_location}.constraints"
                ),
                internationalized=bool(prop.get("i18n", False)),
            )
        )
    return NodeTypeDefinition(
        name=_as_str(entry.get("name"), f"{location}.name"),
        supertypes=_as_str_tuple(entry.get("supertypes", []), f"{location}.supertypes"),
        properties=tuple(definitions),
        mixin=bool(entry.get("mixin", False)),
    )


def _as_mapping(value: object, location: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"{location}: expected mapping, got {type(value).__name__}")
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ValueError(f"{location}: keys must be strings, got {type(key).__name__}")
        out[key] = item
    return out


def _as_list(value: object, location: str) -> list[object]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{location}: expected list, got {type(value).__name__}")
    return value


def _as_str(value: object, location: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{location}: expected non-empty string")
    return value


def _as_str_tuple(value: object, location: str) -> tuple[str, ...]:
    items = _as_list(value, location)
    return tuple(_as_str(item, f"{location}[{index}]") for index, item in enumerate(items))


def _as_constraints(value: object, location: str) -> tuple[str, ...]:
    # YAML reads unquoted constraints such as `true` or `3` as scalars
    items = _as_list(value, location)
    out: list[str] = []
    for index, item in enumerate(items):
        if isinstance(item, bool):
            out.append(str(item).lower())
        elif isinstance(item, (str, int, float)):
            out.append(str(item))
        else:
            raise ValueError(f"{location}[{index}]: expected a constraint string")
    return tuple(out)


def _as_property_type(value: object, location: str) -> PropertyType:
    if not isinstance(value, str):
        raise ValueError(f"{location}: expected property type name")
    try:
        return PropertyType(value.upper())
    except ValueError:
        allowed = ", ".join(item.value for item in PropertyType)
        raise ValueError(f"{location}: invalid type {value!r}; expected: {allowed}") from None


def _reject_unknown(entry: Mapping[str, object], allowed: frozenset[str], location: str) -> None:
    unknown = sorted(set(entry) - allowed)
    if unknown:
        raise ValueError(f"{location}: unexpected fields: {unknown}; allowed: {sorted(allowed)}")


__all__ = ["build_store", "load_store_from_yaml"]
