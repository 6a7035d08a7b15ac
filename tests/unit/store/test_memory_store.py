"""Unit tests for the in-memory content store."""

from __future__ import annotations

import pytest

from content_integrity.store import (
    ROOT_IDENTIFIER,
    ContentProperty,
    InMemoryContentStore,
    NodeNotFoundError,
    NodeTypeDefinition,
    PropertyType,
    StoreAccessError,
    is_same_or_descendant,
    normalize_path,
)


def _store() -> InMemoryContentStore:
    store = InMemoryContentStore()
    store.add_node("default", "/sites", identifier="sites")
    store.add_node("default", "/sites/a", identifier="a", properties={"jcr:title": "A"})
    store.add_node("default", "/sites/b", identifier="b")
    store.add_node("default", "/sites/a/page", identifier="page")
    return store


def test_normalize_path_and_descendant_test_are_segment_aware() -> None:
    assert normalize_path("sites//a/") == "/sites/a"
    assert normalize_path("/") == "/"
    assert is_same_or_descendant("/a/b", "/a")
    assert is_same_or_descendant("/a", "/a")
    assert not is_same_or_descendant("/ab", "/a")
    assert is_same_or_descendant("/anything", "/")

    with pytest.raises(ValueError, match="non-empty"):
        normalize_path(" ")


def test_every_workspace_starts_with_a_root_node() -> None:
    store = InMemoryContentStore()

    assert store.workspaces() == ("default", "live")
    root = store.get_node("live", "/")
    assert root.identifier == ROOT_IDENTIFIER
    assert root.parent_path is None
    assert root.name == ""


def test_children_keep_insertion_order() -> None:
    store = _store()
    sites = store.get_node("default", "/sites")

    assert [child.name for child in store.children(sites)] == ["a", "b"]
    assert [child.path for child in sites.children()] == ["/sites/a", "/sites/b"]


def test_add_node_requires_an_existing_parent_and_unique_ids() -> None:
    store = _store()

    with pytest.raises(ValueError, match="parent /missing does not exist"):
        store.add_node("default", "/missing/child")
    with pytest.raises(ValueError, match="already exists"):
        store.add_node("default", "/sites/a")
    with pytest.raises(ValueError, match="already used"):
        store.add_node("default", "/sites/c", identifier="a")
    with pytest.raises(NodeNotFoundError, match="unknown workspace"):
        store.add_node("archive", "/x")


def test_lookup_by_path_and_identifier() -> None:
    store = _store()

    assert store.get_node_by_identifier("default", "page").path == "/sites/a/page"
    assert store.node_exists("default", "page")
    assert not store.node_exists("live", "page")
    assert not store.node_exists("archive", "page")

    with pytest.raises(NodeNotFoundError):
        store.get_node("default", "/sites/zzz")
    with pytest.raises(NodeNotFoundError):
        store.get_node_by_identifier("live", "page")


def test_property_values_are_typed() -> None:
    store = _store()
    store.set_property("default", "/sites/b", ContentProperty.single("count", 3))
    store.set_property("default", "/sites/b", ContentProperty.multi("tags", ["x", "y"]))
    store.set_property("default", "/sites/b", ContentProperty.reference("target", "a"))

    props = store.properties(store.get_node("default", "/sites/b"))

    assert props["count"].type is PropertyType.LONG
    assert props["count"].value == 3
    assert props["tags"].multiple
    assert props["tags"].values == ("x", "y")
    assert props["target"].type is PropertyType.REFERENCE

    store.remove_property("default", "/sites/b", "count")
    assert "count" not in store.get_node("default", "/sites/b").properties()

    with pytest.raises(ValueError, match="multi-valued property has no single value"):
        _ = props["tags"].value


def test_references_to_lists_referencing_nodes_then_dangling_entries() -> None:
    store = _store()
    store.set_property("default", "/sites/b", ContentProperty.reference("link", "a"))
    store.add_dangling_back_reference(
        "default",
        "a",
        property_name="ghost",
        referencing_identifier="gone",
        referencing_path="/gone",
    )

    refs = store.references_to(store.get_node("default", "/sites/a"))

    assert [(ref.referencing_path, ref.property_name) for ref in refs] == [
        ("/sites/b", "link"),
        ("/gone", "ghost"),
    ]


def test_node_type_hierarchy_includes_mixins_and_supertypes() -> None:
    store = InMemoryContentStore()
    store.register_node_type(NodeTypeDefinition(name="jnt:page", supertypes=("jnt:content",)))
    store.register_node_type(NodeTypeDefinition(name="jnt:content", supertypes=("nt:base",)))
    node = store.add_node(
        "default", "/page", primary_type="jnt:page", mixins=("jmix:lastPublished",)
    )

    assert store.is_node_type(node, "jnt:page")
    assert store.is_node_type(node, "jnt:content")
    assert store.is_node_type(node, "jmix:lastPublished")
    assert store.is_node_type(node, "nt:base")
    assert not store.is_node_type(node, "jnt:virtualsite")


def test_injected_failures_only_affect_the_targeted_operation() -> None:
    store = _store()
    store.inject_failure("default", "/sites/a", "children", message="boom")
    node = store.get_node("default", "/sites/a")

    with pytest.raises(StoreAccessError, match="boom"):
        store.children(node)
    assert store.properties(node)["jcr:title"].value == "A"

    store.clear_failures()
    assert [child.name for child in store.children(node)] == ["page"]

    with pytest.raises(ValueError, match="operation"):
        store.inject_failure("default", "/sites/a", "delete")  # type: ignore[arg-type]


def test_remove_node_drops_the_subtree() -> None:
    store = _store()
    store.remove_node(store.get_node("default", "/sites/a"))

    assert not store.node_exists("default", "a")
    assert not store.node_exists("default", "page")
    sites = store.get_node("default", "/sites")
    assert [child.name for child in store.children(sites)] == ["b"]

    with pytest.raises(StoreAccessError, match="root"):
        store.remove_node(store.get_node("default", "/"))
