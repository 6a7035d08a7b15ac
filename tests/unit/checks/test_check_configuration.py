"""Unit tests for declared check parameters and applicability conditions."""

from __future__ import annotations

import pytest

from content_integrity.checks.base import (
    CheckBase,
    CheckConfiguration,
    CheckConfigurationError,
    ExecutionConditions,
    parse_bool,
    parse_int,
    parse_str_list,
)
from content_integrity.store import InMemoryContentStore


def test_parsers_accept_strings_and_native_values() -> None:
    assert parse_bool("Yes") is True
    assert parse_bool(False) is False
    assert parse_int(" 12 ") == 12
    assert parse_str_list("a, b,,a") == ("a", "b")
    assert parse_str_list(["x", " y "]) == ("x", "y")

    with pytest.raises(ValueError):
        parse_bool("maybe")
    with pytest.raises(ValueError):
        parse_int(True)
    with pytest.raises(ValueError):
        parse_str_list(3)


def test_declared_parameters_are_parsed_from_their_default_type() -> None:
    configuration = CheckConfiguration("sample")
    configuration.declare("deep", False, description="Compare deeply")
    configuration.declare("limit", 10)
    configuration.declare("domains", ())

    assert configuration.set_parameter("deep", "true") is True
    assert configuration.set_parameter("limit", "25") == 25
    assert configuration.set_parameter("domains", "a.com,b.com") == ("a.com", "b.com")
    assert configuration.items() == (
        ("deep", True),
        ("limit", 25),
        ("domains", ("a.com", "b.com")),
    )

    configuration.reset_parameter("limit")
    assert configuration.get_parameter("limit") == 10


def test_unknown_or_invalid_parameters_raise_configuration_errors() -> None:
    configuration = CheckConfiguration("sample")
    configuration.declare("limit", 10)

    with pytest.raises(CheckConfigurationError, match=r"sample\.other: unknown parameter"):
        configuration.set_parameter("other", 1)
    with pytest.raises(CheckConfigurationError, match=r"sample\.limit"):
        configuration.set_parameter("limit", "many")
    with pytest.raises(CheckConfigurationError, match="already declared"):
        configuration.declare("limit", 3)


def test_pinned_values_hide_writes_until_released() -> None:
    configuration = CheckConfiguration("sample")
    configuration.declare("deep", False)

    with configuration.pinned():
        assert configuration.is_pinned
        configuration.set_parameter("deep", True)
        assert configuration.get_parameter("deep") is False

    assert not configuration.is_pinned
    assert configuration.get_parameter("deep") is True


def test_execution_conditions_filter_workspaces_and_node_types() -> None:
    store = InMemoryContentStore()
    page = store.add_node("live", "/page", primary_type="jnt:page")
    translation = store.add_node("live", "/tr", primary_type="jnt:translation")

    live_only = ExecutionConditions(apply_on_workspaces=frozenset({"live"}))
    assert live_only.applies_to_workspace("live")
    assert not live_only.applies_to_workspace("default")

    skip_translations = ExecutionConditions(skip_on_node_types=frozenset({"jnt:translation"}))
    assert skip_translations.applies_to_node(page)
    assert not skip_translations.applies_to_node(translation)

    pages_only = ExecutionConditions(apply_on_node_types=frozenset({"jnt:page"}))
    assert pages_only.applies_to_node(page)
    assert not pages_only.applies_to_node(translation)
    assert pages_only.describe() == "types=jnt:page"
    assert ExecutionConditions().describe() == "all nodes"


def test_check_base_requires_an_id() -> None:
    class _Anonymous(CheckBase):
        pass

    with pytest.raises(CheckConfigurationError, match="check_id must be set"):
        _Anonymous()
