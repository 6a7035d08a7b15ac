"""Node and property helpers shared by the built-in checks."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from datetime import date, datetime
from typing import Final

from content_integrity.constants import EDIT_WORKSPACE, LIVE_WORKSPACE
from content_integrity.store.base import (
    ContentNode,
    ContentProperty,
    NodeTypeDefinition,
    PropertyType,
)

logger = logging.getLogger(__name__)

JMIX_ORIGIN_WS: Final[str] = "jmix:originWS"
J_ORIGIN_WS: Final[str] = "j:originWS"
JMIX_LAST_PUBLISHED: Final[str] = "jmix:lastPublished"
JMIX_MARKED_FOR_DELETION_ROOT: Final[str] = "jmix:markedForDeletionRoot"
J_LAST_PUBLISHED: Final[str] = "j:lastPublished"
JCR_LAST_MODIFIED: Final[str] = "jcr:lastModified"
TRANSLATION_NODE_TYPE: Final[str] = "jnt:translation"
ELLIPSIS: Final[str] = "..."


def is_ugc_node(node: ContentNode) -> bool:
    """True for nodes written directly in live (user-generated content)."""

    if node.workspace != LIVE_WORKSPACE:
        raise ValueError("only nodes from the live workspace can be tested")
    if not node.is_node_type(JMIX_ORIGIN_WS):
        return False
    origin = node.properties().get(J_ORIGIN_WS)
    return origin is not None and not origin.multiple and origin.value == LIVE_WORKSPACE


def has_pending_modifications(node: ContentNode) -> bool:
    """True when a default-workspace node was modified after its last publication.

    Unknown publication state counts as "no pending modification".
    """

    if node.workspace != EDIT_WORKSPACE:
        raise ValueError("the publication status can be tested only in the default workspace")
    if not node.is_node_type(JMIX_LAST_PUBLISHED):
        return False
    if node.is_node_type(JMIX_MARKED_FOR_DELETION_ROOT):
        return True
    properties = node.properties()
    last_published = _single_value(properties.get(J_LAST_PUBLISHED))
    if last_published is None:
        return True
    last_modified = _single_value(properties.get(JCR_LAST_MODIFIED))
    if last_modified is None:
        logger.error("The node has no last modification date set %s", node.path)
        return False
    try:
        return _as_datetime(last_modified) > _as_datetime(last_published)
    except (TypeError, ValueError):
        logger.exception("Unreadable publication dates on %s", node.path)
        return False


def property_value_equals(first: ContentProperty, second: ContentProperty) -> bool:
    if first.multiple != second.multiple:
        return False
    if not first.multiple:
        return value_equals(first.type, first.value, second.type, second.value)
    if len(first.values) != len(second.values):
        return False
    # Order-insensitive: every value of ``second`` must match some value of ``first``.
    return all(
        any(value_equals(first.type, left, second.type, right) for left in first.values)
        for right in second.values
    )


def value_equals(
    first_type: PropertyType, first: object, second_type: PropertyType, second: object
) -> bool:
    if first is None and second is None:
        return True
    if first is None or second is None:
        return False
    if first_type is not second_type:
        return False
    if first_type is PropertyType.BINARY:
        return True
    if first_type is PropertyType.DATE:
        try:
            return _as_datetime(first) == _as_datetime(second)
        except (TypeError, ValueError):
            return str(first) == str(second)
    if first_type in {PropertyType.DOUBLE, PropertyType.LONG, PropertyType.BOOLEAN}:
        return first == second
    return str(first) == str(second)


def iter_string_values(properties: Mapping[str, ContentProperty]) -> Iterator[tuple[str, str]]:
    for name, prop in properties.items():
        if prop.type is not PropertyType.STRING:
            continue
        for value in prop.values:
            if isinstance(value, str):
                yield name, value


def iter_type_hierarchy(node: ContentNode) -> Iterator[NodeTypeDefinition]:
    """Yield the definitions of the node's primary type, its mixins, then their supertypes.

    Breadth-first, each type once. Types without a registered definition are skipped.
    """

    store = node.require_store()
    pending = [node.primary_type, *node.mixins]
    seen: set[str] = set()
    while pending:
        type_name = pending.pop(0)
        if type_name in seen:
            continue
        seen.add(type_name)
        definition = store.node_type(type_name)
        if definition is None:
            continue
        yield definition
        pending.extend(definition.supertypes)


def abbreviate(text: str, offset: int, max_width: int) -> str:
    """Shorten ``text`` to ``max_width`` characters keeping the window around ``offset``."""

    if len(text) <= max_width:
        return text
    if max_width < 7:
        raise ValueError("minimum abbreviation width with offset is 7")
    offset = min(offset, len(text))
    if len(text) - offset < max_width - 3:
        offset = len(text) - (max_width - 3)
    if offset <= 4:
        return text[: max_width - 3] + ELLIPSIS
    if offset + max_width - 3 < len(text):
        tail = text[offset:]
        return ELLIPSIS + (tail if len(tail) <= max_width - 3 else tail[: max_width - 6] + ELLIPSIS)
    return ELLIPSIS + text[len(text) - (max_width - 3) :]


def _single_value(prop: ContentProperty | None) -> object | None:
    if prop is None or prop.multiple:
        return None
    return prop.value


def _as_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise TypeError(f"expected a date value, got {type(value).__name__}")


__all__ = [
    "JMIX_ORIGIN_WS",
    "TRANSLATION_NODE_TYPE",
    "abbreviate",
    "has_pending_modifications",
    "is_ugc_node",
    "iter_string_values",
    "iter_type_hierarchy",
    "property_value_equals",
    "value_equals",
]
