"""
content-integrity — live/default publication consistency.

File: src/content_integrity/checks/builtin/publication.py
Last updated: 2026-10-19

Purpose
- Every node in ``live`` that is not user-generated must have a counterpart
  with the same identifier in ``default``.
- Optionally compares properties and mixins of published nodes that have no
  pending modification in ``default``.

Fix
- ``NO_DEFAULT_NODE`` is fixed by removing the live node: the deletion in
  ``default`` is assumed not to have been published.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Final

from content_integrity.checks.base import CheckBase, CheckConfiguration, ExecutionConditions
from content_integrity.checks.builtin.helpers import (
    TRANSLATION_NODE_TYPE,
    has_pending_modifications,
    is_ugc_node,
    property_value_equals,
)
from content_integrity.constants import EDIT_WORKSPACE, LIVE_WORKSPACE, ROOT_PATH
from content_integrity.domain.models import (
    ContentIntegrityError,
    ContentIntegrityErrorList,
    empty_error_list,
    single_error,
)
from content_integrity.store.base import ContentNode, NodeNotFoundError

logger = logging.getLogger(__name__)

DEEP_COMPARE_PUBLISHED_NODES: Final[str] = "deep-compare-published-nodes"
JMIX_LIVE_PROPERTIES: Final[str] = "jmix:liveProperties"
J_LIVE_PROPERTIES: Final[str] = "j:liveProperties"
_UGC_MIXIN_PREFIX: Final[str] = "jcr:mixinTypes="

# Lock properties only exist in default and do not alter the publication status.
IGNORED_DEFAULT_ONLY_PROPS: Final[frozenset[str]] = frozenset(
    {"jcr:lockOwner", "j:lockTypes", "j:locktoken", "jcr:lockIsDeep"}
)
IGNORED_LIVE_ONLY_PROPS: Final[frozenset[str]] = frozenset({J_LIVE_PROPERTIES, "j:nodename"})
NOT_COMPARED_PROPERTIES: Final[frozenset[str]] = frozenset(
    {"jcr:lastModified", "jcr:baseVersion", "jcr:predecessors", "jcr:mixinTypes"}
)


class PublicationErrorType(Enum):
    NO_DEFAULT_NODE = "NO_DEFAULT_NODE"
    MISSING_PROP_LIVE = "MISSING_PROP_LIVE"
    MISSING_PROP_DEFAULT = "MISSING_PROP_DEFAULT"
    DIFFERENT_PROP_VAL = "DIFFERENT_PROP_VAL"
    DIFFERENT_MIXINS = "DIFFERENT_MIXINS"


class PublicationLiveCheck(CheckBase):
    check_id = "publication-live"
    description = "Non user-generated live nodes must exist in default"
    conditions = ExecutionConditions(apply_on_workspaces=frozenset({LIVE_WORKSPACE}))

    def declare_parameters(self, configuration: CheckConfiguration) -> None:
        configuration.declare(
            DEEP_COMPARE_PUBLISHED_NODES,
            False,
            description=(
                "If true, the value of every property will be compared between default "
                "and live on the nodes without pending modification"
            ),
        )

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        if is_ugc_node(node):
            return None
        store = node.require_store()
        try:
            default_node = store.get_node_by_identifier(EDIT_WORKSPACE, node.identifier)
        except NodeNotFoundError:
            # A translation node written in live without any i18n value in default
            # is created without origin marker.
            if node.is_node_type(TRANSLATION_NODE_TYPE):
                return None
            return single_error(
                self.create_error(
                    node,
                    "Found not-UGC node which exists only in live",
                    PublicationErrorType.NO_DEFAULT_NODE,
                )
            )
        errors = empty_error_list()
        if self.get_parameter(DEEP_COMPARE_PUBLISHED_NODES):
            self._deep_compare(default_node, node, errors)
        return errors

    def fix_error(self, node: ContentNode, error: ContentIntegrityError) -> bool:
        if not isinstance(error.error_type, PublicationErrorType):
            logger.error("Unexpected error type: %s", error.error_type)
            return False
        if error.error_type is PublicationErrorType.NO_DEFAULT_NODE:
            node.require_store().remove_node(node)
            return True
        return False

    def _deep_compare(
        self, default_node: ContentNode, live_node: ContentNode, errors: ContentIntegrityErrorList
    ) -> None:
        # The repository root is not auto-published.
        if default_node.path == ROOT_PATH:
            return
        if has_pending_modifications(default_node):
            return

        default_props = default_node.properties()
        live_props = live_node.properties()
        for name, default_prop in default_props.items():
            live_prop = live_props.get(name)
            if live_prop is None:
                if name not in IGNORED_DEFAULT_ONLY_PROPS:
                    errors.add_error(
                        self.create_error(
                            live_node,
                            "Missing property in live on a published node",
                            PublicationErrorType.MISSING_PROP_LIVE,
                        ).add_extra_info("property-name", name)
                    )
            elif name not in NOT_COMPARED_PROPERTIES and not property_value_equals(
                default_prop, live_prop
            ):
                errors.add_error(
                    self.create_error(
                        live_node,
                        "Different value for a property in default and live on a published node",
                        PublicationErrorType.DIFFERENT_PROP_VAL,
                    ).add_extra_info("property-name", name)
                )

        ugc_properties = _live_properties(live_node)
        for name in live_props:
            if name in IGNORED_LIVE_ONLY_PROPS or name in default_props:
                continue
            if name in ugc_properties:
                continue
            errors.add_error(
                self.create_error(
                    live_node,
                    "Missing property in default on a published node",
                    PublicationErrorType.MISSING_PROP_DEFAULT,
                ).add_extra_info("property-name", name)
            )

        self._compare_mixins(default_node, live_node, errors)

    def _compare_mixins(
        self, default_node: ContentNode, live_node: ContentNode, errors: ContentIntegrityErrorList
    ) -> None:
        default_mixins = set(default_node.mixins)
        live_mixins = set(live_node.mixins)
        live_only = live_mixins - default_mixins
        if not live_only:
            if len(default_mixins) != len(live_mixins):
                errors.add_error(self._mixins_error(live_node))
            return

        ugc_mixins: set[str] = set()
        if JMIX_LIVE_PROPERTIES in live_mixins:
            ugc_mixins = {
                value[len(_UGC_MIXIN_PREFIX) :]
                for value in _live_properties(live_node)
                if value.startswith(_UGC_MIXIN_PREFIX)
            }
        if any(mixin != JMIX_LIVE_PROPERTIES and mixin not in ugc_mixins for mixin in live_only):
            errors.add_error(self._mixins_error(live_node))

    def _mixins_error(self, live_node: ContentNode) -> ContentIntegrityError:
        return self.create_error(
            live_node, "Different mixins on a published node", PublicationErrorType.DIFFERENT_MIXINS
        )


def _live_properties(live_node: ContentNode) -> set[str]:
    prop = live_node.properties().get(J_LIVE_PROPERTIES)
    if prop is None:
        return set()
    return {value for value in prop.values if isinstance(value, str)}


__all__ = ["DEEP_COMPARE_PUBLISHED_NODES", "PublicationErrorType", "PublicationLiveCheck"]
