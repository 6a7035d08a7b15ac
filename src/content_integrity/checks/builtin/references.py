"""Broken references and dangling back-references."""

from __future__ import annotations

import logging
from enum import Enum

from content_integrity.checks.base import CheckBase
from content_integrity.domain.models import (
    ContentIntegrityErrorList,
    merge_error_lists,
    single_error,
)
from content_integrity.store.base import REFERENCE_TYPES, ContentNode, ContentProperty

logger = logging.getLogger(__name__)


class ReferenceErrorType(Enum):
    INVALID_BACK_REF = "INVALID_BACK_REF"
    BROKEN_REF = "BROKEN_REF"


class ReferencesCheck(CheckBase):
    check_id = "references"
    description = "References point to existing nodes and back-references come from existing nodes"

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        return merge_error_lists(self._check_back_references(node), self._check_references(node))

    def _check_references(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        errors: ContentIntegrityErrorList | None = None
        for prop in node.properties().values():
            if prop.type not in REFERENCE_TYPES:
                continue
            for value in prop.values:
                errors = merge_error_lists(errors, self._check_reference_value(node, prop, value))
        return errors

    def _check_reference_value(
        self, node: ContentNode, prop: ContentProperty, value: object
    ) -> ContentIntegrityErrorList | None:
        if not isinstance(value, str) or not value:
            logger.error("Skipping %s/%s as its value is not an identifier", node.path, prop.name)
            return None
        if node.require_store().node_exists(node.workspace, value):
            return None
        error = (
            self.create_error(node, "Broken reference", ReferenceErrorType.BROKEN_REF)
            .add_extra_info("property-name", prop.name)
            .add_extra_info("missing-uuid", value, long_form=True)
        )
        return single_error(error)

    def _check_back_references(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        store = node.require_store()
        errors: ContentIntegrityErrorList | None = None
        for back_reference in store.references_to(node):
            if store.node_exists(node.workspace, back_reference.referencing_identifier):
                continue
            error = (
                self.create_error(
                    node, "Missing referencing node", ReferenceErrorType.INVALID_BACK_REF
                )
                .add_extra_info("property-name", back_reference.property_name)
                .add_extra_info(
                    "referencing-node-path", back_reference.referencing_path, long_form=True
                )
            )
            errors = merge_error_lists(errors, single_error(error))
        return errors


__all__ = ["ReferenceErrorType", "ReferencesCheck"]
