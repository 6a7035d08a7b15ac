"""Property values against the node-type definitions of their node.

Definitions are collected over the primary type, the mixins and their
supertypes; the first definition met for a name wins. Internationalized
definitions are checked on the translation subnodes, one locale at a time.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Final

from content_integrity.checks.base import CheckBase, CheckConfiguration, ExecutionConditions
from content_integrity.checks.builtin.constraints import (
    display_value,
    format_constraints,
    matches_declared_type,
    satisfies_constraints,
)
from content_integrity.checks.builtin.helpers import TRANSLATION_NODE_TYPE, iter_type_hierarchy
from content_integrity.constants import LIVE_WORKSPACE, PATH_SEPARATOR
from content_integrity.domain.models import ContentIntegrityErrorList, empty_error_list
from content_integrity.store.base import (
    ContentNode,
    ContentProperty,
    NodeNotFoundError,
    NodeTypeDefinition,
    PropertyDefinition,
    PropertyType,
)

logger = logging.getLogger(__name__)

SITE_LANGS_ONLY: Final[str] = "site-langs-only"
CHECK_PROPERTIES_WITHOUT_CONSTRAINT: Final[str] = "check-properties-without-constraint"

J_LANGUAGE: Final[str] = "jcr:language"
J_LANGUAGES: Final[str] = "j:languages"
J_INACTIVE_LIVE_LANGUAGES: Final[str] = "j:inactiveLiveLanguages"
_SITES_PREFIX: Final[str] = "/sites/"


class PropertyErrorType(Enum):
    MISSING_MANDATORY_PROPERTY = "Missing mandatory property"
    EMPTY_MANDATORY_PROPERTY = "Empty mandatory property"
    INVALID_VALUE_TYPE = "The value does not match the type declared in the property definition"
    INVALID_MULTI_VALUED_STATUS = (
        "The single/multi valued status differs between the value and the definition"
    )
    INVALID_VALUE_CONSTRAINT = (
        "The value does not match the constraint declared in the property definition"
    )
    UNDECLARED_PROPERTY = "Undeclared property"


@dataclass(frozen=True, slots=True)
class _Declared:
    declaring_type: str
    definition: PropertyDefinition


@dataclass(frozen=True, slots=True)
class _Translation:
    locale: str
    node: ContentNode
    properties: Mapping[str, ContentProperty]


class MandatoryPropertiesCheck(CheckBase):
    check_id = "mandatory-properties"
    description = "Property values are declared by the node types and match their definition"
    conditions = ExecutionConditions(skip_on_node_types=frozenset({TRANSLATION_NODE_TYPE}))

    def __init__(self) -> None:
        super().__init__()
        self._site_languages: dict[tuple[str, str], frozenset[str] | None] = {}

    def declare_parameters(self, configuration: CheckConfiguration) -> None:
        configuration.declare(
            SITE_LANGS_ONLY,
            False,
            description=(
                "If true, only the translation subnodes of the languages of the site "
                "are checked when the node is in a site"
            ),
        )
        configuration.declare(
            CHECK_PROPERTIES_WITHOUT_CONSTRAINT,
            False,
            description=(
                "If true, values of properties declaring no constraint must still be "
                "readable as their declared type"
            ),
        )

    def on_initialize(self) -> None:
        self._site_languages = {}

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        hierarchy = list(iter_type_hierarchy(node))
        if not hierarchy:
            # No registered definition: nothing to compare the values to.
            return None
        named, residual = _collect_definitions(hierarchy)
        translations = self._translations(node)
        properties = node.properties()
        errors = empty_error_list()

        for declared in named.values():
            definition = declared.definition
            if definition.internationalized:
                targets = [(item.properties, item.locale) for item in translations]
            else:
                targets = [(properties, None)]
            for values, locale in targets:
                prop = values.get(definition.name)
                if definition.mandatory and (prop is None or prop.is_empty()):
                    error_type = (
                        PropertyErrorType.MISSING_MANDATORY_PROPERTY
                        if prop is None
                        else PropertyErrorType.EMPTY_MANDATORY_PROPERTY
                    )
                    self._track(errors, node, error_type, definition.name, declared, locale=locale)
                elif prop is not None:
                    self._check_value(errors, node, prop, declared, locale)

        for prop in properties.values():
            declared = named.get(prop.name)
            if declared is None or declared.definition.internationalized:
                self._check_residual(errors, node, prop, residual, None)

        for translation in translations:
            own = _declared_names(translation.node)
            for prop in translation.properties.values():
                if prop.name in own:
                    continue
                declared = named.get(prop.name)
                if declared is None or not declared.definition.internationalized:
                    self._check_residual(errors, node, prop, residual, translation.locale)
        return errors

    def _check_residual(
        self,
        errors: ContentIntegrityErrorList,
        node: ContentNode,
        prop: ContentProperty,
        residual: list[_Declared],
        locale: str | None,
    ) -> None:
        for declared in residual:
            definition = declared.definition
            if definition.internationalized != (locale is not None):
                continue
            if definition.multiple == prop.multiple and not _base_type_differs(prop, definition):
                self._check_value(errors, node, prop, declared, locale)
                return
        self._track(errors, node, PropertyErrorType.UNDECLARED_PROPERTY, prop.name, locale=locale)

    def _check_value(
        self,
        errors: ContentIntegrityErrorList,
        node: ContentNode,
        prop: ContentProperty,
        declared: _Declared,
        locale: str | None,
    ) -> None:
        definition = declared.definition
        if prop.is_empty():
            return
        structure_differs = False
        if prop.multiple != definition.multiple:
            multi_status = PropertyErrorType.INVALID_MULTI_VALUED_STATUS
            self._track(errors, node, multi_status, prop.name, declared, locale=locale)
            structure_differs = True
        if _base_type_differs(prop, definition):
            self._track(
                errors,
                node,
                PropertyErrorType.INVALID_VALUE_TYPE,
                prop.name,
                declared,
                locale=locale,
                value_type=prop.type,
            )
            structure_differs = True
        if structure_differs:
            return

        constraints = definition.value_constraints
        if not constraints and not self.get_parameter(CHECK_PROPERTIES_WITHOUT_CONSTRAINT):
            return
        value_type = definition.required_type or prop.type
        for index, value in enumerate(prop.values):
            if value is None or value == "":
                continue
            if constraints:
                valid = satisfies_constraints(node, value_type, value, constraints)
            else:
                valid = matches_declared_type(definition.required_type, value)
            if valid:
                continue
            extra: dict[str, object] = {"invalid-value": display_value(value_type, value)}
            if definition.multiple:
                extra["value-index"] = index
            extra["constraints"] = format_constraints(constraints)
            self._track(
                errors,
                node,
                PropertyErrorType.INVALID_VALUE_CONSTRAINT,
                prop.name,
                declared,
                locale=locale,
                extra=extra,
            )

    def _translations(self, node: ContentNode) -> list[_Translation]:
        allowed = self._allowed_languages(node)
        out: list[_Translation] = []
        for child in node.children():
            if not child.is_node_type(TRANSLATION_NODE_TYPE):
                continue
            values = child.properties()
            language = values.get(J_LANGUAGE)
            locale = None if language is None or language.multiple else language.value
            if not isinstance(locale, str) or not locale.strip():
                logger.error(
                    "Skipping a translation node since its language is invalid: %s",
                    child.identifier,
                )
                continue
            if allowed is not None and locale not in allowed:
                continue
            out.append(_Translation(locale=locale, node=child, properties=values))
        return out

    def _allowed_languages(self, node: ContentNode) -> frozenset[str] | None:
        """Languages of the node's site, or None when every translation is checked."""

        if not self.get_parameter(SITE_LANGS_ONLY) or not node.path.startswith(_SITES_PREFIX):
            return None
        site_name = node.path[len(_SITES_PREFIX) :].split(PATH_SEPARATOR, 1)[0]
        key = (node.workspace, _SITES_PREFIX + site_name)
        if key not in self._site_languages:
            self._site_languages[key] = _site_languages(node, key[1])
        return self._site_languages[key]

    def _track(
        self,
        errors: ContentIntegrityErrorList,
        node: ContentNode,
        error_type: PropertyErrorType,
        property_name: str,
        declared: _Declared | None = None,
        *,
        locale: str | None = None,
        value_type: PropertyType | None = None,
        extra: Mapping[str, object] | None = None,
    ) -> None:
        error = self.create_error(node, error_type.value, error_type).add_extra_info(
            "property-name", property_name
        )
        if locale is not None:
            error.add_extra_info("locale", locale)
        if declared is not None:
            error.add_extra_info("declaring-type", declared.declaring_type)
        if value_type is not None:
            error.add_extra_info("value-type", value_type.value)
            if declared is not None and declared.definition.required_type is not None:
                error.add_extra_info(
                    "expected-value-type", declared.definition.required_type.value
                )
        for key, value in (extra or {}).items():
            error.add_extra_info(key, value)
        errors.add_error(error)


def _collect_definitions(
    hierarchy: list[NodeTypeDefinition],
) -> tuple[dict[str, _Declared], list[_Declared]]:
    named: dict[str, _Declared] = {}
    residual: list[_Declared] = []
    for node_type in hierarchy:
        for definition in node_type.properties:
            declared = _Declared(declaring_type=node_type.name, definition=definition)
            if definition.is_residual:
                residual.append(declared)
            elif definition.name not in named:
                named[definition.name] = declared
    return named, residual


def _declared_names(node: ContentNode) -> set[str]:
    names = {J_LANGUAGE}
    for node_type in iter_type_hierarchy(node):
        names.update(item.name for item in node_type.properties if not item.is_residual)
    return names


def _site_languages(node: ContentNode, site_path: str) -> frozenset[str] | None:
    store = node.require_store()
    try:
        site = store.get_node(node.workspace, site_path)
    except NodeNotFoundError:
        logger.warning("No site node at %s, checking every translation", site_path)
        return None
    values = store.properties(site)
    languages = _string_values(values.get(J_LANGUAGES))
    if node.workspace == LIVE_WORKSPACE:
        languages -= _string_values(values.get(J_INACTIVE_LIVE_LANGUAGES))
    return frozenset(languages)


def _string_values(prop: ContentProperty | None) -> set[str]:
    if prop is None:
        return set()
    return {item for item in prop.values if isinstance(item, str) and item}


def _base_type_differs(prop: ContentProperty, definition: PropertyDefinition) -> bool:
    required = definition.required_type
    if required is None:
        return False
    if prop.type is PropertyType.WEAKREFERENCE and required is PropertyType.REFERENCE:
        return False
    return prop.type is not required


__all__ = [
    "CHECK_PROPERTIES_WITHOUT_CONSTRAINT",
    "SITE_LANGS_ONLY",
    "MandatoryPropertiesCheck",
    "PropertyErrorType",
]
