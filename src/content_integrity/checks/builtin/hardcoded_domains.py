"""Site domains hardcoded in string property values."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Final

from content_integrity.checks.base import CheckBase, CheckConfiguration
from content_integrity.checks.builtin.helpers import abbreviate, iter_string_values
from content_integrity.constants import CALCULATION_ERROR, LIVE_WORKSPACE
from content_integrity.domain.models import ContentIntegrityErrorList, empty_error_list
from content_integrity.store.base import ContentNode, NodeNotFoundError, StoreAccessError

logger = logging.getLogger(__name__)

TEXT_EXTRACT_MAX_LENGTH: Final[int] = 200
TEXT_EXTRACT_READABILITY_ZONE_LENGTH: Final[int] = 20

SITES_PATH: Final[str] = "/sites"
SITE_NODE_TYPE: Final[str] = "jnt:virtualsite"
SERVER_NAME: Final[str] = "j:serverName"
SERVER_NAME_ALIASES: Final[str] = "j:serverNameAliases"

# Site nodes legitimately carry their own domains.
_IGNORED_PROPERTIES: Final[Mapping[str, frozenset[str]]] = {
    SITE_NODE_TYPE: frozenset({SERVER_NAME, SERVER_NAME_ALIASES}),
}


class HardcodedDomainErrorType(Enum):
    HARDCODED_DOMAIN = "HARDCODED_DOMAIN"


class HardcodedDomainsCheck(CheckBase):
    check_id = "hardcoded-domains"
    description = "String values must not embed a site's server name"
    enabled_by_default = False

    def __init__(self) -> None:
        super().__init__()
        self._domains: tuple[str, ...] = ()

    def declare_parameters(self, configuration: CheckConfiguration) -> None:
        configuration.declare(
            "domains",
            (),
            description="Comma-separated domains to look for, in addition to the site server names",
        )
        configuration.declare(
            "discover-site-domains",
            True,
            description="If true, server names of the live sites are searched as well",
        )

    @property
    def domains(self) -> tuple[str, ...]:
        return self._domains

    def on_initialize(self) -> None:
        found: list[str] = list(self.get_parameter("domains"))  # type: ignore[call-overload]
        if self.get_parameter("discover-site-domains") and self.scan_root is not None:
            for domain in _discover_site_domains(self.scan_root):
                if domain not in found:
                    found.append(domain)
        self._domains = tuple(found)
        logger.debug("%s searching %d domains", self.check_id, len(self._domains))

    def check_before_children(self, node: ContentNode) -> ContentIntegrityErrorList | None:
        if not self._domains:
            return None
        ignored = _IGNORED_PROPERTIES.get(node.primary_type, frozenset())
        errors = empty_error_list()
        for name, text in iter_string_values(node.properties()):
            if name in ignored:
                continue
            for domain in self._domains:
                if domain not in text:
                    continue
                errors.add_error(
                    self.create_error(
                        node,
                        "Hardcoded site domain in a String value",
                        HardcodedDomainErrorType.HARDCODED_DOMAIN,
                    )
                    .add_extra_info("property-name", name or CALCULATION_ERROR)
                    .add_extra_info("property-value", text_extract(text, domain), long_form=True)
                    .add_extra_info("domain", domain)
                )
        return errors


def text_extract(text: str, domain: str) -> str:
    if len(text) <= TEXT_EXTRACT_MAX_LENGTH:
        return text
    offset = text.find(domain) - TEXT_EXTRACT_READABILITY_ZONE_LENGTH
    return abbreviate(text, offset, TEXT_EXTRACT_MAX_LENGTH)


def _discover_site_domains(scan_root: ContentNode) -> tuple[str, ...]:
    store = scan_root.require_store()
    if LIVE_WORKSPACE not in store.workspaces():
        return ()
    try:
        sites = store.get_node(LIVE_WORKSPACE, SITES_PATH)
        candidates = store.children(sites)
    except NodeNotFoundError:
        return ()
    except StoreAccessError:
        logger.exception("Impossible to list the sites")
        return ()

    domains: list[str] = []
    for site in candidates:
        if not site.is_node_type(SITE_NODE_TYPE):
            continue
        try:
            properties = store.properties(site)
        except StoreAccessError:
            logger.exception("Impossible to read the server names of %s", site.path)
            continue
        for name in (SERVER_NAME, SERVER_NAME_ALIASES):
            prop = properties.get(name)
            if prop is None:
                continue
            for value in prop.values:
                if isinstance(value, str) and value.strip() and value.strip() not in domains:
                    domains.append(value.strip())
    return tuple(domains)


__all__ = ["HardcodedDomainErrorType", "HardcodedDomainsCheck", "text_extract"]
