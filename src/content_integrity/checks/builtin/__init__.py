"""Built-in checks and their startup registration."""

from __future__ import annotations

from content_integrity.checks.builtin.hardcoded_domains import HardcodedDomainsCheck
from content_integrity.checks.builtin.mandatory_properties import MandatoryPropertiesCheck
from content_integrity.checks.builtin.publication import PublicationLiveCheck
from content_integrity.checks.builtin.references import ReferencesCheck
from content_integrity.checks.registry import CheckRegistry

BUILTIN_CHECKS: tuple[type, ...] = (
    HardcodedDomainsCheck,
    MandatoryPropertiesCheck,
    PublicationLiveCheck,
    ReferencesCheck,
)


def register_builtin_checks(registry: CheckRegistry) -> tuple[str, ...]:
    """Instantiate every built-in check once and register it."""

    return tuple(registry.register_builtin(check_cls()).check_id for check_cls in BUILTIN_CHECKS)


__all__ = [
    "BUILTIN_CHECKS",
    "HardcodedDomainsCheck",
    "MandatoryPropertiesCheck",
    "PublicationLiveCheck",
    "ReferencesCheck",
    "register_builtin_checks",
]
