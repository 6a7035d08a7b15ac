"""Check contract, registry and built-in checks."""

from content_integrity.checks.base import (
    CheckBase,
    CheckConfiguration,
    CheckConfigurationError,
    ConfigurableCheck,
    ContentIntegrityCheck,
    ExecutionConditions,
    FixableCheck,
    ParameterDefinition,
)
from content_integrity.checks.registry import (
    CheckDescriptor,
    CheckInfo,
    CheckRegistry,
    CheckResolution,
    PluginLoadError,
    UnknownCheckError,
    register_builtin_check,
)

__all__ = [
    "CheckBase",
    "CheckConfiguration",
    "CheckConfigurationError",
    "CheckDescriptor",
    "CheckInfo",
    "CheckRegistry",
    "CheckResolution",
    "ConfigurableCheck",
    "ContentIntegrityCheck",
    "ExecutionConditions",
    "FixableCheck",
    "ParameterDefinition",
    "PluginLoadError",
    "UnknownCheckError",
    "register_builtin_check",
]
