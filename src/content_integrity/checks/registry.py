"""
content-integrity — check registry.

File: src/content_integrity/checks/registry.py
Last updated: 2026-10-19

Purpose
- Holds every registered check instance with its enabled flag, applicability
  conditions and origin, and resolves the effective check list for one scan.

Functional requirements
- Registration happens once per id; duplicates are rejected.
- Enabling or disabling is a toggle on the descriptor, never a re-registration.
- Resolution intersects enabled checks, the caller whitelist and workspace
  applicability, and reports whitelisted ids that are not registered.
- External checks are discovered explicitly from ``"module:attr"`` strings.

Non-functional requirements
- Deterministic ordering: descriptors and resolutions are sorted by check id.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Literal, NoReturn, TypeVar

from content_integrity.checks.base import (
    CheckConfiguration,
    CheckConfigurationError,
    ConfigurableCheck,
    ContentIntegrityCheck,
    ExecutionConditions,
    FixableCheck,
)

logger = logging.getLogger(__name__)

CheckSource = Literal["builtin", "external"]
CheckFactory = Callable[[], ContentIntegrityCheck]


class UnknownCheckError(LookupError):
    """Raised when a check id is not registered."""


class PluginLoadError(ValueError):
    """Raised when an external check reference cannot be imported or built."""


@dataclass(frozen=True, slots=True)
class ConfigurationEntry:
    name: str
    value: object
    default: object
    description: str


@dataclass(frozen=True, slots=True)
class CheckInfo:
    """Read-only view of one check for listing surfaces."""

    check_id: str
    enabled: bool
    source: CheckSource
    description: str
    conditions: str
    fixable: bool
    configuration: tuple[ConfigurationEntry, ...]

    def configuration_pairs(self) -> tuple[tuple[str, object], ...]:
        return tuple((entry.name, entry.value) for entry in self.configuration)


@dataclass(slots=True)
class CheckDescriptor:
    check_id: str
    check: ContentIntegrityCheck
    source: CheckSource
    conditions: ExecutionConditions
    enabled: bool
    description: str = ""

    @property
    def configuration(self) -> CheckConfiguration | None:
        if isinstance(self.check, ConfigurableCheck):
            return self.check.configuration
        return None

    @property
    def fixable(self) -> bool:
        return isinstance(self.check, FixableCheck)

    def info(self) -> CheckInfo:
        configuration = self.configuration
        entries: tuple[ConfigurationEntry, ...] = ()
        if configuration is not None:
            live = dict(configuration.items())
            entries = tuple(
                ConfigurationEntry(
                    name=definition.name,
                    value=live[definition.name],
                    default=definition.default,
                    description=definition.description,
                )
                for definition in configuration.declared_parameters()
            )
        return CheckInfo(
            check_id=self.check_id,
            enabled=self.enabled,
            source=self.source,
            description=self.description,
            conditions=self.conditions.describe(),
            fixable=self.fixable,
            configuration=entries,
        )


@dataclass(frozen=True, slots=True)
class CheckResolution:
    """Effective checks for one workspace pass, plus what was filtered out and why."""

    workspace: str
    descriptors: tuple[CheckDescriptor, ...]
    unknown_ids: tuple[str, ...] = ()
    disabled_ids: tuple[str, ...] = ()
    not_applicable_ids: tuple[str, ...] = ()

    @property
    def check_ids(self) -> tuple[str, ...]:
        return tuple(item.check_id for item in self.descriptors)

    def is_empty(self) -> bool:
        return not self.descriptors


class CheckRegistry:
    """Process-wide registry of check instances keyed by id."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._descriptors: dict[str, CheckDescriptor] = {}

    def register(
        self,
        check: ContentIntegrityCheck,
        *,
        source: CheckSource,
        enabled: bool | None = None,
        conditions: ExecutionConditions | None = None,
    ) -> CheckDescriptor:
        if not isinstance(check, ContentIntegrityCheck):
            _fail("check", f"{type(check).__name__} does not implement the check contract")
        check_id = _as_check_id(getattr(check, "check_id", None))
        resolved_conditions = conditions
        if resolved_conditions is None:
            resolved_conditions = getattr(check, "conditions", None) or ExecutionConditions()
        if not isinstance(resolved_conditions, ExecutionConditions):
            _fail("conditions", f"{check_id!r}: expected ExecutionConditions")
        resolved_enabled = enabled
        if resolved_enabled is None:
            resolved_enabled = bool(getattr(check, "enabled_by_default", True))

        with self._lock:
            existing = self._descriptors.get(check_id)
            if existing is not None:
                _fail("check_id", f"{check_id!r} already registered by {existing.source} check")
            descriptor = CheckDescriptor(
                check_id=check_id,
                check=check,
                source=source,
                conditions=resolved_conditions,
                enabled=resolved_enabled,
                description=str(getattr(check, "description", "") or ""),
            )
            self._descriptors[check_id] = descriptor
        logger.debug("registered %s check %s (enabled=%s)", source, check_id, resolved_enabled)
        return descriptor

    def register_builtin(self, check: ContentIntegrityCheck, **kwargs: object) -> CheckDescriptor:
        return self.register(check, source="builtin", **kwargs)  # type: ignore[arg-type]

    def register_external(self, check: ContentIntegrityCheck, **kwargs: object) -> CheckDescriptor:
        return self.register(check, source="external", **kwargs)  # type: ignore[arg-type]

    def register_external_plugins(self, plugins: Mapping[str, CheckFactory]) -> tuple[str, ...]:
        """Build and register external checks in deterministic key order."""

        registered: list[str] = []
        for name in sorted(plugins):
            check = _build_check(plugins[name], reference=name)
            registered.append(self.register_external(check).check_id)
        return tuple(registered)

    def load_plugins(self, references: Iterable[str]) -> tuple[str, ...]:
        """Import ``"package.module:attr"`` references and register what they yield.

        ``attr`` may be a check class with a zero-arg constructor, a factory
        callable, or an already-built check instance.
        """

        registered: list[str] = []
        for reference in references:
            target = _import_reference(reference)
            if isinstance(target, ContentIntegrityCheck) and not inspect.isclass(target):
                check = target
            else:
                check = _build_check(target, reference=reference)
            registered.append(self.register_external(check).check_id)
            logger.info("loaded external check %s from %s", registered[-1], reference)
        return tuple(registered)

    def contains(self, check_id: str) -> bool:
        with self._lock:
            return check_id in self._descriptors

    def get(self, check_id: str) -> CheckDescriptor:
        with self._lock:
            descriptor = self._descriptors.get(check_id)
            if descriptor is None:
                known = ", ".join(sorted(self._descriptors))
                raise UnknownCheckError(f"unknown check {check_id!r}; registered: [{known}]")
            return descriptor

    def get_check(self, check_id: str) -> ContentIntegrityCheck:
        return self.get(check_id).check

    def registered_ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._descriptors))

    def descriptors(self) -> tuple[CheckDescriptor, ...]:
        with self._lock:
            return tuple(self._descriptors[key] for key in sorted(self._descriptors))

    def list_checks(self) -> tuple[CheckInfo, ...]:
        return tuple(descriptor.info() for descriptor in self.descriptors())

    def set_enabled(self, check_id: str, enabled: bool) -> None:
        with self._lock:
            self.get(check_id).enabled = bool(enabled)
        logger.info("check %s %s", check_id, "enabled" if enabled else "disabled")

    def set_parameter(self, check_id: str, name: str, value: object) -> object:
        configuration = self.get(check_id).configuration
        if configuration is None:
            raise CheckConfigurationError(f"{check_id}: check does not accept parameters")
        parsed = configuration.set_parameter(name, value)
        logger.info("check %s parameter %s set to %r", check_id, name, parsed)
        return parsed

    def resolve(self, whitelist: Iterable[str] = (), *, workspace: str) -> CheckResolution:
        requested = tuple(dict.fromkeys(item for item in whitelist if item))
        with self._lock:
            unknown = tuple(item for item in requested if item not in self._descriptors)
            candidates = [
                self._descriptors[key]
                for key in sorted(self._descriptors)
                if not requested or key in requested
            ]
        selected: list[CheckDescriptor] = []
        disabled: list[str] = []
        not_applicable: list[str] = []
        for descriptor in candidates:
            if not descriptor.enabled:
                disabled.append(descriptor.check_id)
            elif not descriptor.conditions.applies_to_workspace(workspace):
                not_applicable.append(descriptor.check_id)
            else:
                selected.append(descriptor)
        return CheckResolution(
            workspace=workspace,
            descriptors=tuple(selected),
            unknown_ids=unknown,
            disabled_ids=tuple(disabled),
            not_applicable_ids=tuple(not_applicable),
        )


CheckType = TypeVar("CheckType", bound=type)


def register_builtin_check(
    registry: CheckRegistry,
    *,
    enabled: bool | None = None,
) -> Callable[[CheckType], CheckType]:
    """Decorator that instantiates a check class and registers it as built-in."""

    def decorator(check_cls: CheckType) -> CheckType:
        _validate_zero_arg_constructor(check_cls)
        registry.register_builtin(check_cls(), enabled=enabled)
        return check_cls

    return decorator


def _import_reference(reference: str) -> object:
    if not isinstance(reference, str) or reference.count(":") != 1:
        raise PluginLoadError(f"{reference!r}: expected 'package.module:attribute'")
    module_name, attribute = (part.strip() for part in reference.split(":"))
    if not module_name or not attribute:
        raise PluginLoadError(f"{reference!r}: expected 'package.module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise PluginLoadError(f"{reference!r}: cannot import {module_name} ({exc})") from exc
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise PluginLoadError(f"{reference!r}: {module_name} has no {attribute!r}") from None


def _build_check(factory: object, *, reference: str) -> ContentIntegrityCheck:
    if not callable(factory):
        raise PluginLoadError(f"{reference!r}: expected a check class or factory")
    if inspect.isclass(factory):
        _validate_zero_arg_constructor(factory)
    check = factory()
    if not isinstance(check, ContentIntegrityCheck):
        raise PluginLoadError(
            f"{reference!r}: factory returned {type(check).__name__}, not a check"
        )
    return check


def _validate_zero_arg_constructor(check_cls: type[object]) -> None:
    signature = inspect.signature(check_cls)
    for parameter in signature.parameters.values():
        if (
            parameter.kind
            in {
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                inspect.Parameter.KEYWORD_ONLY,
            }
            and parameter.default is inspect.Signature.empty
        ):
            _fail(
                "check_cls",
                (
                    f"{check_cls.__name__} requires a zero-arg constructor; "
                    f"parameter '{parameter.name}' is required"
                ),
            )


def _as_check_id(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        _fail("check_id", "must be a non-empty string")
    if len(value) > 128:
        _fail("check_id", "must be at most 128 characters")
    return value.strip()


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "CheckDescriptor",
    "CheckFactory",
    "CheckInfo",
    "CheckRegistry",
    "CheckResolution",
    "CheckSource",
    "ConfigurationEntry",
    "PluginLoadError",
    "UnknownCheckError",
    "register_builtin_check",
]
