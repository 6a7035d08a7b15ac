"""
content-integrity — effective configuration.

File: src/content_integrity/config/loader.py
Last updated: 2026-10-19

Purpose
- Build the configuration a command runs with, layering in increasing priority:
  built-in defaults, ``content_integrity.toml``, ``CONTENT_INTEGRITY_*``
  environment variables and command-line overrides.

Functional requirements
- The environment can override any scalar the file and defaults already define,
  including check parameters; the variable name is derived from the key path.
- Relative paths in the file resolve against the file's directory.
- Each layer is validated before the next one is applied.
"""

from __future__ import annotations

import json
import os
import re
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from content_integrity.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "content_integrity.toml"
ENV_PREFIX: Final[str] = "CONTENT_INTEGRITY_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_NON_ALNUM = re.compile(r"[^A-Z0-9]+")

KeyPath = tuple[str, ...]


class ConfigLoadError(ValueError):
    """The config file or an override could not be read or converted."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective configuration.

    Without ``config_path`` the loader looks for ``content_integrity.toml`` in
    the working directory and silently falls back to defaults when it is absent;
    an explicit path that does not exist is an error.
    """

    if config_path is None:
        source = (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    else:
        source = Path(config_path).expanduser().resolve()

    config = assert_valid_config(
        merge_config(default_config(), _read_toml(source, required=config_path is not None))
    )
    env = os.environ if environ is None else environ
    config = merge_config(config, _env_layer(config, env))
    config = merge_config(config, _cli_layer(cli_overrides or {}))
    config = assert_valid_config(config)

    for key_path in PATH_FIELDS:
        raw = _lookup(config, key_path)
        if isinstance(raw, str):
            _assign(config, key_path, _anchor_path(raw, source.parent))
    return assert_valid_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def env_name_for_path(path: KeyPath) -> str:
    """``("checks", "publication-live", "x")`` gives ``..._CHECKS_PUBLICATION_LIVE_X``."""

    return ENV_PREFIX + "_".join(_NON_ALNUM.sub("_", part.upper()) for part in path)


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _scalars(
    node: Mapping[str, object], prefix: KeyPath = ()
) -> Iterator[tuple[KeyPath, object]]:
    for key in sorted(node):
        value = node[key]
        if isinstance(value, Mapping):
            yield from _scalars(value, (*prefix, key))
        elif isinstance(value, (bool, int, float, str)):
            yield (*prefix, key), value


def _env_layer(config: Mapping[str, object], environ: Mapping[str, str]) -> dict[str, Any]:
    seen: dict[str, KeyPath] = {}
    layer: dict[str, Any] = {}
    for key_path, current in _scalars(config):
        name = env_name_for_path(key_path)
        if name in seen:
            raise ConfigLoadError(
                f"{name} is ambiguous: {'.'.join(seen[name])} and {'.'.join(key_path)}"
            )
        seen[name] = key_path
        if name in environ:
            label = f"{name} -> {'.'.join(key_path)}"
            _assign(layer, key_path, _coerce(environ[name], current, label))
    return layer


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUTHY or lowered in _FALSY:
        return lowered in _TRUTHY
    raise ValueError(text)


# bool precedes int: every bool is also an int.
_COERCERS: Final[tuple[tuple[type, Callable[[str], object], str], ...]] = (
    (bool, _parse_bool, "a boolean (true/false/1/0/yes/no/on/off)"),
    (int, int, "an integer"),
    (float, float, "a number"),
    (str, str, "a string"),
)


def _coerce(raw: str, current: object, label: str) -> object:
    parse, expected = next(
        (parse, expected) for kind, parse, expected in _COERCERS if isinstance(current, kind)
    )
    try:
        return parse(raw.strip())
    except ValueError as exc:
        raise ConfigLoadError(f"{label} must be {expected}") from exc


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key in sorted(overrides):
        key_path = tuple(part for part in key.split(".") if part)
        if not key_path:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        value = overrides[key]
        if isinstance(value, Mapping):
            value = merge_config(_lookup(layer, key_path) or {}, value)
        _assign(layer, key_path, value)
    return layer


def _lookup(node: Mapping[str, Any], key_path: KeyPath) -> Any:
    for part in key_path:
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _assign(node: dict[str, Any], key_path: KeyPath, value: object) -> None:
    for part in key_path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[key_path[-1]] = value


def _anchor_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "env_name_for_path",
    "load_config",
]
