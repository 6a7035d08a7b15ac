"""Sortable execution identifiers: ``scan-<ULID>``.

A ULID packs a 48-bit millisecond timestamp and 80 random bits into 26
Crockford Base32 characters, so identifiers sort by start time.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from typing import Final

CROCKFORD_BASE32_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH: Final[int] = 26
ULID_MAX_TIMESTAMP_MS: Final[int] = (1 << 48) - 1
EXECUTION_ID_PREFIX: Final[str] = "scan"

_RANDOM_BITS: Final[int] = 80
_DIGITS: Final[dict[str, int]] = {c: i for i, c in enumerate(CROCKFORD_BASE32_ALPHABET)}

RandomSource = Callable[[int], bytes]


def generate_ulid(
    *, timestamp_ms: int | None = None, randbytes: RandomSource | None = None
) -> str:
    """Return a new uppercase ULID; both inputs are injectable for tests."""

    stamp = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if isinstance(stamp, bool) or not isinstance(stamp, int):
        raise ValueError(f"timestamp_ms must be an int, got {type(stamp).__name__}")
    if stamp < 0 or stamp > ULID_MAX_TIMESTAMP_MS:
        raise ValueError(f"timestamp_ms out of range 0..{ULID_MAX_TIMESTAMP_MS}: {stamp}")

    entropy = bytes((randbytes or secrets.token_bytes)(_RANDOM_BITS // 8))
    if len(entropy) != _RANDOM_BITS // 8:
        raise ValueError(f"randbytes must return exactly {_RANDOM_BITS // 8} bytes")

    value = (stamp << _RANDOM_BITS) | int.from_bytes(entropy, "big")
    text = []
    for _ in range(ULID_LENGTH):
        text.append(CROCKFORD_BASE32_ALPHABET[value & 0x1F])
        value >>= 5
    return "".join(reversed(text))


def _decode(ulid: object) -> int:
    if not isinstance(ulid, str):
        raise ValueError(f"ulid must be a string, got {type(ulid).__name__}")
    if len(ulid) != ULID_LENGTH:
        raise ValueError(f"ulid length must be {ULID_LENGTH}, got {len(ulid)}")
    value = 0
    for position, char in enumerate(ulid.upper()):
        if char not in _DIGITS:
            raise ValueError(f"invalid ULID character {ulid[position]!r} at index {position}")
        value = (value << 5) | _DIGITS[char]
    # 26 characters carry 130 bits; the two leading ones must be zero.
    if value >> 128:
        raise ValueError("ulid overflow: value exceeds 128 bits")
    return value


def validate_ulid(s: str) -> None:
    _decode(s)


def parse_ulid_timestamp_ms(s: str) -> int:
    return _decode(s) >> _RANDOM_BITS


def _check_prefix(prefix: object) -> str:
    if not isinstance(prefix, str) or not prefix or "-" in prefix:
        raise ValueError(f"prefix must be a non-empty string without '-', got {prefix!r}")
    return prefix


def generate_prefixed_id(
    prefix: str, *, timestamp_ms: int | None = None, randbytes: RandomSource | None = None
) -> str:
    ulid = generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)
    return f"{_check_prefix(prefix)}-{ulid}"


def validate_prefixed_id(id_str: str, expected_prefix: str) -> None:
    lead = f"{_check_prefix(expected_prefix)}-"
    if not isinstance(id_str, str) or not id_str.startswith(lead):
        raise ValueError(f"expected prefix '{lead}' in {id_str!r}")
    try:
        _decode(id_str[len(lead) :])
    except ValueError as exc:
        raise ValueError(f"invalid id {id_str!r}: {exc}") from exc


def generate_execution_id(
    *, timestamp_ms: int | None = None, randbytes: RandomSource | None = None
) -> str:
    return generate_prefixed_id(EXECUTION_ID_PREFIX, timestamp_ms=timestamp_ms, randbytes=randbytes)


def validate_execution_id(id_str: str) -> None:
    validate_prefixed_id(id_str, EXECUTION_ID_PREFIX)


def short_id(id_str: str) -> str:
    """Last eight characters, enough to tell recent executions apart in a table."""

    if not isinstance(id_str, str) or len(id_str) < 8:
        raise ValueError(f"id must be a string of at least 8 characters, got {id_str!r}")
    return id_str[-8:]


__all__ = [
    "CROCKFORD_BASE32_ALPHABET",
    "EXECUTION_ID_PREFIX",
    "ULID_LENGTH",
    "ULID_MAX_TIMESTAMP_MS",
    "generate_execution_id",
    "generate_prefixed_id",
    "generate_ulid",
    "parse_ulid_timestamp_ms",
    "short_id",
    "validate_execution_id",
    "validate_prefixed_id",
    "validate_ulid",
]
