"""Execution identifiers: format, ordering and rejection of malformed ids."""

from __future__ import annotations

import pytest

from content_integrity.domain import ids


def _fixed(byte: int):
    return lambda size: bytes([byte]) * size


def test_execution_ids_embed_their_start_time_and_sort_by_it() -> None:
    earlier = ids.generate_execution_id(timestamp_ms=1_700_000_000_000, randbytes=_fixed(0xFF))
    later = ids.generate_execution_id(timestamp_ms=1_700_000_000_001, randbytes=_fixed(0x00))

    assert earlier.startswith("scan-")
    assert len(earlier) == len("scan-") + ids.ULID_LENGTH
    assert earlier < later
    assert ids.parse_ulid_timestamp_ms(later.removeprefix("scan-")) == 1_700_000_000_001
    ids.validate_execution_id(earlier)


def test_fresh_ids_do_not_collide() -> None:
    assert len({ids.generate_execution_id() for _ in range(5_000)}) == 5_000


def test_fixed_inputs_give_the_same_id() -> None:
    first = ids.generate_ulid(timestamp_ms=42, randbytes=_fixed(7))

    assert first == ids.generate_ulid(timestamp_ms=42, randbytes=_fixed(7))
    assert set(first) <= set(ids.CROCKFORD_BASE32_ALPHABET)


def test_lowercase_ulids_are_accepted() -> None:
    ulid = ids.generate_ulid(timestamp_ms=ids.ULID_MAX_TIMESTAMP_MS, randbytes=_fixed(0))

    ids.validate_ulid(ulid.lower())
    assert ids.parse_ulid_timestamp_ms(ulid.lower()) == ids.ULID_MAX_TIMESTAMP_MS


@pytest.mark.parametrize(
    ("candidate", "message"),
    [
        ("0" * 25, "ulid length must be 26"),
        ("0" * 25 + "U", "invalid ULID character 'U' at index 25"),
        ("8" + "0" * 25, "overflow"),
    ],
)
def test_malformed_ulids_are_rejected(candidate: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        ids.validate_ulid(candidate)


def test_generation_inputs_are_checked() -> None:
    with pytest.raises(ValueError, match="out of range"):
        ids.generate_ulid(timestamp_ms=-1)
    with pytest.raises(ValueError, match="exactly 10 bytes"):
        ids.generate_ulid(randbytes=lambda size: b"\x00")
    with pytest.raises(ValueError, match="prefix must be"):
        ids.generate_prefixed_id("a-b")


def test_prefix_is_enforced_on_validation() -> None:
    results_id = ids.generate_prefixed_id("results")

    ids.validate_prefixed_id(results_id, "results")
    with pytest.raises(ValueError, match="expected prefix 'scan-'"):
        ids.validate_execution_id(results_id)
    with pytest.raises(ValueError, match="invalid id"):
        ids.validate_execution_id("scan-" + "*" * 26)


def test_short_id_keeps_the_random_tail() -> None:
    execution_id = ids.generate_execution_id()

    assert ids.short_id(execution_id) == execution_id[-8:]
    with pytest.raises(ValueError, match="at least 8"):
        ids.short_id("scan-1")
