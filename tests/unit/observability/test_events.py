"""
content-integrity — unit tests for the scan log event bus

File: tests/unit/observability/test_events.py
Last updated: 2026-10-19

Purpose
- Validate log line fanout, per-execution filtering and subscriber isolation.

Non-functional requirements
- No sleep-based synchronization.
"""

from __future__ import annotations

import pytest

from content_integrity.observability.events import LogEventBus, ScanLogEvent


def _event(sequence: int, execution_id: str = "scan-a") -> ScanLogEvent:
    return ScanLogEvent(execution_id=execution_id, sequence=sequence, line=f"line {sequence}")


def test_subscribers_receive_events_in_publish_order() -> None:
    bus = LogEventBus()
    sub_a: list[str] = []
    sub_b: list[str] = []

    bus.subscribe(lambda event: sub_a.append(event.line))
    bus.subscribe(lambda event: sub_b.append(event.line))

    assert bus.publish(_event(1)) == ()
    assert bus.publish(_event(2)) == ()

    assert sub_a == ["line 1", "line 2"]
    assert sub_b == ["line 1", "line 2"]


def test_execution_filter_limits_delivery() -> None:
    bus = LogEventBus()
    only_b: list[int] = []
    bus.subscribe(lambda event: only_b.append(event.sequence), execution_id="scan-b")

    bus.publish(_event(1, "scan-a"))
    bus.publish(_event(2, "scan-b"))

    assert only_b == [2]


def test_failing_subscriber_is_isolated_and_recorded() -> None:
    bus = LogEventBus(error_buffer_size=2)
    received: list[int] = []

    def broken(event: ScanLogEvent) -> None:
        raise RuntimeError(f"cannot render {event.sequence}")

    bus.subscribe(broken)
    bus.subscribe(lambda event: received.append(event.sequence))

    errors = bus.publish(_event(1))
    bus.publish(_event(2))
    bus.publish(_event(3))

    assert received == [1, 2, 3]
    assert errors[0].target == "broken"
    assert errors[0].error_type == "RuntimeError"
    assert errors[0].message == "cannot render 1"
    assert [error.sequence for error in bus.dispatch_errors()] == [2, 3]
    assert [error.sequence for error in bus.dispatch_errors(limit=1)] == [3]
    assert bus.dispatch_errors(limit=0) == ()


def test_unsubscribe_stops_delivery() -> None:
    bus = LogEventBus()
    received: list[int] = []
    token = bus.subscribe(lambda event: received.append(event.sequence))

    bus.publish(_event(1))
    assert bus.unsubscribe(token) is True
    assert bus.unsubscribe(token) is False
    bus.publish(_event(2))

    assert received == [1]


def test_invalid_arguments_are_rejected() -> None:
    bus = LogEventBus()

    with pytest.raises(ValueError, match="callable"):
        bus.subscribe("not callable")  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="token must be an integer"):
        bus.unsubscribe(True)
    with pytest.raises(ValueError, match="event must be ScanLogEvent"):
        bus.publish("line")  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="error_buffer_size"):
        LogEventBus(error_buffer_size=0)
