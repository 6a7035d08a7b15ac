"""Live streaming of execution log lines to in-process listeners.

Listeners run synchronously on the scanning thread, in subscription order. A
listener that raises is logged and recorded as a ``DispatchError``; the scan
and the other listeners carry on.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScanLogEvent:
    execution_id: str
    sequence: int  # 1-based position of the line in the execution log
    line: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


Subscriber = Callable[[ScanLogEvent], object]


@dataclass(frozen=True, slots=True)
class DispatchError:
    execution_id: str
    sequence: int
    target: str
    error_type: str
    message: str


class LogEventBus:
    def __init__(self, *, error_buffer_size: int = 1024) -> None:
        if isinstance(error_buffer_size, bool) or not isinstance(error_buffer_size, int):
            raise ValueError("error_buffer_size must be an integer")
        if error_buffer_size < 1:
            raise ValueError("error_buffer_size must be > 0")
        self._listeners: dict[int, tuple[str | None, Subscriber]] = {}
        self._tokens = itertools.count(1)
        self._failures: deque[DispatchError] = deque(maxlen=error_buffer_size)
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber, *, execution_id: str | None = None) -> int:
        """Listen to one execution, or to all of them when ``execution_id`` is None.

        Returns the token to pass to ``unsubscribe``.
        """

        if not callable(callback):
            raise ValueError("callback must be callable")
        with self._lock:
            token = next(self._tokens)
            self._listeners[token] = (execution_id, callback)
        return token

    def unsubscribe(self, token: int) -> bool:
        if isinstance(token, bool) or not isinstance(token, int):
            raise ValueError(f"token must be an integer, got {type(token).__name__}")
        with self._lock:
            return self._listeners.pop(token, None) is not None

    def publish(self, event: ScanLogEvent) -> tuple[DispatchError, ...]:
        if not isinstance(event, ScanLogEvent):
            raise ValueError(f"event must be ScanLogEvent, got {type(event).__name__}")
        with self._lock:
            targets = [
                callback
                for wanted, callback in self._listeners.values()
                if wanted is None or wanted == event.execution_id
            ]

        failures: list[DispatchError] = []
        for callback in targets:
            try:
                callback(event)
            except Exception as exc:  # noqa: BLE001
                name = getattr(callback, "__name__", None) or type(callback).__name__
                logger.exception("Log listener %s failed on %s", name, event.execution_id)
                failures.append(
                    DispatchError(
                        execution_id=event.execution_id,
                        sequence=event.sequence,
                        target=name,
                        error_type=type(exc).__name__,
                        message=str(exc),
                    )
                )
        if failures:
            with self._lock:
                self._failures.extend(failures)
        return tuple(failures)

    def dispatch_errors(self, *, limit: int | None = None) -> tuple[DispatchError, ...]:
        """Most recent listener failures, oldest first; at most ``limit`` of them."""

        with self._lock:
            recorded = tuple(self._failures)
        if limit is None:
            return recorded
        return recorded[-limit:] if limit > 0 else ()


__all__ = ["DispatchError", "LogEventBus", "ScanLogEvent", "Subscriber"]
