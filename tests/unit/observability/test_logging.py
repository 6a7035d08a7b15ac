"""
content-integrity — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-19

Purpose
- Validate structured JSON logging with correlation metadata and queue-backed reliability.

What this test file should cover
- JSON line validity and correlation field propagation.
- Multi-threaded logging stability.
- Queue drain/shutdown behavior and logger restoration.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from content_integrity.observability.logging import (
    LoggingConfig,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"content_integrity.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_logging_carries_session_and_correlation_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            session_id="cli-logging",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stdout=False,
        )
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(execution_id="scan-1", workspace="live"):
        logger.info("2 errors found", extra={"nodes": 12, "paths": ("/a", "/b")})

    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "cli-logging" / "content_integrity.jsonl"
    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    first = parsed[0]
    assert first["session_id"] == "cli-logging"
    assert first["execution_id"] == "scan-1"
    assert first["workspace"] == "live"
    assert first["message"] == "2 errors found"
    assert first["level"] == "INFO"
    assert first["fields"] == {"nodes": 12, "paths": ["/a", "/b"]}
    assert str(first["timestamp"]).endswith("Z")


def test_correlation_scope_nests_and_restores() -> None:
    with correlation_scope(execution_id="scan-1"):
        with correlation_scope(workspace="default"):
            assert get_correlation_context() == {"execution_id": "scan-1", "workspace": "default"}
        with correlation_scope(execution_id=None):
            assert get_correlation_context() == {}
        assert get_correlation_context() == {"execution_id": "scan-1"}

    assert get_correlation_context() == {}


def test_setup_logging_wrapper_uses_observability_config(tmp_path: Path) -> None:
    logger_name = _logger_name()
    logger = setup_logging(
        {"log_level": "WARNING", "log_dir": str(tmp_path), "log_to_stdout": False},
        session_id="cli-wrapper",
        logger_name=logger_name,
    )

    logger.info("hidden")
    logger.warning("visible")
    shutdown_logging()

    files = list((tmp_path / "cli-wrapper").glob("*.jsonl"))
    assert len(files) == 1
    messages = [item["message"] for item in _read_json_lines(files[0])]
    assert messages == ["visible"]


def test_exceptions_are_serialized(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            session_id="cli-exc",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stdout=False,
        )
    )
    logger = logging.getLogger(logger_name)

    try:
        raise RuntimeError("store down")
    except RuntimeError:
        logger.exception("Scan failed")
    shutdown_logging(handle)

    parsed = _read_json_lines(handle.log_path)
    assert parsed[0]["level"] == "ERROR"
    assert str(parsed[0]["message"]).startswith("Scan failed")
    assert "RuntimeError: store down" in json.dumps(parsed[0])


def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            session_id="cli-threaded",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stdout=False,
            queue_size=4096,
        )
    )
    logger = logging.getLogger(logger_name)

    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        for i in range(per_thread):
            with correlation_scope(execution_id=f"scan-{thread_idx}"):
                logger.info("thread=%s index=%s", thread_idx, i)

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    shutdown_logging(handle)

    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == total_threads * per_thread
    for item in parsed:
        thread_idx = str(item["message"]).split()[0].split("=")[1]
        assert item["execution_id"] == f"scan-{thread_idx}"


def test_queue_handler_non_blocking_and_shutdown_flushes(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            session_id="cli-flush",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stdout=False,
            queue_size=10_000,
        )
    )
    logger = logging.getLogger(logger_name)

    queue_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.QueueHandler)]
    assert queue_handlers, "expected queue-backed non-blocking logging"
    assert logger.propagate is False

    expected = 300
    for i in range(expected):
        logger.info("message %s", i)

    shutdown_logging(handle)

    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert handle.dropped_records == 0
    assert len(lines) == expected
    assert handle.is_shutdown
    assert get_active_logging_handle() is None
    assert logger.propagate is True
    assert not [h for h in logger.handlers if isinstance(h, logging.handlers.QueueHandler)]


def test_new_setup_replaces_the_active_handle(tmp_path: Path) -> None:
    first = setup_structured_logging(
        LoggingConfig(session_id="cli-first", base_log_dir=tmp_path, log_to_stdout=False)
    )
    second = setup_structured_logging(
        LoggingConfig(session_id="cli-second", base_log_dir=tmp_path, log_to_stdout=False)
    )

    assert first.is_shutdown
    assert get_active_logging_handle() is second


def test_invalid_logging_config_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="session_id must not be empty"):
        setup_structured_logging(LoggingConfig(session_id=" ", base_log_dir=tmp_path))
    with pytest.raises(ValueError, match="path separators"):
        setup_structured_logging(
            LoggingConfig(session_id="s", base_log_dir=tmp_path, log_filename="a/b.jsonl")
        )
    with pytest.raises(ValueError, match="unsupported logging level"):
        setup_structured_logging(
            LoggingConfig(session_id="s", base_log_dir=tmp_path, level="LOUD")
        )
