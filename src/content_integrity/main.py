"""Process entrypoint: runs the CLI and turns its outcome into an exit status."""

from __future__ import annotations

import sys
import traceback
from collections.abc import Iterator, Sequence
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    ERRORS_FOUND = 1  # scan finished with unfixed errors
    CONFIG_ERROR = 2
    STORE_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Used by ``python -m content_integrity`` and the ``content-integrity`` script."""

    from content_integrity.ui.cli import run_cli

    try:
        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _as_exit_code(exc.code)
    except KeyboardInterrupt:
        sys.stderr.write("interrupted\n")
        return ExitCode.INTERNAL_ERROR
    except Exception as exc:  # noqa: BLE001
        code = _classify(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            sys.stderr.write(f"error: {str(exc).strip() or type(exc).__name__}\n")
        return code


def _as_exit_code(raw: object) -> int:
    if raw is None:
        return ExitCode.SUCCESS
    if isinstance(raw, int) and raw in ExitCode._value2member_map_:
        return raw
    if isinstance(raw, str) and raw.strip():
        # argparse and sys.exit("...") carry their message in the exit code
        sys.stderr.write(raw.strip() + "\n")
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )


def _classify(exc: BaseException) -> ExitCode:
    from content_integrity.config import ConfigLoadError, ConfigValidationError
    from content_integrity.store.base import NodeNotFoundError, StoreAccessError

    routes: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
        ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
        ((StoreAccessError, NodeNotFoundError), ExitCode.STORE_ERROR),
        ((OSError, ValueError), ExitCode.CONFIG_ERROR),
    )
    for cause in _causes(exc):
        for types, code in routes:
            if isinstance(cause, types):
                return code
    return ExitCode.INTERNAL_ERROR


__all__ = ["ExitCode", "cli_entrypoint"]
