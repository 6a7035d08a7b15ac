"""Module entrypoint for ``python -m content_integrity``."""

from __future__ import annotations

from content_integrity.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
