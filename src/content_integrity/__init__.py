"""
content-integrity — package root.

File: src/content_integrity/__init__.py
Last updated: 2026-10-19

Purpose
- Package root for a content-integrity scanner: pluggable checks walk a
  hierarchical content tree in one or more workspaces and report the errors
  they find, some of which can be fixed afterwards.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
