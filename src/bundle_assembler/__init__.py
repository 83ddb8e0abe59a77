"""
bundle-assembler — package root

File: src/bundle_assembler/__init__.py
Last updated: 2026-10-18

Purpose
- Assemble a size-bounded turn bundle from independent source documents using
  declarative injection rules, budget limits and locale overlays.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
