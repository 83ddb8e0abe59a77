"""
bundle-assembler — hashing utilities

File: src/bundle_assembler/utils/hashing.py
Last updated: 2026-10-18

Purpose
- Provide deterministic SHA-256 helpers for bytes, text and JSON documents.
- Derive the per-turn deterministic RNG seed.

Non-functional requirements
- Standard library only; behavior is cross-platform deterministic.
"""

from __future__ import annotations

import hashlib
from typing import Any, Final

from bundle_assembler.utils.canonical import canonical_json_sorted

_RNG_SEED_HEX_CHARS: Final[int] = 16

__all__ = [
    "derive_rng_seed",
    "sha256_bytes",
    "sha256_json",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def sha256_json(value: Any) -> str:
    """Return SHA-256 hex digest of the sorted-key canonical JSON of ``value``."""

    return sha256_text(canonical_json_sorted(value))


def derive_rng_seed(session_id: str, turn_id: int) -> str:
    """Return a stable hex seed for ``(session_id, turn_id)``."""

    if not isinstance(session_id, str) or not session_id.strip():
        raise ValueError("session_id must be a non-empty string")
    if isinstance(turn_id, bool) or not isinstance(turn_id, int) or turn_id < 0:
        raise ValueError("turn_id must be an integer >= 0")
    return sha256_text(f"{session_id}:{turn_id}")[:_RNG_SEED_HEX_CHARS]
