"""Utility exports for pointer addressing, canonical serialization, and hashing."""

from bundle_assembler.utils.canonical import canonical_json, canonical_json_sorted
from bundle_assembler.utils.hashing import derive_rng_seed, sha256_json, sha256_text
from bundle_assembler.utils.pointer import (
    delete_at_pointer,
    get_at_pointer,
    join_pointer,
    set_at_pointer,
    split_pointer,
)

__all__ = [
    "canonical_json",
    "canonical_json_sorted",
    "delete_at_pointer",
    "derive_rng_seed",
    "get_at_pointer",
    "join_pointer",
    "set_at_pointer",
    "sha256_json",
    "sha256_text",
    "split_pointer",
]
