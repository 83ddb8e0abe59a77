"""Canonical JSON serialization used for size estimates, hashing and metrics."""

from __future__ import annotations

import json
from typing import Any

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

__all__ = ["JSONScalar", "JSONValue", "canonical_json", "canonical_json_sorted"]


def canonical_json(value: Any) -> str:
    """
    Serialize ``value`` compactly, keeping mapping insertion order.

    Key order is preserved so sizes match the order in which the bundle was
    built. Tuples serialize as arrays. Raises ``TypeError`` for values that
    have no JSON representation.
    """

    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def canonical_json_sorted(value: Any) -> str:
    """Serialize ``value`` with sorted keys, for order-independent digests."""

    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    )
