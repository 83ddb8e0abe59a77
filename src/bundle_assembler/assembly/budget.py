"""
Budget estimation and truncation for injected values.

Count limits truncate strings to ``max`` characters and arrays to the first
``max`` elements. Token limits estimate size at four characters per token and
remove content from the end only, never re-ordering or prioritizing it.
Objects over a token budget pass through unchanged.

The token truncation result is identical to removing trailing characters or
elements one at a time until the estimate fits; it is computed directly from
the estimate instead of looping.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from bundle_assembler.constants import CHARS_PER_TOKEN
from bundle_assembler.domain.models import LimitUnit, RuleLimit
from bundle_assembler.utils.canonical import canonical_json

__all__ = ["apply_limit", "estimate_tokens", "is_empty_value"]


def estimate_tokens(value: Any) -> int:
    """Return the estimated token size of ``value``."""

    if isinstance(value, str):
        return math.ceil(len(value) / CHARS_PER_TOKEN)
    if isinstance(value, (list, tuple, Mapping)):
        return math.ceil(len(canonical_json(_jsonable(value))) / CHARS_PER_TOKEN)
    return 1


def is_empty_value(value: Any) -> bool:
    """Return whether ``value`` counts as empty for skip and fallback policies."""

    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) == 0
    return False


def apply_limit(value: Any, limit: RuleLimit) -> Any:
    """Return ``value`` truncated to fit ``limit``; the input is never mutated."""

    if limit.unit is LimitUnit.COUNT:
        if isinstance(value, str):
            return value[: limit.max]
        if isinstance(value, (list, tuple)):
            return list(value[: limit.max])
        return value

    if estimate_tokens(value) <= limit.max:
        return value
    if isinstance(value, str):
        return value[: limit.max * CHARS_PER_TOKEN]
    if isinstance(value, (list, tuple)):
        return list(value[: _array_prefix_within_budget(value, limit.max)])
    return value


def _array_prefix_within_budget(items: list[Any] | tuple[Any, ...], max_tokens: int) -> int:
    """
    Return the longest prefix length whose serialized estimate is within budget.

    ``[a,b,c]`` serializes to ``2 + len(a) + len(b) + len(c) + 2`` characters
    (brackets plus one comma between elements). An empty array still estimates
    to one token, so the prefix bottoms out at zero.
    """

    item_lengths = [len(canonical_json(_jsonable(item))) for item in items]
    serialized_length = 2 + sum(item_lengths) + max(len(item_lengths) - 1, 0)
    count = len(item_lengths)
    while count > 0 and math.ceil(serialized_length / CHARS_PER_TOKEN) > max_tokens:
        count -= 1
        serialized_length -= item_lengths[count] + (1 if count > 0 else 0)
    return count


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
