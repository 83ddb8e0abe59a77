"""
bundle-assembler — bundle structural validator

File: src/bundle_assembler/verification/validator.py
Last updated: 2026-10-18

Purpose
- Run structural post-checks on an assembled bundle and report violations.

What should be included in this file
- ``BundleSchema`` protocol for external schema collaborators.
- ``StructuralSchema``: required pointers with expected JSON kinds, paired
  count checks and an optional whole-bundle token budget.
- ``BundleValidator`` combining a schema with JSON-serializability checks.

Functional requirements
- Violations are returned in deterministic order; any violation is fatal to the
  assembly that produced the bundle.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final, Literal, Protocol

from bundle_assembler.assembly.budget import estimate_tokens
from bundle_assembler.constants import BUNDLE_ROOT_KEY
from bundle_assembler.domain.models import Violation
from bundle_assembler.utils.canonical import canonical_json
from bundle_assembler.utils.pointer import get_at_pointer

JsonKind = Literal["object", "array", "string", "integer", "number", "boolean", "any"]

_ROOT: Final[str] = f"/{BUNDLE_ROOT_KEY}"


class BundleSchema(Protocol):
    """Structural contract supplied by an external schema collaborator."""

    def check(self, bundle: Any) -> list[Violation]:
        """Return violations for ``bundle``; empty when it conforms."""


@dataclass(frozen=True, slots=True)
class CountCheck:
    """Require the integer at ``count_pointer`` to equal ``len(items_pointer)``."""

    count_pointer: str
    items_pointer: str


@dataclass(frozen=True, slots=True)
class StructuralSchema:
    required: Mapping[str, JsonKind] = field(default_factory=dict)
    counts: tuple[CountCheck, ...] = ()
    max_input_tokens: int | None = None

    def __post_init__(self) -> None:
        if self.max_input_tokens is not None and self.max_input_tokens < 0:
            raise ValueError("max_input_tokens must be >= 0")

    def check(self, bundle: Any) -> list[Violation]:
        violations: list[Violation] = []
        for pointer in sorted(self.required):
            expected = self.required[pointer]
            value, found = get_at_pointer(bundle, pointer)
            if not found:
                violations.append(Violation(pointer, "required field is missing"))
            elif not _matches_kind(value, expected):
                violations.append(
                    Violation(pointer, f"expected {expected}, got {_kind_of(value)}")
                )

        for count_check in self.counts:
            count, count_found = get_at_pointer(bundle, count_check.count_pointer)
            items, items_found = get_at_pointer(bundle, count_check.items_pointer)
            if not count_found or not items_found:
                continue
            if not _is_array(items) or not _matches_kind(count, "integer"):
                continue
            if count != len(items):
                violations.append(
                    Violation(
                        count_check.count_pointer,
                        f"count {count} does not match {len(items)} item(s) at "
                        f"{count_check.items_pointer}",
                    )
                )

        if self.max_input_tokens is not None:
            estimated = estimate_tokens(bundle)
            if estimated > self.max_input_tokens:
                violations.append(
                    Violation(
                        "",
                        f"bundle exceeds token budget: {estimated} > {self.max_input_tokens}",
                    )
                )
        return violations


DEFAULT_REQUIRED_FIELDS: Final[Mapping[str, JsonKind]] = {
    f"{_ROOT}/meta": "object",
    f"{_ROOT}/meta/engine_version": "string",
    f"{_ROOT}/meta/world": "string",
    f"{_ROOT}/meta/adventure": "string",
    f"{_ROOT}/meta/turn_id": "integer",
    f"{_ROOT}/meta/locale": "string",
    f"{_ROOT}/contract": "object",
    f"{_ROOT}/world": "object",
    f"{_ROOT}/adventure": "object",
    f"{_ROOT}/npcs/active": "array",
    f"{_ROOT}/npcs/count": "integer",
    f"{_ROOT}/player": "object",
    f"{_ROOT}/game_state": "object",
    f"{_ROOT}/rng/seed": "string",
    f"{_ROOT}/input/text": "string",
}

DEFAULT_COUNT_CHECKS: Final[tuple[CountCheck, ...]] = (
    CountCheck(count_pointer=f"{_ROOT}/npcs/count", items_pointer=f"{_ROOT}/npcs/active"),
)


def default_bundle_schema(*, max_input_tokens: int | None = None) -> StructuralSchema:
    """Return the structural schema for the default bundle skeleton."""

    return StructuralSchema(
        required=dict(DEFAULT_REQUIRED_FIELDS),
        counts=DEFAULT_COUNT_CHECKS,
        max_input_tokens=max_input_tokens,
    )


class BundleValidator:
    """Validate assembled bundles against a schema collaborator."""

    def __init__(self, schema: BundleSchema | None = None) -> None:
        self._schema = schema if schema is not None else default_bundle_schema()

    def validate(self, bundle: Any) -> list[Violation]:
        try:
            canonical_json(bundle)
        except (TypeError, ValueError) as exc:
            return [Violation("", f"bundle is not JSON serializable: {exc}")]
        return self._schema.check(bundle)


def _is_array(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _matches_kind(value: object, expected: JsonKind) -> bool:
    if expected == "any":
        return True
    return _kind_of(value) == expected or (expected == "number" and _kind_of(value) == "integer")


def _kind_of(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if _is_array(value):
        return "array"
    return type(value).__name__


__all__ = [
    "DEFAULT_COUNT_CHECKS",
    "DEFAULT_REQUIRED_FIELDS",
    "BundleSchema",
    "BundleValidator",
    "CountCheck",
    "StructuralSchema",
    "default_bundle_schema",
]
