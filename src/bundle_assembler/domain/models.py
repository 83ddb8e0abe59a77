"""Dataclass domain models with strict validation and wire-format parsing."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NoReturn, TypeVar

from bundle_assembler.utils.canonical import JSONValue

TEnum = TypeVar("TEnum", bound=StrEnum)

_MISSING = object()


class LimitUnit(StrEnum):
    COUNT = "count"
    TOKENS = "tokens"


class DiagnosticKind(StrEnum):
    SKIPPED = "skipped"
    FAILED = "failed"
    WARNING = "warning"


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _as_mapping(value: object, path: str, *, allowed: set[str]) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")
    return parsed


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    return value


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _pick(data: Mapping[str, object], *names: str) -> object:
    for name in names:
        if name in data:
            return data[name]
    return _MISSING


@dataclass(frozen=True, slots=True)
class RuleLimit:
    """Budget cap for one rule: a maximum item count or estimated token count."""

    unit: LimitUnit
    max: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit", _as_enum(LimitUnit, self.unit, "limit.unit"))
        object.__setattr__(self, "max", _as_int(self.max, "limit.max", minimum=0))

    @classmethod
    def from_mapping(cls, data: object, path: str = "limit") -> RuleLimit:
        parsed = _as_mapping(data, path, allowed={"unit", "units", "max"})
        unit = _pick(parsed, "unit", "units")
        if unit is _MISSING:
            _fail(path, "missing required field: unit")
        if "max" not in parsed:
            _fail(path, "missing required field: max")
        return cls(
            unit=_as_enum(LimitUnit, unit, f"{path}.unit"),
            max=_as_int(parsed["max"], f"{path}.max", minimum=0),
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {"unit": self.unit.value, "max": self.max}


@dataclass(frozen=True, slots=True)
class RuleFallback:
    """Substitute value used when the resolved source is empty."""

    if_missing: Any

    @classmethod
    def from_mapping(cls, data: object, path: str = "fallback") -> RuleFallback | None:
        parsed = _as_mapping(data, path, allowed={"ifMissing", "if_missing"})
        value = _pick(parsed, "ifMissing", "if_missing")
        if value is _MISSING:
            return None
        return cls(if_missing=value)


@dataclass(frozen=True, slots=True)
class InjectionRule:
    """Declarative mapping from a scoped source pointer to a bundle pointer."""

    source: str
    target: str
    skip_if_empty: bool = False
    fallback: RuleFallback | None = None
    limit: RuleLimit | None = None

    def __post_init__(self) -> None:
        _as_str(self.source, "rule.from")
        _as_str(self.target, "rule.to")
        _as_bool(self.skip_if_empty, "rule.skipIfEmpty")
        if self.fallback is not None and not isinstance(self.fallback, RuleFallback):
            _fail("rule.fallback", f"expected RuleFallback, got {type(self.fallback).__name__}")
        if self.limit is not None and not isinstance(self.limit, RuleLimit):
            _fail("rule.limit", f"expected RuleLimit, got {type(self.limit).__name__}")

    @classmethod
    def from_mapping(cls, data: object, path: str = "rule") -> InjectionRule:
        parsed = _as_mapping(
            data,
            path,
            allowed={"from", "to", "skipIfEmpty", "skip_if_empty", "fallback", "limit"},
        )
        for required in ("from", "to"):
            if required not in parsed:
                _fail(path, f"missing required field: {required}")

        skip = _pick(parsed, "skipIfEmpty", "skip_if_empty")
        raw_fallback = parsed.get("fallback")
        raw_limit = parsed.get("limit")
        return cls(
            source=_as_str(parsed["from"], f"{path}.from"),
            target=_as_str(parsed["to"], f"{path}.to"),
            skip_if_empty=False if skip is _MISSING else _as_bool(skip, f"{path}.skipIfEmpty"),
            fallback=(
                None
                if raw_fallback is None
                else RuleFallback.from_mapping(raw_fallback, f"{path}.fallback")
            ),
            limit=None if raw_limit is None else RuleLimit.from_mapping(raw_limit, f"{path}.limit"),
        )

    def describe(self) -> str:
        return f"{self.source} -> {self.target}"


@dataclass(frozen=True, slots=True)
class LocalePack:
    """Locale-specific partial overlay of a base document."""

    locale: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        locale = _as_str(self.locale, "locale_pack.locale").strip()
        if not locale:
            _fail("locale_pack.locale", "must be non-empty")
        object.__setattr__(self, "locale", locale)
        if not isinstance(self.payload, Mapping):
            _fail("locale_pack.payload", f"expected object, got {type(self.payload).__name__}")


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Non-fatal record of a skipped or failed rule, or an assembly warning."""

    rule_index: int | None
    reason: str
    kind: DiagnosticKind = DiagnosticKind.SKIPPED

    def to_dict(self) -> dict[str, JSONValue]:
        return {"ruleIndex": self.rule_index, "reason": self.reason, "kind": self.kind.value}


@dataclass(frozen=True, slots=True)
class Violation:
    """Fatal structural problem found in an assembled bundle."""

    pointer: str
    message: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"pointer": self.pointer, "message": self.message}


@dataclass(frozen=True, slots=True)
class BundleMetrics:
    """Size and latency metadata for one assembled bundle."""

    byte_size: int
    estimated_tokens: int
    entity_counts: Mapping[str, int]
    build_time_ms: float

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "byteSize": self.byte_size,
            "estimatedTokens": self.estimated_tokens,
            "entityCounts": dict(sorted(self.entity_counts.items())),
            "buildTimeMs": self.build_time_ms,
        }


__all__ = [
    "BundleMetrics",
    "Diagnostic",
    "DiagnosticKind",
    "InjectionRule",
    "LimitUnit",
    "LocalePack",
    "RuleFallback",
    "RuleLimit",
    "Violation",
]
