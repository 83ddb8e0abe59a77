"""Bundle size/latency metrics and a caller-owned, thread-safe metrics registry."""

from __future__ import annotations

import json
import math
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from bundle_assembler.assembly.budget import estimate_tokens
from bundle_assembler.domain.models import BundleMetrics
from bundle_assembler.utils.canonical import JSONValue, canonical_json
from bundle_assembler.utils.pointer import get_at_pointer

_MetricLabels = tuple[tuple[str, str], ...]

_METRIC_NAME_MAX_LEN: Final[int] = 128

METRIC_ASSEMBLIES: Final[str] = "bundle_assemblies_total"
METRIC_ASSEMBLY_FAILURES: Final[str] = "bundle_assembly_failures_total"
METRIC_RULES: Final[str] = "injection_rules_total"
METRIC_BYTE_SIZE: Final[str] = "bundle_byte_size"
METRIC_TOKENS: Final[str] = "bundle_estimated_tokens"
METRIC_BUILD_TIME: Final[str] = "bundle_build_time_ms"


def compute_bundle_metrics(
    bundle: Any,
    *,
    build_time_ms: float,
    entity_pointers: Mapping[str, str] | None = None,
) -> BundleMetrics:
    """
    Measure ``bundle`` without changing it.

    ``entity_pointers`` maps an entity name to the pointer of the array whose
    length is reported; absent or non-array targets count as zero.
    """

    serialized = canonical_json(bundle)
    entity_counts: dict[str, int] = {}
    for name, pointer in sorted((entity_pointers or {}).items()):
        value, found = get_at_pointer(bundle, pointer)
        entity_counts[name] = len(value) if found and isinstance(value, (list, tuple)) else 0

    return BundleMetrics(
        byte_size=len(serialized.encode("utf-8")),
        estimated_tokens=estimate_tokens(bundle),
        entity_counts=entity_counts,
        build_time_ms=round(max(build_time_ms, 0.0), 3),
    )


@dataclass(frozen=True, order=True, slots=True)
class _MetricKey:
    name: str
    labels: _MetricLabels


@dataclass(slots=True)
class _DistributionState:
    count: int = 0
    total: float = 0.0
    minimum: float | None = None
    maximum: float | None = None

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        if self.minimum is None or value < self.minimum:
            self.minimum = value
        if self.maximum is None or value > self.maximum:
            self.maximum = value

    def as_dict(self) -> dict[str, JSONValue]:
        avg = self.total / self.count if self.count else 0.0
        return {
            "count": self.count,
            "sum": self.total,
            "min": self.minimum,
            "max": self.maximum,
            "avg": avg,
        }


class MetricsRegistry:
    """In-memory metrics store owned by the caller of the assembler."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counters: dict[_MetricKey, float] = {}
        self._distributions: dict[_MetricKey, _DistributionState] = {}

    def inc(
        self,
        name: str,
        amount: float = 1.0,
        *,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        """Increment a counter by ``amount`` (>= 0)."""

        delta = _as_finite_float(amount, path="amount")
        if delta < 0:
            raise ValueError("counter increment amount must be >= 0")
        key = _metric_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0.0) + delta

    def observe(
        self,
        name: str,
        value: float,
        *,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        """Record a sample for distribution statistics."""

        key = _metric_key(name, labels)
        sample = _as_finite_float(value, path="value")
        with self._lock:
            state = self._distributions.setdefault(key, _DistributionState())
            state.observe(sample)

    def record_assembly(self, metrics: BundleMetrics, *, rule_outcomes: Mapping[str, int]) -> None:
        """Record one successful assembly."""

        self.inc(METRIC_ASSEMBLIES)
        for outcome, count in sorted(rule_outcomes.items()):
            if count:
                self.inc(METRIC_RULES, count, labels={"outcome": outcome})
        self.observe(METRIC_BYTE_SIZE, metrics.byte_size)
        self.observe(METRIC_TOKENS, metrics.estimated_tokens)
        self.observe(METRIC_BUILD_TIME, metrics.build_time_ms)

    def record_failure(self, reason: str) -> None:
        self.inc(METRIC_ASSEMBLY_FAILURES, labels={"reason": reason})

    def get_counter(self, name: str, *, labels: Mapping[str, str] | None = None) -> float:
        key = _metric_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0.0)

    def get_distribution(
        self,
        name: str,
        *,
        labels: Mapping[str, str] | None = None,
    ) -> dict[str, JSONValue] | None:
        key = _metric_key(name, labels)
        with self._lock:
            state = self._distributions.get(key)
            return None if state is None else state.as_dict()

    def snapshot(self) -> dict[str, JSONValue]:
        """Return deterministic snapshot with stable key ordering."""

        with self._lock:
            counters = tuple(sorted(self._counters.items()))
            distributions = tuple(
                (key, state.as_dict()) for key, state in sorted(self._distributions.items())
            )
        return {
            "counters": {_metric_identifier(key): value for key, value in counters},
            "distributions": {_metric_identifier(key): value for key, value in distributions},
        }

    def to_json(self) -> str:
        return json.dumps(
            self.snapshot(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )


def _metric_key(name: str, labels: Mapping[str, str] | None) -> _MetricKey:
    return _MetricKey(name=_validate_metric_name(name), labels=_normalize_labels(labels))


def _metric_identifier(key: _MetricKey) -> str:
    if not key.labels:
        return key.name
    labels = ",".join(f"{k}={v}" for k, v in key.labels)
    return f"{key.name}{{{labels}}}"


def _validate_metric_name(name: str) -> str:
    if not isinstance(name, str):
        raise ValueError(f"metric name must be a string, got {type(name).__name__}")
    normalized = name.strip()
    if not normalized:
        raise ValueError("metric name must not be empty")
    if len(normalized) > _METRIC_NAME_MAX_LEN:
        raise ValueError(f"metric name must be <= {_METRIC_NAME_MAX_LEN} characters")
    return normalized


def _normalize_labels(labels: Mapping[str, str] | None) -> _MetricLabels:
    if labels is None:
        return ()
    out: list[tuple[str, str]] = []
    for key, value in labels.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValueError(f"label {key!r} must map a string key to a string value")
        if not key.strip() or not value.strip():
            raise ValueError(f"label {key!r} must not be empty")
        out.append((key.strip(), value.strip()))
    out.sort(key=lambda item: item[0])
    return tuple(out)


def _as_finite_float(value: float, *, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{path} must be numeric, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        raise ValueError(f"{path} must be finite")
    return parsed


__all__ = [
    "METRIC_ASSEMBLIES",
    "METRIC_ASSEMBLY_FAILURES",
    "METRIC_BUILD_TIME",
    "METRIC_BYTE_SIZE",
    "METRIC_RULES",
    "METRIC_TOKENS",
    "MetricsRegistry",
    "compute_bundle_metrics",
]
