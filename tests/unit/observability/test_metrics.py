"""
bundle-assembler — unit tests for bundle metrics

File: tests/unit/observability/test_metrics.py
Last updated: 2026-10-18

Purpose
- Verify bundle measurement and thread-safe, deterministic metric recording.

What this test file should cover
- Byte size, token estimate and entity counts of a bundle.
- Thread-safe counter increments.
- Deterministic snapshot and JSON export.
"""

from __future__ import annotations

import json
import threading

import pytest

from bundle_assembler.assembly.budget import estimate_tokens
from bundle_assembler.observability.metrics import (
    METRIC_ASSEMBLIES,
    METRIC_ASSEMBLY_FAILURES,
    METRIC_BYTE_SIZE,
    METRIC_RULES,
    MetricsRegistry,
    compute_bundle_metrics,
)
from bundle_assembler.utils.canonical import canonical_json


@pytest.mark.unit
def test_compute_bundle_metrics_measures_without_mutating() -> None:
    bundle = {"awf_bundle": {"npcs": {"active": [{"id": "a"}, {"id": "b"}]}, "note": "café"}}
    snapshot = json.dumps(bundle)

    metrics = compute_bundle_metrics(
        bundle,
        build_time_ms=12.34567,
        entity_pointers={"npcs": "/awf_bundle/npcs/active", "missing": "/awf_bundle/none"},
    )

    assert metrics.byte_size == len(canonical_json(bundle).encode("utf-8"))
    assert metrics.estimated_tokens == estimate_tokens(bundle)
    assert metrics.entity_counts == {"missing": 0, "npcs": 2}
    assert metrics.build_time_ms == 12.346
    assert json.dumps(bundle) == snapshot


@pytest.mark.unit
def test_negative_build_time_is_clamped_to_zero() -> None:
    assert compute_bundle_metrics({}, build_time_ms=-3.0).build_time_ms == 0.0


@pytest.mark.unit
def test_thread_safe_counter_increments() -> None:
    registry = MetricsRegistry()

    def worker() -> None:
        for _ in range(2000):
            registry.inc(METRIC_ASSEMBLIES)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert registry.get_counter(METRIC_ASSEMBLIES) == 12_000.0


@pytest.mark.unit
def test_record_assembly_and_failure() -> None:
    registry = MetricsRegistry()
    metrics = compute_bundle_metrics({"a": "b"}, build_time_ms=5.0)

    registry.record_assembly(metrics, rule_outcomes={"applied": 3, "skipped": 1, "failed": 0})
    registry.record_failure("PreconditionError")

    assert registry.get_counter(METRIC_ASSEMBLIES) == 1.0
    assert registry.get_counter(METRIC_RULES, labels={"outcome": "applied"}) == 3.0
    assert registry.get_counter(METRIC_RULES, labels={"outcome": "failed"}) == 0.0
    failure_labels = {"reason": "PreconditionError"}
    assert registry.get_counter(METRIC_ASSEMBLY_FAILURES, labels=failure_labels) == 1.0
    distribution = registry.get_distribution(METRIC_BYTE_SIZE)
    assert distribution is not None
    assert distribution["count"] == 1
    assert distribution["max"] == float(metrics.byte_size)


@pytest.mark.unit
def test_snapshot_is_deterministic_and_json_serializable() -> None:
    registry = MetricsRegistry()
    registry.inc("rules_total", 2, labels={"z": "9", "a": "1"})
    registry.observe("latency_ms", 10)
    registry.observe("latency_ms", 20)

    first = registry.snapshot()
    second = registry.snapshot()

    assert first == second
    assert first["counters"] == {"rules_total{a=1,z=9}": 2.0}
    assert first["distributions"] == {
        "latency_ms": {"count": 2, "sum": 30.0, "min": 10.0, "max": 20.0, "avg": 15.0}
    }
    assert json.loads(registry.to_json()) == first


@pytest.mark.unit
@pytest.mark.parametrize(
    ("call", "message"),
    [
        (lambda registry: registry.inc("x", -1), "amount must be >= 0"),
        (lambda registry: registry.observe("x", float("inf")), "must be finite"),
        (lambda registry: registry.inc(" "), "must not be empty"),
        (lambda registry: registry.inc("x", labels={"k": ""}), "must not be empty"),
    ],
)
def test_invalid_metric_updates_are_rejected(call: object, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        call(MetricsRegistry())  # type: ignore[operator]
