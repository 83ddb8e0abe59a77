"""
bundle-assembler — unit tests for the injection rule executor

File: tests/unit/assembly/test_injection_executor.py
Last updated: 2026-10-18

Purpose
- Verify ordered rule execution, skip/fallback precedence, budget limits and
  per-rule failure isolation.

What this test file should cover
- Applied/skipped/failed accounting and diagnostics.
- Deep-copied writes that never alias context data.
- Idempotence for identical (target, context, rules).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from bundle_assembler.assembly.context_resolver import InjectionContext
from bundle_assembler.assembly.injection_executor import (
    REASON_EMPTY_AFTER_FALLBACK,
    REASON_SOURCE_EMPTY,
    InjectionExecutor,
)
from bundle_assembler.domain.models import (
    DiagnosticKind,
    InjectionRule,
    LimitUnit,
    RuleFallback,
    RuleLimit,
)


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, str, dict[str, object]]] = field(default_factory=list)

    def debug(self, event: str, **kwargs: object) -> None:
        self.events.append(("debug", event, dict(kwargs)))

    def info(self, event: str, **kwargs: object) -> None:
        self.events.append(("info", event, dict(kwargs)))

    def warning(self, event: str, **kwargs: object) -> None:
        self.events.append(("warning", event, dict(kwargs)))

    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


def _rule(source: str, target: str, **kwargs: object) -> InjectionRule:
    return InjectionRule(source=source, target=target, **kwargs)  # type: ignore[arg-type]


@pytest.mark.unit
def test_copies_a_world_title_into_the_skeleton() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world={"title": "Glade"})

    result = executor.execute([_rule("/world/title", "/a/title")], context, {"a": {}})

    assert result.target == {"a": {"title": "Glade"}}
    assert (result.applied_rules, result.skipped_rules, result.failed_rules) == (1, 0, 0)
    assert result.success is True
    assert result.diagnostics == ()


@pytest.mark.unit
def test_skip_if_empty_leaves_the_target_untouched() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world={"title": ""})

    result = executor.execute(
        [_rule("/world/title", "/a/title", skip_if_empty=True)], context, {"a": {}}
    )

    assert result.target == {"a": {}}
    assert (result.applied_rules, result.skipped_rules) == (0, 1)
    assert result.diagnostics[0].rule_index == 0
    assert result.diagnostics[0].reason == REASON_SOURCE_EMPTY
    assert result.diagnostics[0].kind is DiagnosticKind.SKIPPED


@pytest.mark.unit
@pytest.mark.parametrize(
    "world",
    [
        pytest.param({}, id="missing"),
        pytest.param({"title": None}, id="none"),
        pytest.param({"title": ""}, id="empty-string"),
        pytest.param({"title": []}, id="empty-list"),
        pytest.param({"title": {}}, id="empty-object"),
    ],
)
def test_skip_if_empty_covers_every_empty_shape(world: dict[str, object]) -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world=world)

    result = executor.execute(
        [_rule("/world/title", "/a/title", skip_if_empty=True)], context, {"a": {}}
    )

    assert result.target == {"a": {}}
    assert result.skipped_rules == 1
    assert [item.reason for item in result.diagnostics] == [REASON_SOURCE_EMPTY]


@pytest.mark.unit
@pytest.mark.parametrize("value", [0, False, [None], {"k": None}])
def test_skip_if_empty_keeps_falsy_but_non_empty_values(value: object) -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world={"title": value})

    result = executor.execute(
        [_rule("/world/title", "/a/title", skip_if_empty=True)], context, {"a": {}}
    )

    assert result.target == {"a": {"title": value}}
    assert result.applied_rules == 1


@pytest.mark.unit
def test_skip_if_empty_takes_precedence_over_fallback() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build()

    result = executor.execute(
        [
            _rule(
                "/world/title",
                "/a/title",
                skip_if_empty=True,
                fallback=RuleFallback("Untitled"),
            )
        ],
        context,
        {"a": {}},
    )

    assert result.target == {"a": {}}
    assert result.skipped_rules == 1


@pytest.mark.unit
def test_fallback_fills_missing_or_empty_sources_only() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world={"title": "Glade", "motto": "  "})
    fallback = RuleFallback("Untitled")

    result = executor.execute(
        [
            _rule("/world/title", "/title", fallback=fallback),
            _rule("/world/motto", "/motto", fallback=fallback),
            _rule("/world/missing", "/missing", fallback=fallback),
        ],
        context,
        {},
    )

    assert result.target == {"title": "Glade", "motto": "Untitled", "missing": "Untitled"}
    assert result.applied_rules == 3


@pytest.mark.unit
def test_empty_source_without_usable_fallback_is_skipped() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build()

    result = executor.execute(
        [
            _rule("/world/title", "/title"),
            _rule("/world/title", "/title", fallback=RuleFallback(None)),
        ],
        context,
        {},
    )

    assert result.target == {}
    assert [item.reason for item in result.diagnostics] == [
        REASON_EMPTY_AFTER_FALLBACK,
        REASON_EMPTY_AFTER_FALLBACK,
    ]


@pytest.mark.unit
def test_limit_is_applied_after_fallback() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(game={"hot": {"log": [1, 2, 3, 4]}})

    result = executor.execute(
        [
            _rule("/game/hot/log", "/recent", limit=RuleLimit(LimitUnit.COUNT, 2)),
            _rule(
                "/game/hot/missing",
                "/defaults",
                fallback=RuleFallback(["a", "b", "c"]),
                limit=RuleLimit(LimitUnit.COUNT, 1),
            ),
        ],
        context,
        {},
    )

    assert result.target == {"recent": [1, 2], "defaults": ["a"]}


@pytest.mark.unit
def test_later_rules_win_on_overlapping_targets() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world={"name": "First"}, adventure={"name": "Second"})

    result = executor.execute(
        [_rule("/world/name", "/name"), _rule("/adventure/name", "/name")], context, {}
    )

    assert result.target == {"name": "Second"}


@pytest.mark.unit
def test_a_failing_rule_is_recorded_and_the_rest_still_run() -> None:
    logger = RecordingLogger()
    executor = InjectionExecutor(logger=logger)
    context = InjectionContext.build(world={"title": "Glade", "name": "Vale"})

    result = executor.execute(
        [
            _rule("/world/title", "not-a-pointer"),
            _rule("/world/title", "/title/deeper"),
            _rule("/world/name", "/title"),
        ],
        context,
        {"title": "scalar"},
    )

    assert result.target == {"title": "Vale"}
    assert (result.applied_rules, result.failed_rules) == (1, 2)
    assert result.success is False
    assert [item.rule_index for item in result.diagnostics] == [0, 1]
    assert all(item.kind is DiagnosticKind.FAILED for item in result.diagnostics)
    assert result.diagnostics[0].reason.startswith("PointerError:")
    assert logger.names().count("injection_rule_failed") == 2


@pytest.mark.unit
def test_written_values_do_not_alias_context_data() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    world = {"regions": [{"id": "north"}]}
    context = InjectionContext.build(world=world)

    result = executor.execute([_rule("/world/regions", "/regions")], context, {})
    world["regions"][0]["id"] = "mutated"

    assert result.target == {"regions": [{"id": "north"}]}


@pytest.mark.unit
def test_empty_rule_list_is_a_logged_no_op() -> None:
    logger = RecordingLogger()
    executor = InjectionExecutor(logger=logger)
    skeleton = {"a": {}}

    result = executor.execute([], InjectionContext.build(), skeleton)

    assert result.target is skeleton
    assert (result.applied_rules, result.skipped_rules, result.failed_rules) == (0, 0, 0)
    assert logger.names() == ["injection_map_empty"]


@pytest.mark.unit
def test_root_target_replaces_the_whole_document() -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world={"title": "Glade"})

    result = executor.execute([_rule("/world", "")], context, {"old": True})

    assert result.target == {"title": "Glade"}


@pytest.mark.unit
def test_summary_event_reports_counts() -> None:
    logger = RecordingLogger()
    executor = InjectionExecutor(logger=logger)
    context = InjectionContext.build(world={"title": "Glade"})

    executor.execute(
        [_rule("/world/title", "/title"), _rule("/world/none", "/none")], context, {}
    )

    level, event, fields = logger.events[-1]
    assert (level, event) == ("info", "injection_map_executed")
    assert fields == {"rule_count": 2, "applied": 1, "skipped": 1, "failed": 0}


@pytest.mark.unit
@settings(max_examples=50, deadline=None)
@given(
    title=st.text(max_size=20),
    tags=st.lists(st.text(max_size=5), max_size=6),
    cap=st.integers(min_value=0, max_value=4),
)
def test_execution_is_idempotent(title: str, tags: list[str], cap: int) -> None:
    executor = InjectionExecutor(logger=RecordingLogger())
    context = InjectionContext.build(world={"title": title, "tags": tags})
    rules = [
        _rule("/world/title", "/meta/title", fallback=RuleFallback("Untitled")),
        _rule("/world/tags", "/meta/tags", limit=RuleLimit(LimitUnit.COUNT, cap)),
    ]

    first = executor.execute(rules, context, {"meta": {}})
    second = executor.execute(rules, context, {"meta": {}})
    replayed = executor.execute(rules, context, copy.deepcopy(first.target))

    assert first.target == second.target
    assert first.diagnostics == second.diagnostics
    assert replayed.target == first.target
    assert replayed.diagnostics == first.diagnostics
