"""
bundle-assembler — injection rule executor

File: src/bundle_assembler/assembly/injection_executor.py
Last updated: 2026-10-18

Purpose
- Apply an ordered list of injection rules: resolve each source through the
  context, apply skip/fallback policies and budget limits, and write the result
  into the target bundle.

Functional requirements
- Rules run in declaration order; later writes to overlapping destinations win.
- One failing rule never aborts the run; failures become diagnostics.
- Deterministic for identical (target, context, rules); no randomness, no IO.

Non-functional requirements
- Written values are deep copies, so the bundle never aliases context data.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Final

import structlog

from bundle_assembler.assembly.budget import apply_limit, is_empty_value
from bundle_assembler.assembly.context_resolver import InjectionContext
from bundle_assembler.domain.models import Diagnostic, DiagnosticKind, InjectionRule
from bundle_assembler.utils.pointer import set_at_pointer

REASON_SOURCE_EMPTY: Final[str] = "source_empty"
REASON_EMPTY_AFTER_FALLBACK: Final[str] = "empty_after_fallback"


@dataclass(frozen=True, slots=True)
class RuleOutcome:
    applied: bool
    reason: str | None = None
    used_fallback: bool = False
    limited: bool = False


@dataclass(frozen=True, slots=True)
class InjectionResult:
    """Outcome of one executor run over a rule list."""

    applied_rules: int
    skipped_rules: int
    failed_rules: int
    diagnostics: tuple[Diagnostic, ...]
    target: Any

    @property
    def success(self) -> bool:
        return self.failed_rules == 0


class InjectionExecutor:
    """Execute injection rules against a mutable target bundle."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def execute(
        self,
        rules: Sequence[InjectionRule],
        context: InjectionContext,
        target: Any,
    ) -> InjectionResult:
        """Run ``rules`` in order, mutating ``target`` in place."""

        if not rules:
            self._logger.warning("injection_map_empty")
            return InjectionResult(0, 0, 0, (), target)

        applied = 0
        skipped = 0
        failed = 0
        diagnostics: list[Diagnostic] = []

        for index, rule in enumerate(rules):
            try:
                outcome, target = self._execute_rule(rule, context, target)
            except Exception as exc:
                failed += 1
                reason = f"{type(exc).__name__}: {exc}"
                diagnostics.append(Diagnostic(index, reason, DiagnosticKind.FAILED))
                self._logger.warning(
                    "injection_rule_failed", rule_index=index, rule=_describe(rule), error=reason
                )
                continue

            if outcome.applied:
                applied += 1
                self._logger.debug(
                    "injection_rule_applied",
                    rule_index=index,
                    rule=rule.describe(),
                    used_fallback=outcome.used_fallback,
                    limited=outcome.limited,
                )
            else:
                skipped += 1
                reason = outcome.reason or REASON_SOURCE_EMPTY
                diagnostics.append(Diagnostic(index, reason, DiagnosticKind.SKIPPED))
                self._logger.debug(
                    "injection_rule_skipped", rule_index=index, rule=rule.describe(), reason=reason
                )

        self._logger.info(
            "injection_map_executed",
            rule_count=len(rules),
            applied=applied,
            skipped=skipped,
            failed=failed,
        )
        return InjectionResult(applied, skipped, failed, tuple(diagnostics), target)

    def _execute_rule(
        self,
        rule: InjectionRule,
        context: InjectionContext,
        target: Any,
    ) -> tuple[RuleOutcome, Any]:
        value, found = context.resolve(rule.source)
        if not found:
            value = None

        if rule.skip_if_empty and is_empty_value(value):
            return RuleOutcome(applied=False, reason=REASON_SOURCE_EMPTY), target

        used_fallback = False
        if is_empty_value(value) and rule.fallback is not None:
            value = rule.fallback.if_missing
            used_fallback = True

        limited = False
        if rule.limit is not None:
            limited_value = apply_limit(value, rule.limit)
            limited = limited_value is not value
            value = limited_value

        if is_empty_value(value):
            return RuleOutcome(applied=False, reason=REASON_EMPTY_AFTER_FALLBACK), target

        target = set_at_pointer(target, rule.target, copy.deepcopy(value))
        return RuleOutcome(applied=True, used_fallback=used_fallback, limited=limited), target


def _describe(rule: object) -> str:
    if isinstance(rule, InjectionRule):
        return rule.describe()
    return repr(rule)


__all__ = [
    "REASON_EMPTY_AFTER_FALLBACK",
    "REASON_SOURCE_EMPTY",
    "InjectionExecutor",
    "InjectionResult",
    "RuleOutcome",
]
