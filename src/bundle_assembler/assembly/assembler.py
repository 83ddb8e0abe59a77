"""
bundle-assembler — turn bundle orchestration

File: src/bundle_assembler/assembly/assembler.py
Last updated: 2026-10-18

Purpose
- Turn already-loaded upstream records (game, world, adventure, contract,
  ruleset, NPC documents, locale packs) plus an injection rule list into one
  validated ``awf_bundle`` document.

What should be included in this file
- Precondition checks that fail before any rule runs.
- Ruleset/locale selection, locale overlay, NPC reference collection and
  compaction, skeleton construction, rule execution, validation, metrics.

Functional requirements
- Identical inputs and clock produce byte-identical bundles.
- Caller-supplied inputs are never mutated.

Non-functional requirements
- No I/O; storage and caching stay with the caller.
"""

from __future__ import annotations

import copy
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Final

import structlog

from bundle_assembler.assembly.context_resolver import InjectionContext
from bundle_assembler.assembly.injection_executor import InjectionExecutor, InjectionResult
from bundle_assembler.assembly.npc_compactor import CompactNpc, compact_npc_doc
from bundle_assembler.assembly.reference_collector import collect_npc_refs
from bundle_assembler.assembly.refs import (
    parse_ref,
    resolve_ruleset_ref,
    snapshot_meta,
    unwrap_document,
)
from bundle_assembler.config.schema import assert_valid_config, default_config, merge_config
from bundle_assembler.constants import BUNDLE_ROOT_KEY, RNG_POLICY
from bundle_assembler.domain.errors import (
    BundleAssemblyError,
    BundleValidationError,
    PreconditionError,
)
from bundle_assembler.domain.models import (
    BundleMetrics,
    Diagnostic,
    DiagnosticKind,
    InjectionRule,
    LocalePack,
)
from bundle_assembler.localization.overlay import LocaleOverlayResolver, PackKey
from bundle_assembler.observability.logging import correlation_scope
from bundle_assembler.observability.metrics import MetricsRegistry, compute_bundle_metrics
from bundle_assembler.utils.hashing import derive_rng_seed
from bundle_assembler.verification.validator import BundleValidator, default_bundle_schema

REASON_NPC_NOT_FOUND: Final[str] = "npc_not_found"

ENTITY_POINTERS: Final[Mapping[str, str]] = {
    "npcs": f"/{BUNDLE_ROOT_KEY}/npcs/active",
    "inventory": f"/{BUNDLE_ROOT_KEY}/player/inventory",
}

# Top-level world keys copied into the bundle as-is; everything else lands in ``custom``.
_KNOWN_WORLD_SECTIONS: Final[tuple[str, ...]] = (
    "timeworld",
    "bands",
    "weather_states",
    "weather_transition_bias",
    "lexicon",
    "identity_language",
    "magic",
    "essence_behavior",
    "species_rules",
    "factions_world",
    "lore_index",
    "tone",
    "locations",
)
_NON_CUSTOM_WORLD_KEYS: Final[frozenset[str]] = frozenset(
    {"id", "name", "version", "slices", *_KNOWN_WORLD_SECTIONS}
)

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class VersionedDoc:
    """A loaded upstream document with its identity."""

    id: str
    version: str
    doc: Mapping[str, Any]
    hash: str | None = None

    @property
    def ref(self) -> str:
        return f"{self.id}@{self.version}"


@dataclass(frozen=True, slots=True)
class AssemblyInputs:
    """Everything one turn needs, already loaded by the caller."""

    session_id: str
    input_text: str
    game: Mapping[str, Any] | None
    world: VersionedDoc | None
    adventure: VersionedDoc | None
    contract: VersionedDoc | None
    ruleset: VersionedDoc | None
    rules: Sequence[InjectionRule] | None
    session: Mapping[str, Any] | None = None
    scenario: VersionedDoc | None = None
    adventure_start: Mapping[str, Any] | None = None
    player: Mapping[str, Any] | None = None
    npc_docs: Sequence[VersionedDoc] = ()
    locale_packs: Mapping[PackKey, LocalePack] = field(default_factory=dict)
    skeleton: Mapping[str, Any] | None = None
    local: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AssemblyResult:
    bundle: dict[str, Any]
    metrics: BundleMetrics
    diagnostics: tuple[Diagnostic, ...]
    npc_refs: tuple[str, ...]
    ruleset_ref: str
    locale: str
    applied_rules: int = 0
    skipped_rules: int = 0
    failed_rules: int = 0


class BundleAssembler:
    """Assemble validated turn bundles from in-memory inputs."""

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        logger: Any | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Clock | None = None,
        validator: BundleValidator | None = None,
    ) -> None:
        self._config = assert_valid_config(merge_config(default_config(), config or {}))
        assembly = self._config["assembly"]
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._metrics = metrics
        self._clock = clock if clock is not None else _utc_now
        self._validator = (
            validator
            if validator is not None
            else BundleValidator(default_bundle_schema(max_input_tokens=assembly["max_input_tokens"]))
        )
        self._executor = InjectionExecutor(logger=self._logger)
        self._localizer = LocaleOverlayResolver(
            native_locale=assembly["native_locale"], logger=self._logger
        )

    @property
    def config(self) -> dict[str, Any]:
        return copy.deepcopy(self._config)

    def assemble(self, inputs: AssemblyInputs) -> AssemblyResult:
        """
        Build, inject, validate and measure one bundle.

        Raises ``PreconditionError`` before any rule runs when a required input
        is missing, and ``BundleValidationError`` when the finished bundle fails
        structural validation. Both are counted as failures in the registry.
        """

        started = time.perf_counter()
        with correlation_scope(session_id=inputs.session_id):
            try:
                return self._assemble(inputs, started)
            except BundleAssemblyError as exc:
                if self._metrics is not None:
                    self._metrics.record_failure(type(exc).__name__)
                self._logger.warning(
                    "bundle_assembly_failed", error_type=type(exc).__name__, error=str(exc)
                )
                raise

    def _assemble(self, inputs: AssemblyInputs, started: float) -> AssemblyResult:
        game, world, adventure, contract, ruleset, rules = _check_preconditions(inputs)
        assembly = self._config["assembly"]
        meta = snapshot_meta(game)
        world_ref = str(meta["world_ref"])
        adventure_ref = str(meta["adventure_ref"])

        selection = resolve_ruleset_ref(
            game,
            inputs.session,
            default_ruleset_ref=assembly["default_ruleset_ref"],
            default_locale=assembly["default_locale"],
        )
        try:
            parse_ref(selection.ruleset_ref)
        except ValueError as exc:
            raise PreconditionError("ruleset_ref", str(exc)) from exc
        locale = selection.locale
        diagnostics: list[Diagnostic] = []

        world_doc = self._localize("world", world, locale, inputs.locale_packs, diagnostics)
        adventure_doc = self._localize(
            "adventure", adventure, locale, inputs.locale_packs, diagnostics
        )
        scenario_doc = (
            self._localize("scenario", inputs.scenario, locale, inputs.locale_packs, diagnostics)
            if inputs.scenario is not None
            else None
        )

        snapshot = _as_mapping(game.get("state_snapshot"))
        npc_refs = collect_npc_refs(
            game_state=snapshot,
            adventure=adventure_doc,
            scenario=scenario_doc,
            ruleset=ruleset.doc,
            default_cap=assembly["npcs_active_cap"],
        )
        npcs = self._compact_npcs(npc_refs, inputs, locale, diagnostics)

        turn_count = game.get("turn_count")
        turn_id = turn_count if isinstance(turn_count, int) and turn_count > 0 else 1
        if inputs.skeleton is not None:
            bundle: Any = copy.deepcopy(dict(inputs.skeleton))
        else:
            bundle = self._default_skeleton(
                inputs=inputs,
                game=game,
                world=world,
                world_doc=world_doc,
                adventure=adventure,
                contract=contract,
                npcs=npcs,
                world_ref=world_ref,
                adventure_ref=adventure_ref,
                turn_id=turn_id,
                locale=locale,
            )

        context = InjectionContext.build(
            world=unwrap_document(world_doc, "world"),
            adventure=unwrap_document(adventure_doc, "adventure"),
            scenario=unwrap_document(scenario_doc, "scenario") if scenario_doc is not None else None,
            npcs=npcs,
            contract=contract.doc,
            player=inputs.player,
            game=snapshot,
            session=inputs.session,
            local={"ruleset_ref": selection.ruleset_ref, "locale": locale, **inputs.local},
        )
        injected: InjectionResult = self._executor.execute(rules, context, bundle)
        bundle = injected.target
        diagnostics.extend(injected.diagnostics)

        violations = self._validator.validate(bundle)
        if violations:
            raise BundleValidationError(violations, diagnostics)

        build_time_ms = (time.perf_counter() - started) * 1000.0
        metrics = compute_bundle_metrics(
            bundle, build_time_ms=build_time_ms, entity_pointers=ENTITY_POINTERS
        )
        if self._metrics is not None:
            self._metrics.record_assembly(
                metrics,
                rule_outcomes={
                    "applied": injected.applied_rules,
                    "skipped": injected.skipped_rules,
                    "failed": injected.failed_rules,
                },
            )

        self._logger.info(
            "bundle_assembled",
            turn_id=turn_id,
            ruleset_ref=selection.ruleset_ref,
            locale=locale,
            npc_count=len(npcs),
            applied=injected.applied_rules,
            skipped=injected.skipped_rules,
            failed=injected.failed_rules,
            byte_size=metrics.byte_size,
            estimated_tokens=metrics.estimated_tokens,
            build_time_ms=metrics.build_time_ms,
        )
        return AssemblyResult(
            bundle=bundle,
            metrics=metrics,
            diagnostics=tuple(diagnostics),
            npc_refs=tuple(npc_refs),
            ruleset_ref=selection.ruleset_ref,
            locale=locale,
            applied_rules=injected.applied_rules,
            skipped_rules=injected.skipped_rules,
            failed_rules=injected.failed_rules,
        )

    def _localize(
        self,
        doc_type: str,
        source: VersionedDoc,
        locale: str,
        packs: Mapping[PackKey, LocalePack],
        diagnostics: list[Diagnostic],
    ) -> Mapping[str, Any]:
        localized, warnings = self._localizer.localize(doc_type, source.id, source.doc, locale, packs)
        diagnostics.extend(warnings)
        return localized

    def _compact_npcs(
        self,
        npc_refs: Sequence[str],
        inputs: AssemblyInputs,
        locale: str,
        diagnostics: list[Diagnostic],
    ) -> list[CompactNpc]:
        compacted: list[CompactNpc] = []
        for ref in npc_refs:
            wanted = parse_ref(ref)
            match = next(
                (
                    doc
                    for doc in inputs.npc_docs
                    if doc.id == wanted.id and wanted.version in (None, doc.version)
                ),
                None,
            )
            if match is None:
                diagnostics.append(
                    Diagnostic(None, f"{REASON_NPC_NOT_FOUND}: {ref}", DiagnosticKind.WARNING)
                )
                self._logger.warning("npc_not_found", npc_ref=ref)
                continue
            localized = self._localize("npc", match, locale, inputs.locale_packs, diagnostics)
            compacted.append(compact_npc_doc(localized, npc_id=match.id, version=match.version))
        return compacted

    def _default_skeleton(
        self,
        *,
        inputs: AssemblyInputs,
        game: Mapping[str, Any],
        world: VersionedDoc,
        world_doc: Mapping[str, Any],
        adventure: VersionedDoc,
        contract: VersionedDoc,
        npcs: list[CompactNpc],
        world_ref: str,
        adventure_ref: str,
        turn_id: int,
        locale: str,
    ) -> dict[str, Any]:
        timestamp = _format_timestamp(self._clock())
        first_turn = game.get("turn_count") == 0
        snapshot = _as_mapping(game.get("state_snapshot"))

        adventure_block: dict[str, Any] = {"ref": adventure.id, "hash": adventure.hash}
        start_hint = _start_hint(inputs.adventure_start) if first_turn else None
        if start_hint is not None:
            adventure_block["start_hint"] = start_hint

        return {
            BUNDLE_ROOT_KEY: {
                "meta": {
                    "engine_version": self._config["assembly"]["engine_version"],
                    "world": world_ref,
                    "adventure": adventure_ref,
                    "turn_id": turn_id,
                    "is_first_turn": first_turn,
                    "locale": locale,
                    "timestamp": timestamp,
                },
                "contract": {
                    "id": contract.id,
                    "version": contract.version,
                    "hash": contract.hash,
                    "doc": copy.deepcopy(dict(contract.doc)),
                },
                "world": _world_block(world, world_doc),
                "adventure": adventure_block,
                "npcs": {"active": copy.deepcopy(npcs), "count": len(npcs)},
                "player": _player_block(inputs.player, game),
                "game_state": {
                    "hot": copy.deepcopy(snapshot.get("hot") or {}),
                    "warm": copy.deepcopy(snapshot.get("warm") or {}),
                    "cold": copy.deepcopy(snapshot.get("cold") or {}),
                },
                "rng": {
                    "seed": derive_rng_seed(inputs.session_id, turn_id),
                    "policy": RNG_POLICY,
                },
                "input": {"text": inputs.input_text, "timestamp": timestamp},
            }
        }


def _check_preconditions(
    inputs: AssemblyInputs,
) -> tuple[
    Mapping[str, Any],
    VersionedDoc,
    VersionedDoc,
    VersionedDoc,
    VersionedDoc,
    Sequence[InjectionRule],
]:
    if not isinstance(inputs.session_id, str) or not inputs.session_id.strip():
        raise PreconditionError("session_id", "session_id must be a non-empty string")
    if not isinstance(inputs.game, Mapping):
        raise PreconditionError("game", "no game record supplied")
    meta = snapshot_meta(inputs.game)
    for key in ("world_ref", "adventure_ref"):
        value = meta.get(key)
        if not isinstance(value, str) or not value.strip():
            raise PreconditionError(key, f"no {key} found in game.state_snapshot.meta")
        try:
            parse_ref(value)
        except ValueError as exc:
            raise PreconditionError(key, str(exc)) from exc
    if inputs.contract is None:
        raise PreconditionError("contract", "no active contract supplied")
    if inputs.ruleset is None:
        raise PreconditionError("ruleset", "no ruleset supplied")
    if inputs.world is None:
        raise PreconditionError("world", f"world document not supplied for {meta['world_ref']}")
    if inputs.adventure is None:
        raise PreconditionError(
            "adventure", f"adventure document not supplied for {meta['adventure_ref']}"
        )
    if inputs.rules is None:
        raise PreconditionError("rules", "no injection rules supplied")
    return (
        inputs.game,
        inputs.world,
        inputs.adventure,
        inputs.contract,
        inputs.ruleset,
        inputs.rules,
    )


def _world_block(world: VersionedDoc, world_doc: Mapping[str, Any]) -> dict[str, Any]:
    body = unwrap_document(world_doc, "world")
    block: dict[str, Any] = {
        "id": body.get("id", world.id),
        "name": body.get("name"),
        "version": body.get("version", world.version),
    }
    for key in _KNOWN_WORLD_SECTIONS:
        if body.get(key):
            block[key] = copy.deepcopy(body[key])
    block["custom"] = {
        key: copy.deepcopy(value) for key, value in body.items() if key not in _NON_CUSTOM_WORLD_KEYS
    }
    return block


def _player_block(player: Mapping[str, Any] | None, game: Mapping[str, Any]) -> dict[str, Any]:
    supplied = player if isinstance(player, Mapping) else {}
    fallback_id = game.get("user_id") or game.get("cookie_group_id") or "default"
    return {
        "id": supplied.get("id", fallback_id),
        "name": supplied.get("name", "Player"),
        "traits": copy.deepcopy(supplied.get("traits", {})),
        "skills": copy.deepcopy(supplied.get("skills", {})),
        "inventory": copy.deepcopy(supplied.get("inventory", [])),
        "metadata": copy.deepcopy(supplied.get("metadata", {})),
    }


def _start_hint(adventure_start: Mapping[str, Any] | None) -> dict[str, Any] | None:
    start = _as_mapping(unwrap_document(adventure_start, "start"))
    if not start:
        return None
    return {
        "scene": start.get("scene"),
        "description": start.get("description") or "",
        "initial_state": copy.deepcopy(start.get("initial_state")),
    }


def _as_mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "ENTITY_POINTERS",
    "REASON_NPC_NOT_FOUND",
    "AssemblyInputs",
    "AssemblyResult",
    "BundleAssembler",
    "VersionedDoc",
]
