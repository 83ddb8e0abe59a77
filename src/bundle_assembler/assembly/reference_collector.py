"""
Deduplicating, order-preserving, capped reference collection.

``collect_references`` is the generic primitive. ``collect_npc_refs`` applies it
to the supporting-character candidates of one turn in a fixed priority order:
scenario fixed cast, adventure cast, relationship state, pinned entities, then
the active list from the hot game state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from bundle_assembler.constants import DEFAULT_NPCS_ACTIVE_CAP
from bundle_assembler.assembly.refs import unwrap_document

_REF_KEYS: tuple[str, ...] = ("npc_ref", "ref", "id")

__all__ = [
    "collect_npc_refs",
    "collect_references",
    "npc_cap_from_ruleset",
    "ref_identity",
]


def collect_references(
    candidate_lists: Iterable[Iterable[str]],
    cap: int,
    *,
    key: Callable[[str], str] | None = None,
) -> list[str]:
    """
    Return unique ids in order of first appearance, truncated to ``cap``.

    ``key`` normalizes identity for deduplication; the first-seen spelling of
    each id is the one kept.
    """

    if isinstance(cap, bool) or not isinstance(cap, int):
        raise ValueError(f"cap must be an integer, got {type(cap).__name__}")
    if cap < 0:
        raise ValueError("cap must be >= 0")

    collected: list[str] = []
    seen: set[str] = set()
    if cap == 0:
        return collected

    for candidates in candidate_lists:
        for ref in candidates:
            identity = key(ref) if key is not None else ref
            if identity in seen:
                continue
            seen.add(identity)
            collected.append(ref)
            if len(collected) >= cap:
                return collected
    return collected


def ref_identity(ref: str) -> str:
    """Return the id portion of an ``id@version`` reference."""

    return ref.split("@", 1)[0]


def npc_cap_from_ruleset(ruleset: Mapping[str, Any] | None, default_cap: int) -> int:
    """Read ``token_discipline.npcs_active_cap`` from a ruleset document."""

    if not isinstance(ruleset, Mapping):
        return default_cap
    body = ruleset.get("ruleset", ruleset)
    discipline = body.get("token_discipline") if isinstance(body, Mapping) else None
    if not isinstance(discipline, Mapping):
        return default_cap
    cap = discipline.get("npcs_active_cap")
    if isinstance(cap, bool) or not isinstance(cap, int) or cap < 0:
        return default_cap
    return cap


def collect_npc_refs(
    *,
    game_state: Mapping[str, Any] | None = None,
    adventure: Mapping[str, Any] | None = None,
    scenario: Mapping[str, Any] | None = None,
    ruleset: Mapping[str, Any] | None = None,
    default_cap: int = DEFAULT_NPCS_ACTIVE_CAP,
) -> list[str]:
    """Collect the capped supporting-character refs for one turn."""

    state = game_state if isinstance(game_state, Mapping) else {}
    hot = _as_mapping(state.get("hot"))
    warm = _as_mapping(state.get("warm"))
    adventure_body = unwrap_document(adventure, "adventure")
    scenario_body = unwrap_document(scenario, "scenario")

    candidates = (
        _refs_from_entries(scenario_body.get("fixed_npcs")),
        _refs_from_entries(adventure_body.get("cast")),
        [ref for ref in _as_mapping(warm.get("relationships")) if isinstance(ref, str) and ref],
        _refs_from_entries(warm.get("pins")),
        _refs_from_entries(hot.get("active_npcs")),
    )
    cap = npc_cap_from_ruleset(ruleset, default_cap)
    return collect_references(candidates, cap, key=ref_identity)


def _refs_from_entries(entries: object) -> list[str]:
    if not isinstance(entries, Sequence) or isinstance(entries, str):
        return []
    refs: list[str] = []
    for entry in entries:
        if isinstance(entry, str):
            ref: object = entry
        elif isinstance(entry, Mapping):
            ref = next((entry[name] for name in _REF_KEYS if name in entry), None)
        else:
            continue
        if isinstance(ref, str) and ref.strip():
            refs.append(ref.strip())
    return refs


def _as_mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
