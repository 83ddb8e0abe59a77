"""Unit tests for deduplicating, capped reference collection."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from bundle_assembler.assembly.reference_collector import (
    collect_npc_refs,
    collect_references,
    npc_cap_from_ruleset,
    ref_identity,
)


@pytest.mark.unit
def test_first_appearance_order_is_kept_and_duplicates_dropped() -> None:
    assert collect_references([["a", "b"], ["b", "c"], ["a", "d"]], 3) == ["a", "b", "c"]
    assert collect_references([["a", "b"], ["b", "c"], ["a", "d"]], 10) == ["a", "b", "c", "d"]


@pytest.mark.unit
def test_zero_cap_always_returns_empty() -> None:
    assert collect_references([["a", "b"], ["c"]], 0) == []


@pytest.mark.unit
@pytest.mark.parametrize("cap", [-1, True, 2.5])
def test_invalid_caps_are_rejected(cap: object) -> None:
    with pytest.raises(ValueError):
        collect_references([["a"]], cap)  # type: ignore[arg-type]


@pytest.mark.unit
def test_key_function_controls_identity_and_keeps_first_spelling() -> None:
    refs = collect_references([["npc.a@1.0.0"], ["npc.a@2.0.0", "npc.b"]], 5, key=ref_identity)

    assert refs == ["npc.a@1.0.0", "npc.b"]


@pytest.mark.unit
def test_npc_candidates_follow_priority_order() -> None:
    refs = collect_npc_refs(
        game_state={
            "hot": {"active_npcs": ["npc.hot", "npc.cast"]},
            "warm": {
                "relationships": {"npc.friend": {"trust": 2}},
                "pins": [{"id": "npc.pinned"}],
            },
        },
        adventure={"adventure": {"cast": [{"npc_ref": "npc.cast@1.0.0"}]}},
        scenario={"scenario": {"fixed_npcs": [{"ref": "npc.fixed"}]}},
        default_cap=10,
    )

    assert refs == ["npc.fixed", "npc.cast@1.0.0", "npc.friend", "npc.pinned", "npc.hot"]


@pytest.mark.unit
def test_npc_cap_comes_from_ruleset_token_discipline() -> None:
    state = {"hot": {"active_npcs": ["n1", "n2", "n3", "n4"]}}
    ruleset = {"ruleset": {"token_discipline": {"npcs_active_cap": 2}}}

    assert collect_npc_refs(game_state=state, ruleset=ruleset) == ["n1", "n2"]
    assert collect_npc_refs(game_state=state, default_cap=3) == ["n1", "n2", "n3"]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("ruleset", "expected"),
    [
        (None, 5),
        ({}, 5),
        ({"token_discipline": {"npcs_active_cap": 1}}, 1),
        ({"ruleset": {"token_discipline": {"npcs_active_cap": 0}}}, 0),
        ({"ruleset": {"token_discipline": {"npcs_active_cap": -3}}}, 5),
        ({"ruleset": {"token_discipline": {"npcs_active_cap": "4"}}}, 5),
    ],
)
def test_npc_cap_from_ruleset(ruleset: dict[str, object] | None, expected: int) -> None:
    assert npc_cap_from_ruleset(ruleset, 5) == expected


@pytest.mark.unit
def test_malformed_candidate_entries_are_ignored() -> None:
    refs = collect_npc_refs(
        game_state={"hot": {"active_npcs": ["", "  ", 7, {"name": "no id"}, " npc.ok "]}},
        adventure={"cast": "not-a-list"},
    )

    assert refs == ["npc.ok"]


_ids = st.text(alphabet="abcdef", min_size=1, max_size=3)


@pytest.mark.unit
@settings(max_examples=100, deadline=None)
@given(
    candidate_lists=st.lists(st.lists(_ids, max_size=6), max_size=5),
    cap=st.integers(min_value=0, max_value=8),
)
def test_collected_refs_are_unique_ordered_and_capped(
    candidate_lists: list[list[str]], cap: int
) -> None:
    refs = collect_references(candidate_lists, cap)
    flattened = [ref for candidates in candidate_lists for ref in candidates]
    first_seen = list(dict.fromkeys(flattened))

    assert len(refs) <= cap
    assert len(refs) == len(set(refs))
    assert refs == first_seen[:cap]
