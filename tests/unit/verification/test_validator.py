"""Unit tests for structural bundle validation."""

from __future__ import annotations

from typing import Any

import pytest

from bundle_assembler.domain.models import Violation
from bundle_assembler.verification.validator import (
    BundleValidator,
    CountCheck,
    StructuralSchema,
    default_bundle_schema,
)


def _valid_bundle() -> dict[str, Any]:
    return {
        "awf_bundle": {
            "meta": {
                "engine_version": "1.0.0",
                "world": "world.glade@1.0.0",
                "adventure": "adv.first@1.0.0",
                "turn_id": 1,
                "locale": "en-US",
            },
            "contract": {"id": "core"},
            "world": {"id": "world.glade"},
            "adventure": {"ref": "adv.first"},
            "npcs": {"active": [{"id": "npc.a"}], "count": 1},
            "player": {"id": "p1"},
            "game_state": {"hot": {}},
            "rng": {"seed": "abc"},
            "input": {"text": "look around"},
        }
    }


@pytest.mark.unit
def test_valid_bundle_has_no_violations() -> None:
    assert BundleValidator().validate(_valid_bundle()) == []


@pytest.mark.unit
def test_missing_and_mistyped_fields_are_reported_in_pointer_order() -> None:
    bundle = _valid_bundle()
    del bundle["awf_bundle"]["rng"]
    bundle["awf_bundle"]["meta"]["turn_id"] = "1"

    violations = BundleValidator().validate(bundle)

    assert violations == [
        Violation("/awf_bundle/meta/turn_id", "expected integer, got string"),
        Violation("/awf_bundle/rng/seed", "required field is missing"),
    ]


@pytest.mark.unit
def test_count_must_match_the_number_of_active_npcs() -> None:
    bundle = _valid_bundle()
    bundle["awf_bundle"]["npcs"]["count"] = 3

    violations = BundleValidator().validate(bundle)

    assert [item.pointer for item in violations] == ["/awf_bundle/npcs/count"]
    assert "does not match 1 item(s)" in violations[0].message


@pytest.mark.unit
def test_booleans_do_not_satisfy_integer_fields() -> None:
    bundle = _valid_bundle()
    bundle["awf_bundle"]["npcs"]["count"] = True

    violations = BundleValidator().validate(bundle)

    assert violations == [Violation("/awf_bundle/npcs/count", "expected integer, got boolean")]


@pytest.mark.unit
def test_token_budget_violation() -> None:
    validator = BundleValidator(default_bundle_schema(max_input_tokens=10))

    violations = validator.validate(_valid_bundle())

    assert len(violations) == 1
    assert violations[0].pointer == ""
    assert "exceeds token budget" in violations[0].message


@pytest.mark.unit
def test_non_serializable_bundle_is_rejected_before_schema_checks() -> None:
    bundle = _valid_bundle()
    bundle["awf_bundle"]["input"]["when"] = object()

    violations = BundleValidator().validate(bundle)

    assert len(violations) == 1
    assert "not JSON serializable" in violations[0].message


@pytest.mark.unit
def test_custom_schema_collaborator() -> None:
    schema = StructuralSchema(
        required={"/doc/items": "array", "/doc/total": "number"},
        counts=(CountCheck("/doc/size", "/doc/items"),),
    )
    validator = BundleValidator(schema)

    assert validator.validate({"doc": {"items": [], "total": 1.5, "size": 0}}) == []
    assert validator.validate({"doc": {"items": [1], "total": 2, "size": 0}}) == [
        Violation("/doc/size", "count 0 does not match 1 item(s) at /doc/items"),
    ]

    class RejectEverything:
        def check(self, bundle: Any) -> list[Violation]:
            return [Violation("", "rejected")]

    assert BundleValidator(RejectEverything()).validate({}) == [Violation("", "rejected")]


@pytest.mark.unit
def test_negative_token_budget_is_rejected() -> None:
    with pytest.raises(ValueError):
        StructuralSchema(max_input_tokens=-1)
