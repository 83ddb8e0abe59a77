"""Unit tests for injection map document parsing and file loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from bundle_assembler.config.injection_map import (
    InjectionMapError,
    load_injection_map,
    parse_injection_map,
    parse_rules,
)
from bundle_assembler.domain.models import LimitUnit, RuleFallback

YAML_MAP = """
id: im.default
version: 1.0.0
rules:
  - from: /world/name
    to: /awf_bundle/world/name
    fallback:
      ifMissing: Unknown World
  - from: /game/hot/log
    to: /awf_bundle/game_state/hot/log
    skipIfEmpty: true
    limit:
      unit: count
      max: 5
"""


@pytest.mark.unit
def test_load_yaml_map_preserves_rule_order(tmp_path: Path) -> None:
    path = tmp_path / "default.yaml"
    path.write_text(YAML_MAP, encoding="utf-8")

    doc = load_injection_map(path)

    assert doc.ref == "im.default@1.0.0"
    assert [rule.source for rule in doc.rules] == ["/world/name", "/game/hot/log"]
    assert doc.rules[0].fallback == RuleFallback("Unknown World")
    assert doc.rules[1].skip_if_empty is True
    assert doc.rules[1].limit is not None
    assert doc.rules[1].limit.unit is LimitUnit.COUNT


@pytest.mark.unit
def test_load_json_map(tmp_path: Path) -> None:
    path = tmp_path / "map.json"
    path.write_text(
        json.dumps({"id": "im.json", "version": 2, "rules": [{"from": "/a", "to": "/b"}]}),
        encoding="utf-8",
    )

    doc = load_injection_map(path)

    assert doc.version == "2"
    assert len(doc.rules) == 1


@pytest.mark.unit
def test_rule_errors_name_the_file_and_index(tmp_path: Path) -> None:
    path = tmp_path / "default.yaml"
    path.write_text(
        "id: im\n"
        "version: '1'\n"
        "rules:\n"
        "  - {from: /a, to: /b}\n"
        "  - {from: /a, to: /b, limit: {unit: count, max: -2}}\n",
        encoding="utf-8",
    )

    expected = r"default\.yaml\.rules\[1\]\.limit\.max: must be >= 0"
    with pytest.raises(InjectionMapError, match=expected):
        load_injection_map(path)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "expected object"),
        ({"id": "im", "version": "1", "rules": [], "extra": 1}, "unexpected fields"),
        ({"version": "1", "rules": []}, r"injection_map\.id"),
        ({"id": "im", "version": "", "rules": []}, r"injection_map\.version"),
        ({"id": "im", "version": "1", "rules": "nope"}, "expected array"),
    ],
)
def test_malformed_documents_are_rejected(payload: object, message: str) -> None:
    with pytest.raises(InjectionMapError, match=message):
        parse_injection_map(payload)


@pytest.mark.unit
def test_parse_rules_accepts_plain_rule_lists() -> None:
    rules = parse_rules([{"from": "/world/title", "to": "/a/title"}])

    assert rules[0].describe() == "/world/title -> /a/title"


@pytest.mark.unit
def test_unreadable_and_invalid_files_raise(tmp_path: Path) -> None:
    invalid = tmp_path / "bad.yaml"
    invalid.write_text("rules: [unclosed\n", encoding="utf-8")

    with pytest.raises(InjectionMapError, match="invalid YAML"):
        load_injection_map(invalid)
    with pytest.raises(InjectionMapError, match="unable to read"):
        load_injection_map(tmp_path / "absent.yaml")
