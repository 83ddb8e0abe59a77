"""
bundle-assembler — injection map documents

File: src/bundle_assembler/config/injection_map.py
Last updated: 2026-10-18

Purpose
- Parse injection map documents (``{id, version, rules: [...]}``) from mappings,
  YAML files or JSON files into immutable ``InjectionRule`` records.

Functional requirements
- Rule order is preserved exactly as declared.
- Errors name the file and rule index (``default.yaml: rules[2].limit.max: ...``).
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

from bundle_assembler.domain.models import InjectionRule

_ALLOWED_FIELDS = frozenset({"id", "version", "rules"})


class InjectionMapError(ValueError):
    """Raised when an injection map document cannot be parsed."""


@dataclass(frozen=True, slots=True)
class InjectionMapDoc:
    id: str
    version: str
    rules: tuple[InjectionRule, ...]

    @property
    def ref(self) -> str:
        return f"{self.id}@{self.version}"


def parse_injection_map(payload: object, *, location: str = "injection_map") -> InjectionMapDoc:
    """Parse a decoded injection map document."""

    if not isinstance(payload, Mapping):
        raise InjectionMapError(f"{location}: expected object, got {type(payload).__name__}")
    unknown = sorted(str(key) for key in payload if key not in _ALLOWED_FIELDS)
    if unknown:
        raise InjectionMapError(f"{location}: unexpected fields: {unknown}")

    doc_id = payload.get("id")
    version = payload.get("version")
    if not isinstance(doc_id, str) or not doc_id.strip():
        raise InjectionMapError(f"{location}.id: expected non-empty string")
    if isinstance(version, (int, float)) and not isinstance(version, bool):
        version = str(version)
    if not isinstance(version, str) or not version.strip():
        raise InjectionMapError(f"{location}.version: expected non-empty string")

    return InjectionMapDoc(
        id=doc_id.strip(),
        version=version.strip(),
        rules=parse_rules(payload.get("rules", []), location=f"{location}.rules"),
    )


def parse_rules(raw_rules: object, *, location: str = "rules") -> tuple[InjectionRule, ...]:
    """Parse an ordered list of rule mappings."""

    if not isinstance(raw_rules, Sequence) or isinstance(raw_rules, str):
        raise InjectionMapError(f"{location}: expected array, got {type(raw_rules).__name__}")
    rules: list[InjectionRule] = []
    for index, item in enumerate(raw_rules):
        try:
            rules.append(InjectionRule.from_mapping(item, path=f"{location}[{index}]"))
        except ValueError as exc:
            raise InjectionMapError(str(exc)) from exc
    return tuple(rules)


def load_injection_map(path: str | Path) -> InjectionMapDoc:
    """Load an injection map from a ``.yaml``/``.yml`` or ``.json`` file."""

    source = Path(path)
    try:
        with source.open("r", encoding="utf-8") as handle:
            if source.suffix.lower() == ".json":
                loaded = cast("object", json.load(handle))
            else:
                loaded = cast("object", yaml.safe_load(handle))
    except json.JSONDecodeError as exc:
        raise InjectionMapError(f"{source.name}: invalid JSON ({exc})") from exc
    except yaml.YAMLError as exc:
        raise InjectionMapError(f"{source.name}: invalid YAML ({exc})") from exc
    except OSError as exc:
        raise InjectionMapError(f"unable to read injection map {source}: {exc}") from exc

    return parse_injection_map(loaded, location=source.name)


__all__ = [
    "InjectionMapDoc",
    "InjectionMapError",
    "load_injection_map",
    "parse_injection_map",
    "parse_rules",
]
