"""Versioned document references (``id@version``) and ruleset/locale selection."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class DocumentRef:
    id: str
    version: str | None = None

    def __str__(self) -> str:
        return self.id if self.version is None else f"{self.id}@{self.version}"


@dataclass(frozen=True, slots=True)
class RulesetSelection:
    ruleset_ref: str
    locale: str


def parse_ref(ref: str) -> DocumentRef:
    """Parse ``id`` or ``id@version``; raises ``ValueError`` for malformed refs."""

    if not isinstance(ref, str) or not ref.strip():
        raise ValueError(f"reference must be a non-empty string, got {ref!r}")
    ref_id, separator, version = ref.strip().partition("@")
    if not ref_id:
        raise ValueError(f"reference is missing an id: {ref!r}")
    if separator and not version:
        raise ValueError(f"reference has an empty version: {ref!r}")
    if "@" in version:
        raise ValueError(f"reference has more than one version marker: {ref!r}")
    return DocumentRef(id=ref_id, version=version or None)


def unwrap_document(document: Mapping[str, Any] | None, wrapper_key: str) -> Mapping[str, Any]:
    """Return ``document[wrapper_key]`` when the body is wrapped, else ``document``."""

    if not isinstance(document, Mapping):
        return {}
    inner = document.get(wrapper_key)
    return inner if isinstance(inner, Mapping) else document


def snapshot_meta(game: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Return ``game.state_snapshot.meta`` or an empty mapping."""

    if not isinstance(game, Mapping):
        return {}
    snapshot = game.get("state_snapshot")
    if not isinstance(snapshot, Mapping):
        return {}
    meta = snapshot.get("meta")
    return meta if isinstance(meta, Mapping) else {}


def resolve_ruleset_ref(
    game: Mapping[str, Any] | None,
    session: Mapping[str, Any] | None,
    *,
    default_ruleset_ref: str,
    default_locale: str,
) -> RulesetSelection:
    """Pick the ruleset ref and locale: session override > game meta > defaults."""

    meta = snapshot_meta(game)
    overrides = session if isinstance(session, Mapping) else {}

    ruleset_ref = _first_text(overrides.get("ruleset_ref"), meta.get("ruleset_ref"))
    locale = _first_text(overrides.get("locale"), meta.get("locale"))
    return RulesetSelection(
        ruleset_ref=ruleset_ref or default_ruleset_ref,
        locale=locale or default_locale,
    )


def _first_text(*values: object) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


__all__ = [
    "DocumentRef",
    "RulesetSelection",
    "parse_ref",
    "resolve_ruleset_ref",
    "snapshot_meta",
    "unwrap_document",
]
