"""Compact NPC documents into the token-lean shape carried by the bundle."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypedDict

from bundle_assembler.constants import NPC_SUMMARY_MAX_CHARS, NPC_TAGS_MAX


class CompactNpcStyle(TypedDict):
    voice: str | None
    register: str | None


class CompactNpc(TypedDict):
    id: str | None
    ver: str | None
    name: str
    archetype: str | None
    summary: str
    style: CompactNpcStyle
    tags: list[str]


def compact_npc_doc(
    doc: Mapping[str, Any],
    *,
    npc_id: str | None = None,
    version: str | None = None,
) -> CompactNpc:
    """
    Reduce an NPC document to id, name, archetype, summary, style and tags.

    Accepts either ``{"npc": {...}}`` or the bare NPC body. Localization is
    applied to the document before compaction, not here.
    """

    body = doc.get("npc", doc) if isinstance(doc, Mapping) else {}
    if not isinstance(body, Mapping):
        body = {}
    style = body.get("style") if isinstance(body.get("style"), Mapping) else {}
    raw_tags = body.get("tags")
    tags = (
        [tag for tag in raw_tags if isinstance(tag, str)]
        if isinstance(raw_tags, Sequence) and not isinstance(raw_tags, str)
        else []
    )
    summary = _text(body.get("summary")) or _text(body.get("description")) or ""
    name = _text(body.get("display_name")) or _text(body.get("name")) or npc_id or "Unknown"

    return {
        "id": npc_id,
        "ver": version,
        "name": name,
        "archetype": _text(body.get("archetype")),
        "summary": summary[:NPC_SUMMARY_MAX_CHARS],
        "style": {
            "voice": _text(style.get("voice")),
            "register": _text(style.get("register")),
        },
        "tags": tags[:NPC_TAGS_MAX],
    }


def _text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = ["CompactNpc", "CompactNpcStyle", "compact_npc_doc"]
