"""Stable constants shared across the assembly, localization and config layers."""

from __future__ import annotations

from typing import Final

# Config schema version.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Bundle defaults.
DEFAULT_ENGINE_VERSION: Final[str] = "1.0.0"
DEFAULT_LOCALE: Final[str] = "en-US"
DEFAULT_RULESET_REF: Final[str] = "ruleset.core.default@1.0.0"
DEFAULT_NPCS_ACTIVE_CAP: Final[int] = 5
BUNDLE_ROOT_KEY: Final[str] = "awf_bundle"
RNG_POLICY: Final[str] = "deterministic"

# Token estimation: one token is roughly four characters of serialized text.
CHARS_PER_TOKEN: Final[int] = 4

# NPC compaction limits.
NPC_SUMMARY_MAX_CHARS: Final[int] = 160
NPC_TAGS_MAX: Final[int] = 4

__all__ = [
    "BUNDLE_ROOT_KEY",
    "CHARS_PER_TOKEN",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_ENGINE_VERSION",
    "DEFAULT_LOCALE",
    "DEFAULT_NPCS_ACTIVE_CAP",
    "DEFAULT_RULESET_REF",
    "NPC_SUMMARY_MAX_CHARS",
    "NPC_TAGS_MAX",
    "RNG_POLICY",
]
