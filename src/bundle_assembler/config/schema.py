"""
bundle-assembler — configuration schema and validation.

File: src/bundle_assembler/config/schema.py
Last updated: 2026-10-18

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from bundle_assembler.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_ENGINE_VERSION,
    DEFAULT_LOCALE,
    DEFAULT_NPCS_ACTIVE_CAP,
    DEFAULT_RULESET_REF,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

# Fields that accept ``None`` (omitted in TOML, ``none`` in env overrides).
NULLABLE_FIELDS: Final[frozenset[tuple[str, ...]]] = frozenset(
    {("assembly", "max_input_tokens")}
)


class MetaConfig(TypedDict):
    schema_version: int


class AssemblyConfig(TypedDict):
    engine_version: str
    default_locale: str
    native_locale: str
    default_ruleset_ref: str
    npcs_active_cap: int
    max_input_tokens: int | None


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    redact_secrets: bool


class BundlerConfig(TypedDict):
    meta: MetaConfig
    assembly: AssemblyConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[BundlerConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "assembly": {
        "engine_version": DEFAULT_ENGINE_VERSION,
        "default_locale": DEFAULT_LOCALE,
        "native_locale": DEFAULT_LOCALE,
        "default_ruleset_ref": DEFAULT_RULESET_REF,
        "npcs_active_cap": DEFAULT_NPCS_ACTIVE_CAP,
        "max_input_tokens": None,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "redact_secrets": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> BundlerConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade bundler.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the bundle-assembler runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(config, {"meta", "assembly", "observability"}, "", issues)
    _require_keys(config, {"meta", "assembly", "observability"}, "", issues)

    normalized: dict[str, Any] = {}
    if isinstance(config.get("meta"), Mapping):
        normalized["meta"] = _validate_meta(config["meta"], "meta", issues)
    elif "meta" in config:
        issues.add("meta", "expected object")
    if isinstance(config.get("assembly"), Mapping):
        normalized["assembly"] = _validate_assembly(config["assembly"], "assembly", issues)
    elif "assembly" in config:
        issues.add("assembly", "expected object")
    if isinstance(config.get("observability"), Mapping):
        normalized["observability"] = _validate_observability(
            config["observability"], "observability", issues
        )
    elif "observability" in config:
        issues.add("observability", "expected object")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_meta(payload: Mapping[str, object], path: str, issues: _IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        version = _as_int(payload["schema_version"], _join(path, "schema_version"), issues, minimum=1)
        if version is not None and version != ConfigSchemaVersion:
            issues.add(_join(path, "schema_version"), migration_guidance(version))
        elif version is not None:
            out["schema_version"] = version
    return out


def _validate_assembly(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {
        "engine_version",
        "default_locale",
        "native_locale",
        "default_ruleset_ref",
        "npcs_active_cap",
        "max_input_tokens",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed - {"max_input_tokens"}, path, issues)

    out: dict[str, Any] = {}
    for key in ("engine_version", "default_locale", "native_locale"):
        if key in payload:
            parsed = _as_str(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed

    if "default_ruleset_ref" in payload:
        ref_path = _join(path, "default_ruleset_ref")
        parsed_ref = _as_str(payload["default_ruleset_ref"], ref_path, issues)
        if parsed_ref is not None:
            ref_id, _, version = parsed_ref.partition("@")
            if not ref_id or not version:
                issues.add(ref_path, "must be of the form id@version")
            else:
                out["default_ruleset_ref"] = parsed_ref

    if "npcs_active_cap" in payload:
        cap = _as_int(payload["npcs_active_cap"], _join(path, "npcs_active_cap"), issues, minimum=0)
        if cap is not None:
            out["npcs_active_cap"] = cap

    max_tokens = payload.get("max_input_tokens")
    if max_tokens is None:
        out["max_input_tokens"] = None
    else:
        parsed_max = _as_int(max_tokens, _join(path, "max_input_tokens"), issues, minimum=1)
        if parsed_max is not None:
            out["max_input_tokens"] = parsed_max
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "redact_secrets"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        parsed_log_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level

    if "log_format" in payload:
        parsed_log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if parsed_log_format is not None:
            out["log_format"] = parsed_log_format

    if "redact_secrets" in payload:
        parsed_redact = _as_bool(payload["redact_secrets"], _join(path, "redact_secrets"), issues)
        if parsed_redact is not None:
            out["redact_secrets"] = parsed_redact
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(str(item) for item in payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            nested = dict(existing)
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


__all__ = [
    "DEFAULT_CONFIG",
    "NULLABLE_FIELDS",
    "AssemblyConfig",
    "BundlerConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "MetaConfig",
    "ObservabilityConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
