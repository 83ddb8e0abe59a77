"""
bundle-assembler config package public API.

File: src/bundle_assembler/config/__init__.py
Last updated: 2026-10-18

Purpose
- Export config loading/validation entrypoints, injection map parsing and
  public error types.

Functional requirements
- Support loading from ``bundler.toml`` + ``BUNDLER_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from bundle_assembler.config.injection_map import (
    InjectionMapDoc,
    InjectionMapError,
    load_injection_map,
    parse_injection_map,
    parse_rules,
)
from bundle_assembler.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
)
from bundle_assembler.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "InjectionMapDoc",
    "InjectionMapError",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "load_injection_map",
    "parse_injection_map",
    "parse_rules",
    "validate_config",
]
