"""
bundle-assembler — domain layer

File: src/bundle_assembler/domain/__init__.py
Last updated: 2026-10-18

Purpose
- Domain types shared across layers: injection rules, limits, locale packs,
  diagnostics, violations, bundle metrics and the error taxonomy.

Functional requirements
- Domain objects are immutable and validated on construction.

Non-functional requirements
- Domain layer should have minimal dependencies and no IO side effects.
"""
