"""Structural verification of assembled bundles."""

from bundle_assembler.verification.validator import (
    BundleSchema,
    BundleValidator,
    CountCheck,
    StructuralSchema,
    default_bundle_schema,
)

__all__ = [
    "BundleSchema",
    "BundleValidator",
    "CountCheck",
    "StructuralSchema",
    "default_bundle_schema",
]
