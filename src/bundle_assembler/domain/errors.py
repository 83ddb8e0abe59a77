"""Error taxonomy for bundle assembly.

Resolution misses are never errors. Per-rule failures are recorded as
diagnostics. Only precondition and validation failures are fatal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from bundle_assembler.domain.models import Diagnostic, Violation


class BundleAssemblyError(Exception):
    """Root of all errors raised by the assembly core."""


class PointerError(BundleAssemblyError, ValueError):
    """Raised for malformed pointers or writes that cannot be performed."""

    def __init__(self, pointer: str, message: str) -> None:
        super().__init__(f"{pointer!r}: {message}")
        self.pointer = pointer


class PreconditionError(BundleAssemblyError):
    """Raised before rule execution when a required upstream input is missing."""

    def __init__(self, requirement: str, message: str) -> None:
        super().__init__(f"precondition not met ({requirement}): {message}")
        self.requirement = requirement


class BundleValidationError(BundleAssemblyError):
    """Raised when the assembled bundle fails structural validation."""

    def __init__(
        self,
        violations: Sequence[Violation],
        diagnostics: Sequence[Diagnostic] = (),
    ) -> None:
        summary = ", ".join(f"{item.pointer or '<root>'}: {item.message}" for item in violations)
        super().__init__(f"bundle validation failed: {summary}")
        self.violations = tuple(violations)
        self.diagnostics = tuple(diagnostics)


__all__ = [
    "BundleAssemblyError",
    "BundleValidationError",
    "PointerError",
    "PreconditionError",
]
