"""
bundle-assembler — locale overlay resolver

File: src/bundle_assembler/localization/overlay.py
Last updated: 2026-10-18

Purpose
- Merge a locale pack's payload over a base document field by field, keeping
  base values wherever no localized counterpart exists.

Functional requirements
- The native locale is a no-op that returns the base object itself.
- The base document's shape is never altered: overlay keys absent from the base
  are ignored and containers are never replaced by scalars (or vice versa).
- Arrays of objects carrying ``id`` are matched by id; other arrays by position.
- A missing pack degrades to the base document with a warning; it never raises.

Non-functional requirements
- The base document is never mutated.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Final

import structlog

from bundle_assembler.constants import DEFAULT_LOCALE
from bundle_assembler.domain.models import Diagnostic, DiagnosticKind, LocalePack

REASON_PACK_MISSING: Final[str] = "locale_pack_missing"

PackKey = tuple[str, str]


def overlay(base: Any, pack: LocalePack, *, native_locale: str = DEFAULT_LOCALE) -> Any:
    """Return ``base`` with ``pack`` merged over it."""

    if pack.locale == native_locale:
        return base
    return _merge(base, pack.payload)


def _merge(base: Any, localized: Any) -> Any:
    if localized is None:
        return base
    if isinstance(base, Mapping):
        if not isinstance(localized, Mapping):
            return base
        return {
            key: (_merge(value, localized[key]) if key in localized else value)
            for key, value in base.items()
        }
    if _is_array(base):
        if not _is_array(localized):
            return list(base)
        return _merge_array(base, localized)
    if isinstance(localized, Mapping) or _is_array(localized):
        return base
    return localized


def _merge_array(base: Sequence[Any], localized: Sequence[Any]) -> list[Any]:
    if base and all(_has_id(item) for item in base):
        by_id = {item["id"]: item for item in localized if _has_id(item)}
        return [_merge(item, by_id[item["id"]]) if item["id"] in by_id else item for item in base]
    merged = [_merge(item, localized[index]) for index, item in enumerate(base[: len(localized)])]
    merged.extend(base[len(localized) :])
    return merged


def _has_id(value: object) -> bool:
    return isinstance(value, Mapping) and isinstance(value.get("id"), (str, int))


def _is_array(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


class LocaleOverlayResolver:
    """Localize source documents for one request before they enter the context."""

    def __init__(self, *, native_locale: str = DEFAULT_LOCALE, logger: Any | None = None) -> None:
        self._native_locale = native_locale
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def native_locale(self) -> str:
        return self._native_locale

    def localize(
        self,
        doc_type: str,
        doc_id: str,
        base: Any,
        locale: str,
        packs: Mapping[PackKey, LocalePack] | None,
    ) -> tuple[Any, list[Diagnostic]]:
        """Return ``(document, warnings)`` for ``(doc_type, doc_id)`` in ``locale``."""

        if locale == self._native_locale or base is None:
            return base, []

        pack = (packs or {}).get((doc_type, doc_id))
        if pack is None or pack.locale != locale:
            reason = f"{REASON_PACK_MISSING}: {doc_type}/{doc_id} ({locale})"
            self._logger.warning(
                "locale_pack_missing", doc_type=doc_type, doc_id=doc_id, locale=locale
            )
            return base, [Diagnostic(None, reason, DiagnosticKind.WARNING)]

        return overlay(base, pack, native_locale=self._native_locale), []


__all__ = ["REASON_PACK_MISSING", "LocaleOverlayResolver", "PackKey", "overlay"]
