"""Locale overlays applied to source documents before they enter the context."""

from bundle_assembler.localization.overlay import LocaleOverlayResolver, overlay

__all__ = ["LocaleOverlayResolver", "overlay"]
