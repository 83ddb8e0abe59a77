"""
bundle-assembler — pointer engine

File: src/bundle_assembler/utils/pointer.py
Last updated: 2026-10-18

Purpose
- Generic get/set/delete over nested dicts and lists addressed by slash-delimited
  pointers (``/seg1/seg2``). No knowledge of bundle semantics.

Functional requirements
- ``""`` addresses the whole document; every other pointer starts with ``/``.
- Segments use RFC 6901 escapes (``~1`` is ``/``, ``~0`` is ``~``).
- Empty segments are rejected, so ``"/"``, ``"/a/"`` and ``"//a"`` are malformed.
- ``get`` reports absence with ``found=False`` and never raises for missing paths.
- ``set`` creates missing intermediates: lists for numeric segments, dicts otherwise.
- Writing past the end of a list pads the gap with ``None``. There is no append
  segment: ``-`` is an ordinary key in a dict and rejected as a list index, so a
  value written at a pointer is always readable at that same pointer.

Non-functional requirements
- O(pointer depth) per operation; standard library only.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from typing import Any, Final

from bundle_assembler.domain.errors import PointerError

ROOT_POINTER: Final[str] = ""

_INDEX_RE: Final[re.Pattern[str]] = re.compile(r"^(?:0|[1-9][0-9]*)$")
_BAD_ESCAPE_RE: Final[re.Pattern[str]] = re.compile(r"~(?![01])")

__all__ = [
    "ROOT_POINTER",
    "delete_at_pointer",
    "get_at_pointer",
    "is_index_segment",
    "join_pointer",
    "set_at_pointer",
    "split_pointer",
]


def split_pointer(pointer: str) -> tuple[str, ...]:
    """Parse ``pointer`` into decoded segments; ``""`` yields no segments."""

    if not isinstance(pointer, str):
        raise PointerError(repr(pointer), f"expected string pointer, got {type(pointer).__name__}")
    if pointer == ROOT_POINTER:
        return ()
    if not pointer.startswith("/"):
        raise PointerError(pointer, "pointer must be empty or start with '/'")

    segments: list[str] = []
    for raw in pointer[1:].split("/"):
        if not raw:
            raise PointerError(pointer, "empty segments are not allowed")
        if _BAD_ESCAPE_RE.search(raw):
            raise PointerError(pointer, f"invalid escape sequence in segment {raw!r}")
        segments.append(raw.replace("~1", "/").replace("~0", "~"))
    return tuple(segments)


def join_pointer(segments: tuple[str, ...] | list[str]) -> str:
    """Encode ``segments`` back into a pointer string."""

    if not segments:
        return ROOT_POINTER
    encoded: list[str] = []
    for segment in segments:
        text = str(segment)
        if not text:
            raise PointerError(repr(segments), "empty segments are not allowed")
        encoded.append(text.replace("~", "~0").replace("/", "~1"))
    return "/" + "/".join(encoded)


def is_index_segment(segment: str) -> bool:
    """Return whether ``segment`` is a canonical non-negative array index."""

    return bool(_INDEX_RE.match(segment))


def get_at_pointer(root: Any, pointer: str) -> tuple[Any, bool]:
    """Return ``(value, found)`` for ``pointer`` inside ``root``."""

    current = root
    for segment in split_pointer(pointer):
        if isinstance(current, Mapping):
            if segment not in current:
                return None, False
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not is_index_segment(segment):
                return None, False
            index = int(segment)
            if index >= len(current):
                return None, False
            current = current[index]
        else:
            return None, False
    return current, True


def set_at_pointer(root: Any, pointer: str, value: Any) -> Any:
    """
    Write ``value`` at ``pointer`` and return the (possibly replaced) root.

    ``root`` is mutated in place. Setting the root pointer returns ``value``
    without touching ``root``.
    """

    segments = split_pointer(pointer)
    if not segments:
        return value

    current = root
    for position, segment in enumerate(segments[:-1]):
        next_segment = segments[position + 1]
        current = _descend_for_write(current, segment, next_segment, pointer)

    _assign(current, segments[-1], value, pointer)
    return root


def delete_at_pointer(root: Any, pointer: str) -> bool:
    """Remove the value at ``pointer``; return whether anything was removed."""

    segments = split_pointer(pointer)
    if not segments:
        raise PointerError(pointer, "cannot delete the document root")

    parent, found = get_at_pointer(root, join_pointer(segments[:-1]))
    if not found:
        return False
    last = segments[-1]
    if isinstance(parent, MutableMapping):
        if last not in parent:
            return False
        del parent[last]
        return True
    if isinstance(parent, MutableSequence):
        if not is_index_segment(last) or int(last) >= len(parent):
            return False
        del parent[int(last)]
        return True
    return False


def _descend_for_write(container: Any, segment: str, next_segment: str, pointer: str) -> Any:
    if isinstance(container, MutableMapping):
        child = container.get(segment)
        if child is None:
            child = _new_container(next_segment)
            container[segment] = child
        elif not _is_container(child):
            raise PointerError(pointer, f"cannot traverse scalar at segment {segment!r}")
        return child

    if isinstance(container, MutableSequence):
        index = _write_index(container, segment, pointer)
        if index == len(container):
            container.append(_new_container(next_segment))
        elif container[index] is None:
            container[index] = _new_container(next_segment)
        child = container[index]
        if not _is_container(child):
            raise PointerError(pointer, f"cannot traverse scalar at segment {segment!r}")
        return child

    raise PointerError(pointer, f"cannot traverse {type(container).__name__} at {segment!r}")


def _assign(container: Any, segment: str, value: Any, pointer: str) -> None:
    if isinstance(container, MutableMapping):
        container[segment] = value
        return
    if isinstance(container, MutableSequence):
        index = _write_index(container, segment, pointer)
        if index == len(container):
            container.append(value)
        else:
            container[index] = value
        return
    raise PointerError(pointer, f"cannot write into {type(container).__name__}")


def _write_index(container: MutableSequence[Any], segment: str, pointer: str) -> int:
    if not is_index_segment(segment):
        raise PointerError(pointer, f"array segment must be a non-negative index, got {segment!r}")
    index = int(segment)
    # Pad so later iteration never sees holes.
    while len(container) < index:
        container.append(None)
    return index


def _new_container(next_segment: str) -> dict[str, Any] | list[Any]:
    if is_index_segment(next_segment):
        return []
    return {}


def _is_container(value: object) -> bool:
    return isinstance(value, (MutableMapping, MutableSequence))
