"""
bundle-assembler — context resolver

File: src/bundle_assembler/assembly/context_resolver.py
Last updated: 2026-10-18

Purpose
- Hold the closed set of named data scopes for one assembly and resolve a
  rule's scoped source pointer to a value.

Functional requirements
- Dispatch on the ``Scope`` enum: the first pointer segment selects exactly one
  scope root and the remainder is resolved by the pointer engine.
- ``/context/...`` and pointers whose first segment is not a registered scope
  resolve against the default ``local`` root.
- Unknown or unsupplied scopes resolve to not-found; they never raise.

Non-functional requirements
- Context is read-only for one assembly and rebuilt per request.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from bundle_assembler.utils.pointer import get_at_pointer, join_pointer, split_pointer


class Scope(StrEnum):
    """Closed set of source scopes a rule may read from."""

    WORLD = "world"
    ADVENTURE = "adventure"
    SCENARIO = "scenario"
    NPCS = "npcs"
    CONTRACT = "contract"
    PLAYER = "player"
    GAME = "game"
    SESSION = "session"
    CONTEXT = "context"


SOURCE_SCOPES: tuple[Scope, ...] = tuple(scope for scope in Scope if scope is not Scope.CONTEXT)

_SCOPES_BY_NAME: Mapping[str, Scope] = MappingProxyType({scope.value: scope for scope in Scope})


@dataclass(frozen=True, slots=True)
class InjectionContext:
    """Per-request scope roots; ``local`` is the root of the default scope."""

    roots: Mapping[Scope, Any] = field(default_factory=dict)
    local: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized: dict[Scope, Any] = {}
        for key, value in self.roots.items():
            scope = key if isinstance(key, Scope) else _SCOPES_BY_NAME.get(str(key))
            if scope is None or scope is Scope.CONTEXT:
                raise ValueError(f"unknown source scope: {key!r}")
            normalized[scope] = value
        object.__setattr__(self, "roots", MappingProxyType(normalized))
        if not isinstance(self.local, Mapping):
            raise ValueError(f"local scope must be an object, got {type(self.local).__name__}")

    @classmethod
    def build(
        cls,
        *,
        world: Any = None,
        adventure: Any = None,
        scenario: Any = None,
        npcs: Any = None,
        contract: Any = None,
        player: Any = None,
        game: Any = None,
        session: Any = None,
        local: Mapping[str, Any] | None = None,
    ) -> InjectionContext:
        supplied = {
            Scope.WORLD: world,
            Scope.ADVENTURE: adventure,
            Scope.SCENARIO: scenario,
            Scope.NPCS: npcs,
            Scope.CONTRACT: contract,
            Scope.PLAYER: player,
            Scope.GAME: game,
            Scope.SESSION: session,
        }
        return cls(
            roots={scope: value for scope, value in supplied.items() if value is not None},
            local=dict(local or {}),
        )

    def root(self, scope: Scope) -> tuple[Any, bool]:
        """Return ``(root, found)`` for ``scope``."""

        if scope is Scope.CONTEXT:
            return self.local, True
        if scope not in self.roots:
            return None, False
        value = self.roots[scope]
        return value, value is not None

    def resolve(self, pointer: str) -> tuple[Any, bool]:
        """
        Resolve a scoped pointer to ``(value, found)``.

        Raises ``PointerError`` only when ``pointer`` is malformed.
        """

        segments = split_pointer(pointer)
        if not segments:
            return self.local, True

        scope = _SCOPES_BY_NAME.get(segments[0])
        if scope is None:
            return get_at_pointer(self.local, pointer)

        root, found = self.root(scope)
        if not found:
            return None, False
        remainder = segments[1:]
        if not remainder:
            return root, True
        return get_at_pointer(root, join_pointer(remainder))


__all__ = ["SOURCE_SCOPES", "InjectionContext", "Scope"]
