"""
Scoped symbol table used by the parser to catch conflicting command combinations.

Classes:
    SymbolKind: Enumerates the load-balancing targets tracked per scope.
    Scope: Per-block record of which symbol kinds were declared, and where.
    SymbolTable: Stack of scopes with declare-time conflict detection.

Mutually exclusive kinds are declared as data in `EXCLUSIVE_KINDS`. Declaring a
kind that conflicts with one already present in the current scope returns a
diagnostic message and leaves the scope untouched.

Example:
    >>> table = SymbolTable()
    >>> table.declare(SymbolKind.POOL, line=2) is None
    True
    >>> table.declare(SymbolKind.NODE, line=3)
    "Invalid combination: 'node' and 'pool' in the same block."
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType

logger = logging.getLogger(__name__)


class SymbolKind(Enum):
    NODE = "node"
    POOL = "pool"


EXCLUSIVE_KINDS = MappingProxyType(
    {
        SymbolKind.NODE: frozenset({SymbolKind.POOL}),
        SymbolKind.POOL: frozenset({SymbolKind.NODE}),
    }
)


class Scope:
    """A single lexical block.

    Attributes:
        declared (dict[SymbolKind, int]): Line of the first declaration of each kind.
    """

    def __init__(self) -> None:
        self.declared: dict[SymbolKind, int] = {}

    def has(self, kind: SymbolKind) -> bool:
        return kind in self.declared


class SymbolTable:
    """Stack of scopes. The global scope is created up front and never popped."""

    def __init__(self) -> None:
        self.scopes: list[Scope] = [Scope()]

    @property
    def current(self) -> Scope:
        return self.scopes[-1]

    @property
    def depth(self) -> int:
        return len(self.scopes)

    def enter_scope(self) -> None:
        self.scopes.append(Scope())

    def exit_scope(self) -> None:
        if len(self.scopes) > 1:
            self.scopes.pop()

    def declare(self, kind: SymbolKind, line: int = 0) -> str | None:
        """
        Records `kind` in the current scope.

        Args:
            kind (SymbolKind): The kind being declared.
            line (int, optional): Source line of the declaration.

        Returns:
            str | None: A diagnostic message when `kind` conflicts with a kind
            already declared in the current scope, otherwise None.
        """
        scope = self.current
        for other in sorted(EXCLUSIVE_KINDS.get(kind, ()), key=lambda k: k.value):
            if scope.has(other):
                first, second = sorted((kind.value, other.value))
                logger.debug("%s on line %d conflicts with %s", kind.value, line, other.value)
                return f"Invalid combination: '{first}' and '{second}' in the same block."
        scope.declared.setdefault(kind, line)
        return None

    def lookup(self, kind: SymbolKind) -> int | None:
        """Returns the line where `kind` was declared in the nearest enclosing scope."""
        for scope in reversed(self.scopes):
            if scope.has(kind):
                return scope.declared[kind]
        return None


__all__ = ["EXCLUSIVE_KINDS", "Scope", "SymbolKind", "SymbolTable"]
