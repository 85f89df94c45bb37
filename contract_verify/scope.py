"""
contract_verify/scope.py
════════════════════════

Scope tracking for one module walk.

The tracker is a stack machine mirroring the walker's enter/exit events:

  ┌──────────────────────────────────────────────────────────────────┐
  │  scope stack        STRUCT  NAMESPACE  BLOCK  FUNCTION_SIGNATURE │
  │  name path          "MYCONTRACT" "Foo_input"                     │
  │  IO flags           one bool per open STRUCT/CLASS frame         │
  │  local IO types     one set per frame (+ global), names of       │
  │                     aggregates that closed while IO-eligible     │
  └──────────────────────────────────────────────────────────────────┘

An empty scope stack is the global scope.  Every ``enter`` must be matched
by exactly one ``exit``; popping an empty stack means the walker and the
engine are out of sync, which is fatal for the module (``ScopeDesyncError``).

Instances are never shared between walks.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Set

from contract_verify.errors import ScopeDesyncError
from contract_verify.spelling import SCOPE_SEPARATOR, scoped_name


class ScopeKind(Enum):
    """Syntactic contexts whose placement rules differ."""

    STRUCT = "struct"
    CLASS = "class"
    NAMESPACE = "namespace"
    BLOCK = "block"
    # bindings in template argument lists are not declarations
    TEMPLATE_SPECIALIZATION = "template_specialization"
    # bindings in parameter lists / return types are not declarations
    FUNCTION_SIGNATURE = "function_signature"
    # a binding under a typedef is an alias, not a local variable
    TYPEDEF = "typedef"

    @property
    def is_aggregate(self) -> bool:
        return self in (ScopeKind.STRUCT, ScopeKind.CLASS)

    @property
    def is_named(self) -> bool:
        """Frames that contribute a segment to the qualified name path."""
        return self in (ScopeKind.STRUCT, ScopeKind.CLASS, ScopeKind.NAMESPACE)

    @classmethod
    def from_string(cls, text: str) -> ScopeKind:
        key = text.strip().lower()
        for member in cls:
            if member.value == key or member.name.lower() == key:
                return member
        raise ValueError(f"unknown scope kind {text!r}")


class ScopeTracker:
    """
    Context model of the node currently being visited.

    >>> st = ScopeTracker()
    >>> st.enter(ScopeKind.STRUCT)
    >>> st.is_directly_in_aggregate()
    True
    >>> st.exit()
    <ScopeKind.STRUCT: 'struct'>
    """

    def __init__(self) -> None:
        self._stack: List[ScopeKind] = []
        self._names: List[str] = []
        self._io_flags: List[bool] = []
        # index 0 is the global level; one more entry per open frame
        self._local_io_types: List[Set[str]] = [set()]

    # ── scope stack ──────────────────────────────────────────────────

    def enter(self, kind: ScopeKind) -> None:
        self._stack.append(kind)
        self._local_io_types.append(set())

    def exit(self) -> ScopeKind:
        if not self._stack:
            raise ScopeDesyncError("exit() with no open scope")
        self._local_io_types.pop()
        return self._stack.pop()

    def current_kind(self) -> Optional[ScopeKind]:
        return self._stack[-1] if self._stack else None

    def is_directly_in_aggregate(self) -> bool:
        return bool(self._stack) and self._stack[-1].is_aggregate

    def is_global(self) -> bool:
        return not self._stack

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def aggregate_depth(self) -> int:
        return sum(1 for kind in self._stack if kind.is_aggregate)

    def frames(self) -> List[ScopeKind]:
        return list(self._stack)

    def finish(self) -> None:
        """Check that the walk ended at global scope."""
        if self._stack or self._names or self._io_flags:
            open_kinds = ", ".join(k.value for k in self._stack)
            raise ScopeDesyncError(
                f"walk ended with {len(self._stack)} open scope(s): {open_kinds}"
            )

    # ── IO eligibility ───────────────────────────────────────────────

    def push_io_flag(self) -> None:
        self._io_flags.append(True)

    def set_io_flag_false(self) -> None:
        if not self._io_flags:
            raise ScopeDesyncError("set_io_flag_false() outside struct/class")
        self._io_flags[-1] = False

    def pop_io_flag(self) -> bool:
        if not self._io_flags:
            raise ScopeDesyncError("pop_io_flag() with no open struct/class")
        return self._io_flags.pop()

    def io_flag(self) -> bool:
        return bool(self._io_flags) and self._io_flags[-1]

    @property
    def io_depth(self) -> int:
        return len(self._io_flags)

    def add_local_io_type(self, name: str) -> None:
        """Record an IO-eligible aggregate in the current (enclosing) frame."""
        self._local_io_types[-1].add(name)

    def is_local_io_type(self, spelling: str) -> bool:
        return any(spelling in level for level in self._local_io_types)

    # ── qualified name path ──────────────────────────────────────────

    def push_name_segment(self, name: str) -> None:
        self._names.append(name)

    def pop_name_segment(self) -> str:
        if not self._names:
            raise ScopeDesyncError("pop_name_segment() with empty name path")
        return self._names.pop()

    @property
    def name_path(self) -> List[str]:
        return list(self._names)

    def qualified_name(self, start: int = 0) -> str:
        return scoped_name(self._names, start)

    def qualify(self, name: str) -> str:
        """Fully qualified spelling of *name* declared in the current frame."""
        if not self._names:
            return name
        return self.qualified_name() + SCOPE_SEPARATOR + name

    def __repr__(self) -> str:
        kinds = "/".join(k.value for k in self._stack) or "global"
        return f"<ScopeTracker {kinds} path={self.qualified_name()!r}>"


__all__ = ["ScopeKind", "ScopeTracker"]
