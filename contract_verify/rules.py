"""
contract_verify/rules.py
════════════════════════

Declaration rule engine.

The engine consumes walker events (:mod:`contract_verify.events`), keeps the
:class:`~contract_verify.scope.ScopeTracker` in step with them, and reports
violations to a :class:`~contract_verify.reporter.DiagnosticReporter`.

Declaration rules, first applicable wins:

  1. inside TEMPLATE_SPECIALIZATION / FUNCTION_SIGNATURE  → parameter, permitted
  2. inside TYPEDEF                                       → alias, permitted
  3. inside BLOCK, variable                               → localVariable
  4. directly inside STRUCT/CLASS, variable               → IO eligibility check
  5. (name references and macros, independent of 1-4)    → scopePrefix / unknownMacro
  6. global or NAMESPACE, non-constant variable           → globalVariable

Rule 4 never rejects the field itself.  A failing field downgrades the
aggregate's IO flag (monotonic) and is remembered; every remembered field is
reported once the aggregate is *used as an IO type*, either by naming
convention (``<Name>_input`` / ``<Name>_output``) or through an explicit
``IOTypeUseSeen`` event.

Violations never stop the walk.  Engine errors (``ScopeDesyncError``,
``UnanalyzableNodeError``) propagate to the caller, which must abandon the
module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

from contract_verify.errors import (
    TypeSpellingError,
    UnanalyzableNodeError,
    VerifyErrorCodes as C,
)
from contract_verify.events import (
    DeclarationKind,
    DeclarationSeen,
    Enter,
    Event,
    EventKind,
    Exit,
    IOTypeUseSeen,
    MacroInvocationSeen,
    NameReferenceSeen,
    NodeInfo,
    SourceLocation,
)
from contract_verify.registry import AllowListRegistry
from contract_verify.reporter import DiagnosticReporter, ValidationResult
from contract_verify.scope import ScopeKind, ScopeTracker
from contract_verify.spelling import (
    SCOPE_SEPARATOR,
    canonical_spelling,
    qualifier_head,
    scoped_name,
)

_log = logging.getLogger(__name__)

IO_STRUCT_SUFFIXES = ("_input", "_output")
ANONYMOUS = "(anonymous)"

_PARAMETER_SCOPES = (ScopeKind.TEMPLATE_SPECIALIZATION, ScopeKind.FUNCTION_SIGNATURE)


def is_io_struct_name(name: str) -> bool:
    """True for the public-function IO naming convention."""
    return name.endswith(IO_STRUCT_SUFFIXES)


@dataclass
class _AggregateFrame:
    name: str
    qualified: str
    location: SourceLocation
    offending: List[NodeInfo] = field(default_factory=list)
    eligible: bool = True


class DeclarationRuleEngine:
    """
    Event-driven rule engine for one contract module.

    Parameters
    ----------
    registry : shared, read-only allow-lists
    reporter : per-module violation sink (created if omitted)
    contract : contract identifier used in violations

    Usage
    -----
    >>> engine = DeclarationRuleEngine(AllowListRegistry(), contract="QX")
    >>> result = engine.run(events)
    >>> result.passed
    """

    _DISPATCH: Dict[EventKind, str] = {
        EventKind.ENTER: "visit_enter",
        EventKind.EXIT: "visit_exit",
        EventKind.DECLARATION: "visit_declaration",
        EventKind.NAME_REFERENCE: "visit_name_reference",
        EventKind.MACRO_INVOCATION: "visit_macro_invocation",
        EventKind.IO_TYPE_USE: "visit_io_type_use",
    }

    def __init__(
        self,
        registry: AllowListRegistry,
        reporter: Optional[DiagnosticReporter] = None,
        contract: str = "",
    ) -> None:
        self.registry = registry
        self.reporter = reporter or DiagnosticReporter(contract)
        self.tracker = ScopeTracker()
        self._aggregates: List[_AggregateFrame] = []
        self._closed: Dict[str, _AggregateFrame] = {}
        self._module_io_types: Set[str] = set()
        self._declared_scopes: Set[str] = set()
        self._reported_io: Set[str] = set()
        self._handlers: Dict[EventKind, Callable[..., None]] = {
            kind: getattr(self, method) for kind, method in self._DISPATCH.items()
        }

    # ── driving ──────────────────────────────────────────────────────

    def visit(self, event: Event) -> None:
        """Dispatch one event."""
        self._handlers[event.event_kind](event)

    def run(self, events: Iterable[Event]) -> ValidationResult:
        """Consume a whole module's events and return its result."""
        for event in events:
            self.visit(event)
        self.finish()
        return self.reporter.finalize()

    def finish(self) -> None:
        self.tracker.finish()

    # ── scope events ─────────────────────────────────────────────────

    def visit_enter(self, event: Enter) -> None:
        kind = event.kind
        name = event.node.name or ANONYMOUS
        self.tracker.enter(kind)
        if kind.is_named:
            self.tracker.push_name_segment(name)
            self._declared_scopes.add(self.tracker.qualified_name())
        if kind.is_aggregate:
            self.tracker.push_io_flag()
            self._aggregates.append(_AggregateFrame(
                name=name,
                qualified=self.tracker.qualified_name(),
                location=event.location,
            ))

    def visit_exit(self, event: Exit) -> None:
        kind = self.tracker.exit()
        if kind.is_aggregate:
            frame = self._aggregates.pop()
            frame.eligible = self.tracker.pop_io_flag()
            self._closed[frame.qualified] = frame
            if frame.eligible:
                self.tracker.add_local_io_type(frame.name)
                self._module_io_types.add(frame.qualified)
            else:
                _log.debug("%s is not IO-eligible (%d offending field(s))",
                           frame.qualified, len(frame.offending))
            if is_io_struct_name(frame.name):
                self._report_io_use(frame)
        if kind.is_named:
            self.tracker.pop_name_segment()

    # ── declarations ─────────────────────────────────────────────────

    def visit_declaration(self, event: DeclarationSeen) -> None:
        node = event.node
        if node.decl_kind is None:
            raise UnanalyzableNodeError(
                f"declaration of {node.name or '<unnamed>'!r} has no declaration kind",
                location=node.location, node=node,
            )
        if node.decl_kind.is_type_like and node.name:
            self._declared_scopes.add(self.tracker.qualify(node.name))

        # produced by a sanctioned macro; the macro name is checked on its own
        if node.macro:
            return

        scope = self.tracker.current_kind()
        if scope in _PARAMETER_SCOPES:
            return
        if scope is ScopeKind.TYPEDEF:
            return
        if node.decl_kind is not DeclarationKind.VARIABLE:
            return

        if scope is ScopeKind.BLOCK:
            self.reporter.report(
                C.LOCAL_VARIABLE, node.location,
                f"local variable '{node.name}' is not allowed in contract "
                f"functions; declare it in a locals struct",
            )
        elif self.tracker.is_directly_in_aggregate():
            self._check_field(node)
        elif scope is None or scope is ScopeKind.NAMESPACE:
            if not node.is_constant:
                where = "global" if scope is None else "namespace"
                self.reporter.report(
                    C.GLOBAL_VARIABLE, node.location,
                    f"{where} variable '{node.name}' is not allowed; "
                    f"contract state must live in the contract struct",
                )

    def _check_field(self, node: NodeInfo) -> None:
        if node.is_static:
            return
        if not node.type_spelling:
            raise UnanalyzableNodeError(
                f"field {node.name!r} has no type spelling",
                location=node.location, node=node,
            )
        if self._is_io_safe(node.type_spelling):
            return
        self.tracker.set_io_flag_false()
        self._aggregates[-1].offending.append(node)

    def _is_io_safe(self, spelling: str) -> bool:
        if self.registry.is_allowed_io_type(spelling):
            return True
        try:
            canonical = canonical_spelling(spelling)
        except TypeSpellingError:
            return False
        if SCOPE_SEPARATOR not in canonical:
            return self.tracker.is_local_io_type(canonical)
        return self._resolve(canonical, self._module_io_types) is not None

    # ── name usage ───────────────────────────────────────────────────

    def visit_name_reference(self, event: NameReferenceSeen) -> None:
        if event.macro or event.qualifier is None:
            return
        qualifier = event.qualifier
        if self._is_local_qualifier(qualifier):
            return
        if self.registry.is_allowed_scope_prefix(qualifier):
            return
        head = qualifier_head(qualifier)
        if head:
            detail = (f"scope '{head}' in '{qualifier}{SCOPE_SEPARATOR}{event.name}' "
                      f"is neither a framework namespace nor a known contract")
        else:
            detail = (f"global scope access '{SCOPE_SEPARATOR}{event.name}' "
                      f"is not allowed")
        self.reporter.report(C.SCOPE_PREFIX, event.location, detail)

    def _is_local_qualifier(self, qualifier: str) -> bool:
        head = qualifier_head(qualifier)
        if not head:
            return False
        if head in self.tracker.name_path:
            return True
        return self._resolve(head, self._declared_scopes) is not None

    def _resolve(self, name: str, known: Set[str]) -> Optional[str]:
        """Look *name* up relative to each enclosing scope, innermost first."""
        path = self.tracker.name_path
        for depth in range(len(path), -1, -1):
            prefix = scoped_name(path[:depth])
            candidate = f"{prefix}{SCOPE_SEPARATOR}{name}" if prefix else name
            if candidate in known:
                return candidate
        return None

    def visit_macro_invocation(self, event: MacroInvocationSeen) -> None:
        if not self.registry.is_known_macro(event.name):
            self.reporter.report(
                C.UNKNOWN_MACRO, event.location,
                f"macro '{event.name}' is not a sanctioned contract directive",
            )

    # ── IO type usage ────────────────────────────────────────────────

    def visit_io_type_use(self, event: IOTypeUseSeen) -> None:
        try:
            canonical = canonical_spelling(event.type_name)
        except TypeSpellingError:
            raise UnanalyzableNodeError(
                f"IO type {event.type_name!r} cannot be parsed",
                location=event.location,
            ) from None
        qualified = self._resolve(canonical, set(self._closed))
        if qualified is not None:
            self._report_io_use(self._closed[qualified])
        elif not self.registry.is_allowed_io_type(canonical):
            self.reporter.report(
                C.IO_TYPE, event.location,
                f"type '{canonical}' is not allowed as a public function "
                f"input/output type",
            )

    def _report_io_use(self, frame: _AggregateFrame) -> None:
        if frame.eligible or frame.qualified in self._reported_io:
            return
        self._reported_io.add(frame.qualified)
        for node in frame.offending:
            self.reporter.report(
                C.IO_TYPE, node.location,
                f"field '{node.name}' of '{frame.qualified}' has type "
                f"'{node.type_spelling}', which is not allowed in input/output structs",
            )

    # ── introspection ────────────────────────────────────────────────

    def is_io_eligible(self, qualified_name: str) -> Optional[bool]:
        """Eligibility of a closed aggregate, ``None`` if unknown."""
        frame = self._closed.get(qualified_name)
        return None if frame is None else frame.eligible


__all__ = ["DeclarationRuleEngine", "IO_STRUCT_SUFFIXES", "is_io_struct_name"]
