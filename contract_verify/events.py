"""
contract_verify/events.py
═════════════════════════

Tree-visit events consumed by the rule engine.

A walker (the cppcheck dump walker in :mod:`contract_verify.dump_walker`,
or any other front-end) reports the syntax tree as an ordered stream:

    Enter(kind, node)            push a scope frame
    Exit()                       pop the innermost frame
    DeclarationSeen(node)        a name binding (variable, function, type...)
    NameReferenceSeen(q, name)   a reference, optionally scope-qualified
    MacroInvocationSeen(name)    a macro-style directive
    IOTypeUseSeen(type_name)     an aggregate used as a public IO type

Streams can be stored as JSON lines, one object per event::

    {"event": "enter", "kind": "struct", "name": "Foo", "line": 3}
    {"event": "declaration", "decl": "variable", "name": "a", "type": "id"}
    {"event": "exit"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any, Dict, Iterable, Iterator, Optional, Union

from contract_verify.errors import EventFormatError
from contract_verify.scope import ScopeKind


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 - NODE INFORMATION
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"

    def sort_key(self) -> tuple:
        return (self.file, self.line, self.column)


class DeclarationKind(Enum):
    VARIABLE = "variable"
    FUNCTION = "function"
    TYPE = "type"            # struct/class/enum (forward) declaration
    TYPEDEF = "typedef"
    USING = "using"

    @property
    def is_type_like(self) -> bool:
        return self in (DeclarationKind.TYPE, DeclarationKind.TYPEDEF,
                        DeclarationKind.USING)


@dataclass(frozen=True)
class NodeInfo:
    """
    What the engine needs to know about a syntax node.

    Attributes
    ----------
    name        : declared / entered name (may be empty for anonymous blocks)
    location    : source location
    decl_kind   : for declarations, what kind of binding this is
    type_spelling : for variable declarations, the declared type as written
    is_static   : static member / storage (not an instance field)
    is_constant : const / constexpr binding
    macro       : name of the macro whose expansion produced the node
    """
    name: str = ""
    location: SourceLocation = field(default_factory=SourceLocation)
    decl_kind: Optional[DeclarationKind] = None
    type_spelling: Optional[str] = None
    is_static: bool = False
    is_constant: bool = False
    macro: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 - EVENTS
# ═════════════════════════════════════════════════════════════════════════

class EventKind(Enum):
    ENTER = "enter"
    EXIT = "exit"
    DECLARATION = "declaration"
    NAME_REFERENCE = "reference"
    MACRO_INVOCATION = "macro"
    IO_TYPE_USE = "io_use"


@dataclass(frozen=True)
class Enter:
    kind: ScopeKind
    node: NodeInfo = field(default_factory=NodeInfo)
    event_kind = EventKind.ENTER

    @property
    def location(self) -> SourceLocation:
        return self.node.location


@dataclass(frozen=True)
class Exit:
    location: SourceLocation = field(default_factory=SourceLocation)
    event_kind = EventKind.EXIT


@dataclass(frozen=True)
class DeclarationSeen:
    node: NodeInfo
    event_kind = EventKind.DECLARATION

    @property
    def location(self) -> SourceLocation:
        return self.node.location


@dataclass(frozen=True)
class NameReferenceSeen:
    qualifier: Optional[str]
    name: str
    location: SourceLocation = field(default_factory=SourceLocation)
    macro: Optional[str] = None
    event_kind = EventKind.NAME_REFERENCE


@dataclass(frozen=True)
class MacroInvocationSeen:
    name: str
    location: SourceLocation = field(default_factory=SourceLocation)
    event_kind = EventKind.MACRO_INVOCATION


@dataclass(frozen=True)
class IOTypeUseSeen:
    type_name: str
    location: SourceLocation = field(default_factory=SourceLocation)
    event_kind = EventKind.IO_TYPE_USE


Event = Union[Enter, Exit, DeclarationSeen, NameReferenceSeen,
              MacroInvocationSeen, IOTypeUseSeen]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 - JSON-LINES CODEC
# ═════════════════════════════════════════════════════════════════════════

_REQUIRED = object()


def _str_field(obj: Dict[str, Any], key: str, default: Any = _REQUIRED) -> Any:
    """Field *key* as ``str``; ``None`` only where *default* is ``None``."""
    value = obj.get(key, default)
    if value is _REQUIRED:
        raise KeyError(key)
    if value is None and default is None:
        return None
    if not isinstance(value, str):
        raise EventFormatError(
            f"field {key!r} must be a string, got {type(value).__name__}"
        )
    return value


def _int_field(obj: Dict[str, Any], key: str) -> int:
    value = obj.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise EventFormatError(
            f"field {key!r} must be an integer, got {type(value).__name__}"
        )
    return value


def _location_from(obj: Dict[str, Any]) -> SourceLocation:
    return SourceLocation(
        file=_str_field(obj, "file", ""),
        line=_int_field(obj, "line"),
        column=_int_field(obj, "column"),
    )


def _location_dict(loc: SourceLocation) -> Dict[str, Any]:
    return {"file": loc.file, "line": loc.line, "column": loc.column}


def event_from_dict(obj: Dict[str, Any]) -> Event:
    """
    Decode one event object.

    Raises
    ------
    EventFormatError
        Unknown event tag, unknown scope/declaration kind, a missing
        mandatory field, or a field of the wrong type.
    """
    if not isinstance(obj, dict):
        raise EventFormatError(f"event must be an object, got {type(obj).__name__}")
    tag = obj.get("event")
    try:
        kind = EventKind(tag)
    except (ValueError, TypeError):
        raise EventFormatError(f"unknown event {tag!r}") from None

    try:
        loc = _location_from(obj)
        if kind is EventKind.ENTER:
            return Enter(
                kind=ScopeKind.from_string(_str_field(obj, "kind")),
                node=NodeInfo(name=_str_field(obj, "name", ""), location=loc),
            )
        if kind is EventKind.EXIT:
            return Exit(location=loc)
        if kind is EventKind.DECLARATION:
            decl = _str_field(obj, "decl", None)
            return DeclarationSeen(NodeInfo(
                name=_str_field(obj, "name", ""),
                location=loc,
                decl_kind=DeclarationKind(decl) if decl else None,
                type_spelling=_str_field(obj, "type", None),
                is_static=bool(obj.get("static", False)),
                is_constant=bool(obj.get("const", False)),
                macro=_str_field(obj, "macro", None),
            ))
        if kind is EventKind.NAME_REFERENCE:
            return NameReferenceSeen(
                qualifier=_str_field(obj, "qualifier", None),
                name=_str_field(obj, "name"),
                location=loc,
                macro=_str_field(obj, "macro", None),
            )
        if kind is EventKind.MACRO_INVOCATION:
            return MacroInvocationSeen(name=_str_field(obj, "name"), location=loc)
        return IOTypeUseSeen(type_name=_str_field(obj, "type"), location=loc)
    except KeyError as exc:
        raise EventFormatError(f"{tag} event is missing {exc.args[0]!r}") from None
    except EventFormatError as exc:
        raise EventFormatError(f"{tag} event: {exc.message}") from None
    except ValueError as exc:
        raise EventFormatError(str(exc)) from None


def event_to_dict(event: Event) -> Dict[str, Any]:
    """Encode one event; inverse of :func:`event_from_dict`."""
    obj: Dict[str, Any] = {"event": event.event_kind.value}
    if isinstance(event, Enter):
        obj.update(kind=event.kind.value, name=event.node.name)
    elif isinstance(event, DeclarationSeen):
        node = event.node
        obj["name"] = node.name
        if node.decl_kind is not None:
            obj["decl"] = node.decl_kind.value
        if node.type_spelling is not None:
            obj["type"] = node.type_spelling
        if node.is_static:
            obj["static"] = True
        if node.is_constant:
            obj["const"] = True
        if node.macro:
            obj["macro"] = node.macro
    elif isinstance(event, NameReferenceSeen):
        obj.update(qualifier=event.qualifier, name=event.name)
        if event.macro:
            obj["macro"] = event.macro
    elif isinstance(event, MacroInvocationSeen):
        obj["name"] = event.name
    elif isinstance(event, IOTypeUseSeen):
        obj["type"] = event.type_name
    obj.update(_location_dict(event.location))
    return obj


def read_events(stream: IO[str]) -> Iterator[Event]:
    """Yield events from a JSON-lines stream; blank and ``#`` lines are skipped."""
    for number, raw in enumerate(stream, start=1):
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as exc:
            raise EventFormatError(f"invalid JSON: {exc.msg}", number) from None
        try:
            yield event_from_dict(obj)
        except EventFormatError as exc:
            exc.line_number = number
            raise


def write_events(events: Iterable[Event], stream: IO[str]) -> int:
    count = 0
    for event in events:
        stream.write(json.dumps(event_to_dict(event)) + "\n")
        count += 1
    return count


__all__ = [
    "SourceLocation",
    "DeclarationKind",
    "NodeInfo",
    "EventKind",
    "Enter",
    "Exit",
    "DeclarationSeen",
    "NameReferenceSeen",
    "MacroInvocationSeen",
    "IOTypeUseSeen",
    "Event",
    "event_from_dict",
    "event_to_dict",
    "read_events",
    "write_events",
]
