# tests/conftest.py
"""
Shared fixtures and cppcheck look-alike objects.

``mock_configuration`` tokenizes a small C++ snippet into ``MockToken``
objects linked the way ``cppcheckdata`` links them (next/previous, bracket
links) and derives ``MockScope`` entries for every ``{ ... }`` body.
Variables and functions are declared explicitly by the test, because
deciding what is a declaration is cppcheck's job, not ours.
"""

import re
from typing import Any, List, Optional, Sequence, Tuple, Union

import pytest

from contract_verify.events import (
    DeclarationKind,
    DeclarationSeen,
    Enter,
    Exit,
    IOTypeUseSeen,
    MacroInvocationSeen,
    NameReferenceSeen,
    NodeInfo,
    SourceLocation,
)
from contract_verify.registry import AllowListRegistry
from contract_verify.scope import ScopeKind


# ---------------------------------------------------------------------------
# cppcheckdata look-alikes
# ---------------------------------------------------------------------------

class MockToken:
    def __init__(self, **kwargs: Any) -> None:
        self.str = ""
        self.next = None
        self.previous = None
        self.link = None
        self.scope = None
        self.file = "contract.h"
        self.linenr = 1
        self.column = 1
        self.isName = False
        self.isNumber = False
        self.macroName = None
        self.variable = None
        self.function = None
        self.__dict__.update(kwargs)

    def __repr__(self) -> str:
        return f"<MockToken {self.str!r} {self.file}:{self.linenr}:{self.column}>"


class MockScope:
    def __init__(self, **kwargs: Any) -> None:
        self.type = "Global"
        self.className = ""
        self.bodyStart = None
        self.bodyEnd = None
        self.nestedIn = None
        self.__dict__.update(kwargs)


class MockVariable:
    def __init__(self, **kwargs: Any) -> None:
        self.nameToken = None
        self.typeStartToken = None
        self.typeEndToken = None
        self.isArgument = False
        self.isStatic = False
        self.isConst = False
        self.__dict__.update(kwargs)


class MockFunction:
    def __init__(self, **kwargs: Any) -> None:
        self.name = ""
        self.token = None
        self.tokenDef = None
        self.__dict__.update(kwargs)


def make_token_chain(specs: Sequence[dict]) -> List[MockToken]:
    """Create tokens from attribute dicts and link next/previous."""
    tokens = [MockToken(**spec) for spec in specs]
    for prev, nxt in zip(tokens, tokens[1:]):
        prev.next = nxt
        nxt.previous = prev
    return tokens


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(r"::|[A-Za-z_]\w*|\d+|\S")

_BRACKETS = {"(": ")", "{": "}", "[": "]"}
_CONTROL = {"if": "If", "for": "For", "while": "While", "switch": "Switch"}
_AGGREGATES = {"struct": "Struct", "class": "Class", "union": "Union",
               "namespace": "Namespace", "enum": "Enum"}

Source = Union[str, Sequence[Tuple[str, str]]]


def tokenize(text: str, file: str = "contract.h") -> List[MockToken]:
    specs = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        for match in _TOKEN_RE.finditer(line):
            word = match.group()
            specs.append({
                "str": word,
                "file": file,
                "linenr": lineno,
                "column": match.start() + 1,
                "isName": bool(re.match(r"[A-Za-z_]", word)),
                "isNumber": word.isdigit(),
            })
    return [MockToken(**spec) for spec in specs]


def _link(tokens: List[MockToken]) -> None:
    stack: List[MockToken] = []
    angles: List[MockToken] = []
    for tok in tokens:
        if tok.str in _BRACKETS:
            stack.append(tok)
        elif tok.str in _BRACKETS.values():
            opener = stack.pop()
            assert _BRACKETS[opener.str] == tok.str, f"unbalanced {tok!r}"
            opener.link, tok.link = tok, opener
        elif tok.str == "<" and tok.previous is not None and tok.previous.isName:
            angles.append(tok)
        elif tok.str == ">" and angles:
            opener = angles.pop()
            opener.link, tok.link = tok, opener
    assert not stack, f"unclosed {stack[-1]!r}"


def _scope_for(brace: MockToken) -> MockScope:
    prev = brace.previous
    scope = MockScope(bodyStart=brace, bodyEnd=brace.link, type="Unconditional")
    if prev is not None and prev.str == ")":
        head = prev.link.previous
        scope.type = _CONTROL.get(head.str if head else "", "Function")
        return scope
    if prev is not None and prev.str in ("else", "do", "try"):
        scope.type = prev.str.capitalize()
        return scope
    t = prev
    while t is not None and t.str not in (";", "{", "}"):
        if t.str in _AGGREGATES:
            keyword = t.str
            # enum class / enum struct
            if t.previous is not None and t.previous.str == "enum":
                keyword = "enum"
            scope.type = _AGGREGATES[keyword]
            name = t.next
            scope.className = name.str if name is not None and name.isName else ""
            break
        t = t.previous
    return scope


class MockConfiguration:
    """A ``cppcheckdata.Configuration`` built from source text."""

    def __init__(self, source: Source, file: str = "contract.h") -> None:
        parts = [(file, source)] if isinstance(source, str) else list(source)
        self.name = ""
        self.tokenlist: List[MockToken] = []
        for part_file, text in parts:
            self.tokenlist.extend(tokenize(text, part_file))
        for prev, nxt in zip(self.tokenlist, self.tokenlist[1:]):
            prev.next = nxt
            nxt.previous = prev
        _link(self.tokenlist)
        self.scopes: List[MockScope] = [MockScope(type="Global")]
        self.scopes.extend(_scope_for(t) for t in self.tokenlist if t.str == "{")
        self.functions: List[MockFunction] = []
        self.variables: List[MockVariable] = []

    def find(self, text: str, nth: int = 0, file: Optional[str] = None) -> MockToken:
        hits = [t for t in self.tokenlist
                if t.str == text and (file is None or t.file == file)]
        return hits[nth]

    def add_variable(self, name: str, type_len: int = 1, nth: int = 0,
                     **flags: Any) -> MockVariable:
        """Declare the *nth* ``name`` token a variable whose type is the
        *type_len* tokens in front of it."""
        name_tok = self.find(name, nth)
        end = name_tok.previous
        start = end
        for _ in range(type_len - 1):
            start = start.previous
        var = MockVariable(nameToken=name_tok, typeStartToken=start,
                           typeEndToken=end, **flags)
        name_tok.variable = var
        self.variables.append(var)
        return var

    def add_function(self, name: str, nth: int = 0) -> MockFunction:
        name_tok = self.find(name, nth)
        func = MockFunction(name=name, token=name_tok, tokenDef=name_tok)
        name_tok.function = func
        self.functions.append(func)
        return func

    def mark_macro(self, macro: str, first: MockToken, last: MockToken) -> None:
        t = first
        while t is not None:
            t.macroName = macro
            if t is last:
                break
            t = t.next


class MockDump:
    def __init__(self, configurations: Sequence[MockConfiguration]) -> None:
        self.configurations = list(configurations)


def mock_configuration(source: Source, file: str = "contract.h") -> MockConfiguration:
    return MockConfiguration(source, file)


# ---------------------------------------------------------------------------
# Event shorthands
# ---------------------------------------------------------------------------

def loc(line: int = 1, column: int = 1, file: str = "contract.h") -> SourceLocation:
    return SourceLocation(file=file, line=line, column=column)


def enter(kind: ScopeKind, name: str = "", line: int = 1) -> Enter:
    return Enter(kind, NodeInfo(name=name, location=loc(line)))


def leave(line: int = 1) -> Exit:
    return Exit(loc(line))


def var(name: str, type_spelling: Optional[str] = "uint64", line: int = 1,
        **kwargs: Any) -> DeclarationSeen:
    return DeclarationSeen(NodeInfo(
        name=name,
        location=loc(line),
        decl_kind=DeclarationKind.VARIABLE,
        type_spelling=type_spelling,
        **kwargs,
    ))


def decl(name: str, kind: DeclarationKind, line: int = 1) -> DeclarationSeen:
    return DeclarationSeen(NodeInfo(name=name, location=loc(line), decl_kind=kind))


def ref(qualifier: Optional[str], name: str, line: int = 1,
        macro: Optional[str] = None) -> NameReferenceSeen:
    return NameReferenceSeen(qualifier=qualifier, name=name, location=loc(line),
                             macro=macro)


def macro(name: str, line: int = 1) -> MacroInvocationSeen:
    return MacroInvocationSeen(name=name, location=loc(line))


def io_use(type_name: str, line: int = 1) -> IOTypeUseSeen:
    return IOTypeUseSeen(type_name=type_name, location=loc(line))


@pytest.fixture
def registry():
    return AllowListRegistry(additional_scope_prefixes=["MYCONTRACT"])
