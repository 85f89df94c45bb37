"""
contract_verify/dump_walker.py
══════════════════════════════

Turn a cppcheck dump ``Configuration`` into the event stream consumed by
:class:`~contract_verify.rules.DeclarationRuleEngine`.

The walker makes one pass over ``cfg.tokenlist`` in source order and keeps
a stack of pending frames, each closed by a known token:

    scope.bodyStart  '{'  → Enter(STRUCT/CLASS/NAMESPACE/BLOCK) ... bodyEnd '}'
    function name   '('   → Enter(FUNCTION_SIGNATURE)           ... link ')'
    template        '<'   → Enter(TEMPLATE_SPECIALIZATION)      ... link '>'
    typedef / using X =   → Enter(TYPEDEF)                      ... ';'

Declarations come from ``cfg.variables`` (keyed by name token), scope
qualifiers from ``A::B::name`` token chains, and macro invocations from
the ``macroName`` attribute cppcheck puts on expanded tokens.

Structure outside the analysed source file (included headers) is tracked
but not reported, so the stream describes exactly one module.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterator, List, Optional, Tuple

from contract_verify.events import (
    DeclarationKind,
    DeclarationSeen,
    Enter,
    Event,
    Exit,
    MacroInvocationSeen,
    NameReferenceSeen,
    NodeInfo,
    SourceLocation,
)
from contract_verify.scope import ScopeKind
from contract_verify.spelling import SCOPE_SEPARATOR

_log = logging.getLogger(__name__)

_SCOPE_KINDS: Dict[str, ScopeKind] = {
    "Struct": ScopeKind.STRUCT,
    "Union": ScopeKind.STRUCT,
    "Class": ScopeKind.CLASS,
    "Namespace": ScopeKind.NAMESPACE,
}

_BLOCK_SCOPE_TYPES = frozenset({
    "Function", "If", "Else", "For", "While", "Do", "Switch",
    "Unconditional", "Try", "Catch", "Lambda",
})

_DECL_SPECIFIERS = frozenset({
    "static", "constexpr", "const", "volatile", "inline", "mutable", "extern",
})


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 - TOKEN HELPERS
# ═════════════════════════════════════════════════════════════════════════

def _tok_str(tok: Any) -> str:
    return getattr(tok, "str", "") or ""


def _tok_file(tok: Any) -> str:
    return getattr(tok, "file", "") or ""


def _tok_loc(tok: Any) -> SourceLocation:
    return SourceLocation(
        file=_tok_file(tok),
        line=getattr(tok, "linenr", 0) or 0,
        column=getattr(tok, "column", 0) or 0,
    )


def _tok_macro(tok: Any) -> Optional[str]:
    return getattr(tok, "macroName", None) or None


def _is_name(tok: Any) -> bool:
    if tok is None:
        return False
    if getattr(tok, "isName", None) is not None:
        return bool(tok.isName)
    text = _tok_str(tok)
    return bool(text) and (text[0].isalpha() or text[0] == "_")


def _same_file(a: str, b: str) -> bool:
    if not a or not b:
        return False
    if os.path.normpath(a) == os.path.normpath(b):
        return True
    return os.path.basename(a) == os.path.basename(b)


def _statement_end(tok: Any) -> Any:
    """The ``;`` ending the statement that starts at *tok*, skipping brackets."""
    t = getattr(tok, "next", None)
    while t is not None:
        text = _tok_str(t)
        if text == ";":
            return t
        if text in ("{", "(", "[") and getattr(t, "link", None) is not None:
            t = t.link
        t = getattr(t, "next", None)
    return None


def _tokens_text(start: Any, end: Any) -> Optional[str]:
    """Space-joined token text from *start* to *end* inclusive."""
    parts: List[str] = []
    t = start
    while t is not None:
        parts.append(_tok_str(t))
        if t is end:
            return " ".join(parts)
        t = getattr(t, "next", None)
    return None


def _type_spelling(var: Any) -> Optional[str]:
    start = getattr(var, "typeStartToken", None)
    end = getattr(var, "typeEndToken", None)
    if start is None or end is None:
        return None
    return _tokens_text(start, end)


def _has_specifier(var: Any, keyword: str) -> bool:
    t = getattr(getattr(var, "typeStartToken", None), "previous", None)
    while t is not None and _tok_str(t) in _DECL_SPECIFIERS:
        if _tok_str(t) == keyword:
            return True
        t = getattr(t, "previous", None)
    return False


def _enum_name_token(scope: Any) -> Any:
    """Name token of ``enum [class] NAME [: base] {``; ``None`` if anonymous."""
    t = getattr(getattr(scope, "bodyStart", None), "previous", None)
    while t is not None and _tok_str(t) not in (";", "{", "}"):
        if _tok_str(t) == "enum":
            name = getattr(t, "next", None)
            if _tok_str(name) in ("class", "struct"):
                name = getattr(name, "next", None)
            if not _is_name(name):
                return None
            class_name = getattr(scope, "className", "") or ""
            if class_name and class_name != _tok_str(name):
                return None
            return name
        t = getattr(t, "previous", None)
    return None


def qualified_chain(tok: Any) -> Tuple[List[str], Any]:
    """
    Collect the segments of ``A::B<T>::name`` starting at name token *tok*.

    Returns ``(segments, last_token)``; the last segment is the referenced
    name, the others form the qualifier.
    """
    segments: List[str] = []
    t = tok
    last = tok
    while _is_name(t):
        seg_end = t
        nxt = getattr(t, "next", None)
        if _tok_str(nxt) == "<" and getattr(nxt, "link", None) is not None:
            after = getattr(nxt.link, "next", None)
            if _tok_str(after) == SCOPE_SEPARATOR:
                seg_end, nxt = nxt.link, after
        segments.append(_tokens_text(t, seg_end) or _tok_str(t))
        last = seg_end
        if _tok_str(nxt) != SCOPE_SEPARATOR:
            break
        t = getattr(nxt, "next", None)
        if t is not None and not _is_name(t):
            # A::~A, A::operator=
            segments.append(_tok_str(t))
            last = t
            break
    return segments, last


def contract_name_for(path: str) -> str:
    """``/src/contracts/Qx.h.dump`` → ``Qx``."""
    name = os.path.basename(path)
    while True:
        stem, ext = os.path.splitext(name)
        if not ext:
            return stem
        name = stem


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 - WALKER
# ═════════════════════════════════════════════════════════════════════════

class DumpWalker:
    """
    Event producer for one cppcheck configuration.

    Parameters
    ----------
    cfg         : ``cppcheckdata.Configuration``
    source_file : path of the contract source; tokens from other files
                  (headers) produce no events.  ``None`` reports everything.
    """

    def __init__(self, cfg: Any, source_file: Optional[str] = None) -> None:
        self.cfg = cfg
        self.source_file = source_file
        self._scope_starts: Dict[int, Any] = {}
        self._variables: Dict[int, Any] = {}
        self._function_names: Dict[int, Any] = {}
        self._enum_names: Dict[int, Any] = {}
        self._index()

    def _index(self) -> None:
        for scope in getattr(self.cfg, "scopes", []) or []:
            start = getattr(scope, "bodyStart", None)
            if start is not None and getattr(scope, "type", "") != "Global":
                self._scope_starts[id(start)] = scope
            if getattr(scope, "type", "") == "Enum":
                name_tok = _enum_name_token(scope)
                if name_tok is not None:
                    self._enum_names[id(name_tok)] = scope
        for var in getattr(self.cfg, "variables", []) or []:
            name_tok = getattr(var, "nameToken", None)
            if name_tok is not None:
                self._variables[id(name_tok)] = var
        for func in getattr(self.cfg, "functions", []) or []:
            for attr in ("tokenDef", "token"):
                name_tok = getattr(func, attr, None)
                if name_tok is not None:
                    self._function_names[id(name_tok)] = func

    def _in_module(self, tok: Any) -> bool:
        if self.source_file is None:
            return True
        return _same_file(_tok_file(tok), self.source_file)

    # ── main loop ────────────────────────────────────────────────────

    def events(self) -> Iterator[Event]:
        # (closing token, emitted an Enter)
        pending: List[Tuple[Any, bool]] = []
        last_macro: Optional[Tuple[str, str, int]] = None

        for tok in getattr(self.cfg, "tokenlist", []) or []:
            while pending and pending[-1][0] is tok:
                _, emitted = pending.pop()
                if emitted:
                    yield Exit(_tok_loc(tok))

            in_module = self._in_module(tok)
            macro = _tok_macro(tok)

            if in_module and macro:
                key = (macro, _tok_file(tok), getattr(tok, "linenr", 0) or 0)
                if key != last_macro:
                    last_macro = key
                    yield MacroInvocationSeen(name=macro, location=_tok_loc(tok))
            elif not macro:
                last_macro = None

            opened = self._open_frame(tok, in_module)
            if opened is not None:
                closer, enter = opened
                if enter is not None:
                    yield enter
                pending.append((closer, enter is not None))
                continue

            if in_module:
                yield from self._token_events(tok, macro)

        # unclosed frames are left to ScopeTracker.finish()
        if pending:
            _log.debug("%d frame(s) still open at end of token list", len(pending))

    def _open_frame(self, tok: Any, in_module: bool) -> Optional[Tuple[Any, Optional[Enter]]]:
        text = _tok_str(tok)

        scope = self._scope_starts.get(id(tok))
        if scope is not None:
            end = getattr(scope, "bodyEnd", None)
            if end is None:
                return None
            scope_type = getattr(scope, "type", "")
            name = getattr(scope, "className", "") or ""
            if scope_type == "Enum":
                return end, None
            kind = _SCOPE_KINDS.get(scope_type)
            if kind is None and scope_type in _BLOCK_SCOPE_TYPES:
                kind = ScopeKind.BLOCK
            if kind is None:
                _log.debug("Untracked scope type %r at %s", scope_type, _tok_loc(tok))
                return None
            node = NodeInfo(name=name if kind.is_named else "", location=_tok_loc(tok))
            return end, (Enter(kind, node) if in_module else None)

        if text == "(" and id(getattr(tok, "previous", None)) in self._function_names:
            end = getattr(tok, "link", None)
            if end is None:
                return None
            return end, self._enter(ScopeKind.FUNCTION_SIGNATURE, tok, in_module)

        if text == "<" and _tok_str(getattr(tok, "previous", None)) == "template":
            end = getattr(tok, "link", None)
            if end is None:
                return None
            return end, self._enter(ScopeKind.TEMPLATE_SPECIALIZATION, tok, in_module)

        if text == "typedef" or (
            text == "using"
            and _is_name(getattr(tok, "next", None))
            and _tok_str(getattr(tok.next, "next", None)) == "="
        ):
            end = _statement_end(tok)
            if end is None:
                return None
            return end, self._enter(ScopeKind.TYPEDEF, tok, in_module)

        return None

    @staticmethod
    def _enter(kind: ScopeKind, tok: Any, in_module: bool) -> Optional[Enter]:
        if not in_module:
            return None
        return Enter(kind, NodeInfo(location=_tok_loc(tok)))

    def _token_events(self, tok: Any, macro: Optional[str]) -> Iterator[Event]:
        if id(tok) in self._enum_names:
            yield DeclarationSeen(NodeInfo(
                name=_tok_str(tok),
                location=_tok_loc(tok),
                decl_kind=DeclarationKind.TYPE,
                macro=macro,
            ))

        var = self._variables.get(id(tok))
        if var is not None:
            yield DeclarationSeen(NodeInfo(
                name=_tok_str(tok),
                location=_tok_loc(tok),
                decl_kind=DeclarationKind.VARIABLE,
                type_spelling=_type_spelling(var),
                is_static=bool(getattr(var, "isStatic", False)),
                is_constant=bool(getattr(var, "isConst", False))
                or _has_specifier(var, "constexpr"),
                macro=macro,
            ))
        elif id(tok) in self._function_names:
            yield DeclarationSeen(NodeInfo(
                name=_tok_str(tok),
                location=_tok_loc(tok),
                decl_kind=DeclarationKind.FUNCTION,
                macro=macro,
            ))

        reference = self._reference_at(tok, macro)
        if reference is not None:
            yield reference

    def _reference_at(self, tok: Any, macro: Optional[str]) -> Optional[NameReferenceSeen]:
        prev = getattr(tok, "previous", None)
        text = _tok_str(tok)

        # ::name, ::A::name
        if text == SCOPE_SEPARATOR:
            if _is_name(prev) or _tok_str(prev) == ">":
                return None
            segments, _ = qualified_chain(getattr(tok, "next", None))
            if not segments:
                return None
            qualifier = SCOPE_SEPARATOR + SCOPE_SEPARATOR.join(segments[:-1]) \
                if len(segments) > 1 else ""
            return NameReferenceSeen(qualifier=qualifier, name=segments[-1],
                                     location=_tok_loc(tok), macro=macro)

        if not _is_name(tok) or _tok_str(prev) == SCOPE_SEPARATOR:
            return None
        segments, _ = qualified_chain(tok)
        if len(segments) < 2:
            return None
        return NameReferenceSeen(
            qualifier=SCOPE_SEPARATOR.join(segments[:-1]),
            name=segments[-1],
            location=_tok_loc(tok),
            macro=macro,
        )


def walk_configuration(cfg: Any, source_file: Optional[str] = None) -> Iterator[Event]:
    """Shorthand for ``DumpWalker(cfg, source_file).events()``."""
    return DumpWalker(cfg, source_file).events()


__all__ = ["DumpWalker", "walk_configuration", "contract_name_for", "qualified_chain"]
