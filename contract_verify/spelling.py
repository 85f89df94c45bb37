"""
contract_verify/spelling.py
═══════════════════════════

Canonical form of type spellings.

Every allow-list lookup compares exact strings, so the spellings coming out
of a parser (``const  uint8``, ``::ProposalDataV1< true >``,
``Array<uint8 ,4>``) are first rewritten into one canonical spelling:

  • leading global ``::`` dropped
  • storage/cv specifiers and elaborated-type keywords dropped
    (``const``, ``volatile``, ``mutable``, ``static``, ``constexpr``,
    ``inline``, ``struct``, ``class``, ``union``, ``enum``, ``typename``)
  • multi-word builtins joined by one space (``unsigned long long``)
  • segments joined by ``::`` with no surrounding space
  • template arguments rendered as ``<a, b>``
  • pointer / reference markers appended without space (``uint8*``)

The grammar is a Parsimonious PEG.

>>> canonical_spelling("const ::ProposalDataV1< true >")
'ProposalDataV1<true>'
"""

from __future__ import annotations

import functools
from typing import Any, List

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from contract_verify.errors import TypeSpellingError

SCOPE_SEPARATOR = "::"


# ═══════════════════════════════════════════════════════════════════
#  PART 1 - GRAMMAR
# ═══════════════════════════════════════════════════════════════════

TYPE_SPELLING_GRAMMAR = Grammar(r'''
    spelling        = _ global_scope? type_expr _

    global_scope    = "::" _
    type_expr       = specifier* type_name declarator*
    specifier       = specifier_kw _
    specifier_kw    = ~r"(const|volatile|mutable|static|constexpr|inline|struct|class|union|enum|typename)\b"

    type_name       = name_segment (_ "::" _ name_segment)*
    name_segment    = words _ template_args?
    words           = word (__ word)*
    word            = !specifier_kw identifier
    identifier      = ~r"[A-Za-z_][A-Za-z0-9_]*"

    template_args   = "<" _ arg_list? _ ">"
    arg_list        = template_arg (_ "," _ template_arg)*
    template_arg    = type_expr / literal
    literal         = ~r"-?[0-9][0-9A-Za-z_']*"

    declarator      = _ declarator_op
    declarator_op   = pointer / reference / specifier_kw
    pointer         = "*"
    reference       = ~r"&&?"

    _               = ~r"\s*"
    __              = ~r"\s+"
''')


# ═══════════════════════════════════════════════════════════════════
#  PART 2 - CANONICAL RENDERING
# ═══════════════════════════════════════════════════════════════════

class _CanonicalRenderer(NodeVisitor):
    """Render a parse tree of ``TYPE_SPELLING_GRAMMAR`` canonically."""

    grammar = TYPE_SPELLING_GRAMMAR

    def generic_visit(self, node: Node, visited_children: List[Any]) -> Any:
        return visited_children

    def visit_spelling(self, node, visited_children):
        _, _global, type_expr, _ = visited_children
        return type_expr

    def visit_type_expr(self, node, visited_children):
        _specifiers, type_name, declarators = visited_children
        return type_name + "".join(declarators)

    def visit_specifier_kw(self, node, visited_children):
        return ""

    def visit_type_name(self, node, visited_children):
        first, rest = visited_children
        segments = [first] + [item[3] for item in rest]
        return SCOPE_SEPARATOR.join(segments)

    def visit_name_segment(self, node, visited_children):
        words, _, template_args = visited_children
        return words + (template_args[0] if template_args else "")

    def visit_words(self, node, visited_children):
        first, rest = visited_children
        return " ".join([first] + [item[1] for item in rest])

    def visit_word(self, node, visited_children):
        _not_specifier, identifier = visited_children
        return identifier

    def visit_identifier(self, node, visited_children):
        return node.text

    def visit_template_args(self, node, visited_children):
        _lt, _, arg_list, _, _gt = visited_children
        args = arg_list[0] if arg_list else []
        return "<" + ", ".join(args) + ">"

    def visit_arg_list(self, node, visited_children):
        first, rest = visited_children
        return [first] + [item[3] for item in rest]

    def visit_template_arg(self, node, visited_children):
        return visited_children[0]

    def visit_literal(self, node, visited_children):
        return node.text

    def visit_declarator(self, node, visited_children):
        _, op = visited_children
        return op

    def visit_declarator_op(self, node, visited_children):
        return visited_children[0]

    def visit_pointer(self, node, visited_children):
        return "*"

    def visit_reference(self, node, visited_children):
        return node.text


_RENDERER = _CanonicalRenderer()


@functools.lru_cache(maxsize=4096)
def canonical_spelling(spelling: str) -> str:
    """
    Return the canonical form of *spelling*.

    Raises
    ------
    TypeSpellingError
        If the text is empty or not a type spelling the grammar accepts
        (e.g. ``decltype(x)`` or arithmetic in a template argument).
    """
    if not spelling or not spelling.strip():
        raise TypeSpellingError(spelling or "", "empty spelling")
    try:
        tree = TYPE_SPELLING_GRAMMAR.parse(spelling)
    except ParseError as exc:
        raise TypeSpellingError(spelling, str(exc)) from exc
    try:
        return _RENDERER.visit(tree)
    except VisitationError as exc:
        raise TypeSpellingError(spelling, str(exc)) from exc


def qualifier_head(qualifier: str) -> str:
    """
    First segment of a scope qualifier, without template arguments.

    ``QX::Order`` → ``QX``; ``::QPI`` → ``QPI``; ``Foo<int>::Bar`` → ``Foo``.
    The bare global qualifier (``::x``) yields the empty string.
    """
    text = qualifier.strip()
    if text.startswith(SCOPE_SEPARATOR):
        text = text[len(SCOPE_SEPARATOR):].lstrip()
    cut = len(text)
    for marker in (SCOPE_SEPARATOR, "<"):
        pos = text.find(marker)
        if pos != -1:
            cut = min(cut, pos)
    return text[:cut].strip()


def scoped_name(names: List[str], start: int = 0) -> str:
    """Join ``names[start:]`` with the scope separator."""
    return SCOPE_SEPARATOR.join(names[start:])


__all__ = [
    "SCOPE_SEPARATOR",
    "TYPE_SPELLING_GRAMMAR",
    "canonical_spelling",
    "qualifier_head",
    "scoped_name",
]
