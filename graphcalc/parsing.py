"""Text parser for formulas, variable lists and range texts.

The grammar is a compact C-like infix language built with :mod:`pyparsing`.
One input field holds any number of statements separated by ``;`` or line
breaks; ``//`` starts a comment that runs to the end of the line. Each
statement may be prefixed by attributes (``@red``, ``@2``, ``@"label"``)
that become rendering hints on the statement's root node.

Precedence, lowest first::

    :            axis prefix        x: -2..2
    =            assignment         r = sqrt(x^2 + y^2)     (right assoc)
    ? :          ternary            x < 0 ? -x : x          (right assoc)
    ??           NaN/inf fallback
    || or        logical or         (both sides always evaluated)
    xor          logical xor
    && and       logical and        (both sides always evaluated)
    |            bitwise or
    &            bitwise and
    == !=        equality
    in clamp     range test / clamp x in (1, 5)
    < > <= >=    comparison
    ..           range              -10..10
    << >>        shifts
    + -          additive
    * / % mod    multiplicative
    - + ! ~      prefix             (+x is abs(x))
    ^ **         power              (right assoc, 2^-1 allowed)

Examples
--------
>>> [str(n) for n in parse_exprs("Formula", "x^2 + 1; sin(x)")]
['(x ^ 2) + 1', 'sin(x)']
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable

import pyparsing as pp

from .errors import ParseError, SourceSpan
from .expression import Call, Identifier, Literal, Node, with_attrs

__all__ = ["parse_expr", "parse_exprs", "split_statements"]

_OPERATOR_ALIASES = {
    "**": "^",
    "and": "&&",
    "or": "||",
    "xor": "^^",
}


def _op_name(token: str) -> str:
    return _OPERATOR_ALIASES.get(token, token)


def _fold_left(s: str, loc: int, toks: pp.ParseResults) -> Node:
    items = toks[0]
    node = items[0]
    for i in range(1, len(items), 2):
        node = Call(_op_name(items[i]), (node, items[i + 1]), span=SourceSpan(loc, loc + 1))
    return node


def _fold_right(s: str, loc: int, toks: pp.ParseResults) -> Node:
    items = toks[0]
    node = items[-1]
    for i in range(len(items) - 2, 0, -2):
        node = Call(_op_name(items[i]), (items[i - 1], node), span=SourceSpan(loc, loc + 1))
    return node


def _ternary(s: str, loc: int, toks: pp.ParseResults) -> Node:
    items = toks[0]
    node = items[-1]
    # items: c ? a : b [? ...]; nested ternaries arrive already grouped
    for i in range(len(items) - 5, -1, -4):
        node = Call("?", (items[i], items[i + 2], node), span=SourceSpan(loc, loc + 1))
    return node


def _action(build: Callable[[str, int, pp.ParseResults], Any]) -> Callable[[str, int, pp.ParseResults], Any]:
    """Wrap a node builder so it always returns a single token."""

    def _wrapped(s: str, loc: int, toks: pp.ParseResults) -> Any:
        return [build(s, loc, toks)]

    return _wrapped


def _make_number(s: str, loc: int, toks: pp.ParseResults) -> Node:
    return Literal(float(toks[0]), span=SourceSpan(loc, loc + len(toks[0])))


def _make_string(s: str, loc: int, toks: pp.ParseResults) -> Node:
    return Literal(str(toks[0]), span=SourceSpan(loc, loc + 1))


def _make_identifier(s: str, loc: int, toks: pp.ParseResults) -> Node:
    return Identifier(str(toks[0]), span=SourceSpan(loc, loc + len(toks[0])))


def _make_call(s: str, loc: int, toks: pp.ParseResults) -> Node:
    name, *args = toks
    return Call(str(name), tuple(args), span=SourceSpan(loc, loc + len(name)))


def _make_parens(s: str, loc: int, toks: pp.ParseResults) -> Node:
    if len(toks) == 1:
        return toks[0]
    return Call("#tuple", tuple(toks), span=SourceSpan(loc, loc + 1))


def _make_prefix(s: str, loc: int, toks: pp.ParseResults) -> Node:
    op, operand = toks
    return Call(str(op), (operand,), span=SourceSpan(loc, loc + 1))


def _make_power(s: str, loc: int, toks: pp.ParseResults) -> Node:
    if len(toks) == 1:
        return toks[0]
    base, op, exponent = toks
    return Call(_op_name(op), (base, exponent), span=SourceSpan(loc, loc + 1))


def _make_statement(s: str, loc: int, toks: pp.ParseResults) -> Node:
    *attrs, node = toks
    if attrs:
        return with_attrs(node, tuple(attrs))
    return node


@lru_cache(maxsize=1)
def _grammar() -> pp.ParserElement:
    """Build (once) the statement grammar."""
    pp.ParserElement.enable_packrat()

    LPAR, RPAR, COMMA = map(pp.Suppress, "(),")

    number = pp.Regex(r"(?:\d+(?:\.(?!\.)\d*)?|\.\d+)(?:[eE][+-]?\d+)?").set_name("number")
    number.set_parse_action(_action(_make_number))

    string = pp.QuotedString('"', esc_char="\\").set_name("string")
    string.set_parse_action(_action(_make_string))

    reserved = pp.MatchFirst(pp.Keyword(w) for w in ("and", "or", "xor", "in", "clamp", "mod"))
    name = pp.Regex(r"[A-Za-z_][A-Za-z0-9_]*").set_name("identifier")
    identifier = (~reserved + name.copy()).set_name("identifier")
    identifier.set_parse_action(_action(_make_identifier))

    expr = pp.Forward().set_name("expression")

    call = (name + LPAR + pp.Optional(pp.DelimitedList(expr)) + RPAR).set_name("function call")
    call.set_parse_action(_action(_make_call))

    parens = (LPAR + pp.DelimitedList(expr) + RPAR).set_name("parenthesized expression")
    parens.set_parse_action(_action(_make_parens))

    atom = number | call | identifier | parens | string

    factor = pp.Forward().set_name("operand")
    power = atom + pp.Optional(pp.Regex(r"\*\*|\^") + factor)
    power.set_parse_action(_action(_make_power))
    prefix = pp.Regex(r"[-+~]|!(?!=)") + factor
    prefix.set_parse_action(_action(_make_prefix))
    factor <<= prefix | power

    L, R = pp.OpAssoc.LEFT, pp.OpAssoc.RIGHT
    fold_left, fold_right = _action(_fold_left), _action(_fold_right)
    expr <<= pp.infix_notation(
        factor,
        [
            (pp.Regex(r"\*(?!\*)|/(?!/)|%") | pp.Keyword("mod"), 2, L, fold_left),
            (pp.Regex(r"[+-]"), 2, L, fold_left),
            (pp.Regex(r"<<|>>"), 2, L, fold_left),
            (pp.Literal(".."), 2, L, fold_left),
            (pp.Regex(r"<=|>=|<(?![<=])|>(?![>=])"), 2, L, fold_left),
            (pp.Keyword("in") | pp.Keyword("clamp"), 2, L, fold_left),
            (pp.Regex(r"==|!="), 2, L, fold_left),
            (pp.Regex(r"&(?!&)"), 2, L, fold_left),
            (pp.Regex(r"\|(?!\|)"), 2, L, fold_left),
            (pp.Literal("&&") | pp.Keyword("and"), 2, L, fold_left),
            (pp.Keyword("xor"), 2, L, fold_left),
            (pp.Literal("||") | pp.Keyword("or"), 2, L, fold_left),
            (pp.Literal("??"), 2, L, fold_left),
            ((pp.Regex(r"\?(?!\?)"), pp.Literal(":")), 3, R, _action(_ternary)),
            (pp.Regex(r"=(?!=)"), 2, R, fold_right),
            (pp.Literal(":"), 2, L, fold_left),
        ],
        lpar=pp.Suppress("("),
        rpar=pp.Suppress(")"),
    )

    attribute = pp.Suppress("@") + (number | string | name.copy().set_parse_action(_action(_make_identifier)))
    statement = pp.ZeroOrMore(attribute) + expr
    statement.set_parse_action(_action(_make_statement))
    return statement + pp.StringEnd()


def _blank(s: str, loc: int, toks: pp.ParseResults) -> str:
    return " " * len(toks[0])


@lru_cache(maxsize=1)
def _statement_scanner() -> pp.ParserElement:
    """Build (once) the scanner that yields the raw text of each statement.

    A statement runs up to the next ``;`` or line break. Quoted strings are
    taken whole, so separators and ``//`` inside them are kept; comments
    become spaces so that offsets stay aligned with the source.
    """
    comment = pp.dbl_slash_comment.copy().set_parse_action(_blank)
    quoted = pp.QuotedString('"', esc_char="\\", unquote_results=False)
    plain = pp.Regex(r'[^";\n/]+|/')
    # An unterminated quote stays in the statement and fails to parse there.
    stray_quote = pp.Literal('"')
    return pp.Combine(pp.OneOrMore(comment | quoted | plain | stray_quote)).set_name("statement")


def split_statements(text: str) -> list[tuple[int, str]]:
    """Split ``text`` into ``(offset, statement)`` pairs.

    Statements are separated by ``;`` or line breaks outside of double-quoted
    strings, and ``//`` comments are blanked out. Blank statements are
    dropped. Offsets index into the original ``text``.
    """
    return [
        (start, toks[0])
        for toks, start, _ in _statement_scanner().scan_string(text)
        if toks[0].strip()
    ]


def parse_exprs(field_name: str, text: str) -> list[Node]:
    """Parse every statement of one input field.

    Parameters
    ----------
    field_name : str
        Field label used as the error-message prefix.
    text : str
        Raw field text.

    Returns
    -------
    list[Node]
        One tree per statement, in source order.

    Raises
    ------
    ParseError
        On the first statement that does not match the grammar. The message
        ends with the offending line and a caret under the failing column.
    """
    grammar = _grammar()
    nodes: list[Node] = []
    for offset, piece in split_statements(text):
        # Leading padding keeps parse locations absolute within ``text``.
        padded = " " * offset + piece
        try:
            nodes.append(grammar.parse_string(padded, parse_all=True)[0])
        except pp.ParseBaseException as exc:
            loc = max(exc.loc, offset + len(piece) - len(piece.lstrip()))
            raise ParseError(field_name, exc.msg, SourceSpan(loc, loc + 1), text) from exc
    return nodes


def parse_expr(text: str, field_name: str = "Formula") -> Node:
    """Parse exactly one statement."""
    nodes = parse_exprs(field_name, text)
    if len(nodes) != 1:
        raise ParseError(field_name, f"Expected one expression, found {len(nodes)}", None, text)
    return nodes[0]
