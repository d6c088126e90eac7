"""
Query text parser for Serveradmin filters.

Grammar (informal):
    query    = pair (WS pair)*
    pair     = key "=" value
    value    = quoted | integer | float | boolean | call | text
    call     = name "(" [value (WS value)*] ")"
    quoted   = '"' chars '"' | "'" chars "'"

Pairs and call arguments are separated by whitespace that is neither
inside parentheses nor inside quotes. Operator names are matched
case-insensitively against :data:`adminapi.filters.FILTER_OPERATORS`.

Examples:
    hostname=12345                        -> {"hostname": 12345}
    hostname=regexp(foo.*) game_world=any(1 2 3)
                                          -> {"hostname": Regexp("foo.*"),
                                              "game_world": Any(1, 2, 3)}
    hostname=Not(Empty())                 -> {"hostname": Not(Empty())}
    description="quoted string"           -> {"description": "quoted string"}
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from adminapi.exceptions import (
    EmptyQueryError,
    InvalidExpressionError,
    UnknownOperatorError,
    UnmatchedParenError,
    UnmatchedQuoteError,
)
from adminapi.filters import Filter, FilterNode, Filters, fold, make_args, resolve_operator

_QUOTES = ("'", '"')
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
# Characters that force a string to be quoted when rendered
_SPECIAL_RE = re.compile(r"""[\s'"()]""")
_KEY_FORBIDDEN_RE = re.compile(r"""[\s'"()=]""")

Span = tuple[int, int]


def _scan(text: str) -> tuple[list[Span], dict[int, int], dict[int, list[Span]]]:
    """
    Scan *text* once for pieces, parentheses and quotes.

    Returns the ``(start, end)`` spans of the top-level pieces, the index of
    the matching ``)`` for every ``(`` outside quotes, and for every such
    ``(`` the spans of the pieces between it and its ``)``.
    """
    matches: dict[int, int] = {}
    groups: dict[int, list[Span]] = {}
    # [index of "(", spans so far, start of the current piece]
    frames: list[list] = [[-1, [], 0]]
    in_quote: str | None = None

    for i, char in enumerate(text):
        if char in _QUOTES and (i == 0 or text[i - 1] != "\\"):
            if in_quote is None:
                in_quote = char
            elif in_quote == char:
                in_quote = None
        elif in_quote is not None:
            continue
        elif char == "(":
            frames.append([i, [], i + 1])
        elif char == ")":
            if len(frames) == 1:
                raise UnmatchedParenError("Unmatched ) found", fragment=text)
            opening, spans, start = frames.pop()
            if start < i:
                spans.append((start, i))
            matches[opening] = i
            groups[opening] = spans
        elif char.isspace():
            frame = frames[-1]
            if frame[2] < i:
                frame[1].append((frame[2], i))
            frame[2] = i + 1

    if len(frames) > 1:
        raise UnmatchedParenError("Unmatched ( found", fragment=text)
    if in_quote is not None:
        raise UnmatchedQuoteError(f"Unmatched {in_quote} found", fragment=text)
    _, top, start = frames[0]
    if start < len(text):
        top.append((start, len(text)))
    return top, matches, groups


def split_pairs(text: str) -> list[str]:
    """
    Split *text* at whitespace that is outside parentheses and quotes.

    A quote character opens or closes a quoted span unless the character
    before it is a backslash. Empty pieces are dropped.

    Raises:
        UnmatchedParenError: On a ``)`` without ``(`` or an unclosed ``(``.
        UnmatchedQuoteError: When a quoted span is still open at the end.
    """
    top, _, _ = _scan(text)
    return [text[start:end] for start, end in top]


def _parse_number(text: str) -> int | float | None:
    if _INTEGER_RE.fullmatch(text):
        return int(text)
    # float() would accept digit separators; the query language does not
    if "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    # nan, inf and overflowing exponents stay text; JSON has no such numbers
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class _Call:
    """An operator call found at the start of a value: canonical name, ``(`` index."""

    name: str
    paren: int


def _parse_atom(text: str) -> FilterNode | _Call:
    if len(text) >= 2 and text[0] in _QUOTES and text[-1] == text[0]:
        return text[1:-1]

    number = _parse_number(text)
    if number is not None:
        return number

    if text == "true":
        return True
    if text == "false":
        return False

    paren = text.find("(")
    if paren > 0 and text.endswith(")"):
        name = text[:paren].strip()
        canonical = resolve_operator(name)
        if canonical is None:
            raise UnknownOperatorError(
                f"Invalid filter function: {name}", operator=name, fragment=text
            )
        return _Call(canonical, paren)

    return text


def parse_value(text: str) -> FilterNode:
    """
    Parse the right-hand side of a ``key=value`` pair.

    Tried in order: quoted string, integer, float, boolean, operator call,
    and finally the plain text as a string. Non-finite numbers (``nan``,
    ``inf``) are kept as text.

    Operator calls are parsed in one pass over the text with an explicit
    stack, so nesting depth is limited only by the input length.

    Raises:
        UnknownOperatorError: For ``name(...)`` with an unknown name.
        UnmatchedParenError: For unbalanced call arguments.
        UnmatchedQuoteError: For a quoted argument that is never closed.
    """
    text = text.strip()
    atom = _parse_atom(text)
    if not isinstance(atom, _Call):
        return atom

    body = text[atom.paren + 1:-1]
    top, matches, groups = _scan(body)

    # (canonical name, argument spans, parsed arguments)
    stack: list[tuple[str, list[Span], list[FilterNode]]] = [(atom.name, top, [])]
    while True:
        name, spans, arguments = stack[-1]
        if len(arguments) < len(spans):
            start, end = spans[len(arguments)]
            child = _parse_atom(body[start:end])
            if not isinstance(child, _Call):
                arguments.append(child)
                continue
            paren = start + child.paren
            # "f(a)(b)": the call's ")" is not the last character
            if matches[paren] != end - 1:
                raise UnmatchedParenError(
                    "Unmatched ) found", fragment=body[paren + 1:end - 1]
                )
            stack.append((child.name, groups[paren], []))
            continue

        stack.pop()
        node = Filter(name, make_args(arguments))
        if not stack:
            return node
        stack[-1][2].append(node)


def parse_query(query: str) -> Filters:
    """
    Parse a query string into :class:`~adminapi.filters.Filters`.

    Args:
        query: Whitespace-separated ``attribute=value`` pairs.

    Returns:
        The filters, in the order the attributes appear. A repeated
        attribute keeps its first position and its last value.

    Raises:
        EmptyQueryError: If the query is blank.
        InvalidExpressionError: If a pair has no ``=`` or an empty key.
        UnmatchedParenError, UnmatchedQuoteError, UnknownOperatorError:
            See :func:`split_pairs` and :func:`parse_value`.

    Examples:
        >>> parse_query("hostname=foo id=123 active=false")
        Filters({'hostname': 'foo', 'id': 123, 'active': False})

        >>> parse_query("game_world=Any(1 2 3)")
        Filters({'game_world': Any(1, 2, 3)})
    """
    query = query.strip()
    if not query:
        raise EmptyQueryError()

    filters = Filters()
    for part in split_pairs(query):
        part = part.strip()
        if not part:
            continue
        key, sep, value_text = part.partition("=")
        key = key.strip()
        if not sep or not key:
            raise InvalidExpressionError(f"Invalid expression: {part}", fragment=part)
        filters[key] = parse_value(value_text)
    return filters


# =============================================================================
# RENDERING
# =============================================================================


def _render_string(value: str) -> str:
    if value and not _SPECIAL_RE.search(value):
        parsed = parse_value(value)
        if isinstance(parsed, str) and parsed == value:
            return value

    if '"' not in value:
        quote = '"'
    elif "'" not in value:
        quote = "'"
    else:
        raise ValueError(f"String cannot be written as query text: {value!r}")
    if value.endswith("\\"):
        raise ValueError(f"String cannot be written as query text: {value!r}")
    return f"{quote}{value}{quote}"


def _render_literal(value: FilterNode) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Number cannot be written as query text: {value!r}")
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return _render_string(value)
    raise TypeError(f"Not a filter value: {value!r}")


def render_value(node: FilterNode) -> str:
    """Render a literal or filter node as query text."""
    return fold(
        node,
        _render_literal,
        lambda call, arguments: f"{call.name}({' '.join(arguments)})",
    )


def render_query(filters: Filters) -> str:
    """Render filters as ``key=value`` pairs joined by single spaces."""
    pairs = []
    for key, value in filters.items():
        if not key or _KEY_FORBIDDEN_RE.search(key):
            raise ValueError(f"Attribute name cannot be written as query text: {key!r}")
        pairs.append(f"{key}={render_value(value)}")
    return " ".join(pairs)
