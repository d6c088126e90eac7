"""
adminapi - Python client for the Serveradmin inventory service

This package provides:
- A query language for object filters, e.g. ``hostname=regexp(web.*)``
- Combinators that build the same filters in code
- A signed HTTP client and lazy ``Query`` objects
- The ``adminapi`` command-line tool
"""

__version__ = "4.9.0"

from adminapi.exceptions import (  # noqa: E402
    AdminapiError,
    EmptyQueryError,
    InvalidExpressionError,
    QueryParseError,
    UnknownOperatorError,
    UnmatchedParenError,
    UnmatchedQuoteError,
)
from adminapi.filters import (  # noqa: E402
    CANONICAL_OPERATORS,
    Empty,
    Filter,
    FilterNode,
    Filters,
    Multiple,
    Single,
    all_,
    any_,
    contained_by,
    contained_only_by,
    contains,
    empty,
    greater_than,
    greater_than_or_equals,
    less_than,
    less_than_or_equals,
    make_filter,
    not_,
    overlaps,
    regexp,
    starts_with,
)
from adminapi.parse import parse_query  # noqa: E402
from adminapi.query import Query, new_object  # noqa: E402

__all__ = [
    "AdminapiError",
    "CANONICAL_OPERATORS",
    "Empty",
    "EmptyQueryError",
    "Filter",
    "FilterNode",
    "Filters",
    "InvalidExpressionError",
    "Multiple",
    "Query",
    "QueryParseError",
    "Single",
    "UnknownOperatorError",
    "UnmatchedParenError",
    "UnmatchedQuoteError",
    "all_",
    "any_",
    "contained_by",
    "contained_only_by",
    "contains",
    "empty",
    "greater_than",
    "greater_than_or_equals",
    "less_than",
    "less_than_or_equals",
    "make_filter",
    "new_object",
    "not_",
    "overlaps",
    "parse_query",
    "regexp",
    "starts_with",
]
