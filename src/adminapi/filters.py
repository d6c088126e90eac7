"""
Filter model for Serveradmin queries.

A filter value is either a literal scalar (``int``, ``float``, ``bool``,
``str``) or a :class:`Filter` node: a canonical operator name plus its
arguments. The argument payload is one of :class:`Empty`, :class:`Single`
or :class:`Multiple`, chosen purely by the number of arguments.

Nodes are built either by :func:`adminapi.parse.parse_query` or by the
combinators below; both produce equal structures::

    >>> parse_query("hostname=not(empty())")["hostname"] == not_(empty())
    True

Wire encoding (what the service receives)::

    Filter("Empty", Empty())               -> {"Empty": []}
    Filter("Not", Single(1))               -> {"Not": 1}
    Filter("Any", Multiple((1, 2)))        -> {"Any": [1, 2]}
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypeVar, Union

from adminapi.exceptions import PayloadError

Scalar = Union[int, float, bool, str]
FilterNode = Union[Scalar, "Filter"]
T = TypeVar("T")


# =============================================================================
# OPERATOR REGISTRY
# =============================================================================

CANONICAL_OPERATORS: tuple[str, ...] = (
    "Any",
    "All",
    "ContainedBy",
    "ContainedOnlyBy",
    "Contains",
    "Empty",
    "GreaterThan",
    "GreaterThanOrEquals",
    "LessThan",
    "LessThanOrEquals",
    "Not",
    "Overlaps",
    "Regexp",
    "StartsWith",
)

# Lowercased alias -> canonical name
FILTER_OPERATORS: Mapping[str, str] = MappingProxyType(
    {name.lower(): name for name in CANONICAL_OPERATORS}
)


def resolve_operator(name: str) -> str | None:
    """Return the canonical spelling of *name*, or None if it is unknown."""
    return FILTER_OPERATORS.get(name.strip().lower())


# =============================================================================
# AST NODES
# =============================================================================


def _literal_key(value: Any) -> tuple[str, Any]:
    # NaN never equals itself; compare it by name
    if isinstance(value, float) and math.isnan(value):
        return ("float", "nan")
    return (type(value).__name__, value)


def _structure(node: Any) -> tuple[Any, ...]:
    """Comparison key that keeps ``True``, ``1`` and ``1.0`` apart.

    The key is flat (the tree in pre-order, each operator tagged with its
    argument count), so comparing and hashing deeply nested filters
    needs no recursion.
    """
    key: list[Any] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Filter):
            arguments = current.arguments
            key.append(("filter", current.name, len(arguments)))
            stack.extend(reversed(arguments))
        else:
            key.append(_literal_key(current))
    return tuple(key)


def fold(
    node: FilterNode,
    leaf: Callable[[Any], T],
    branch: Callable[[Filter, list[T]], T],
) -> T:
    """
    Reduce a filter tree bottom-up without recursion.

    *leaf* maps each literal; *branch* maps a :class:`Filter` together with
    the already reduced values of its arguments, in order.
    """
    if not isinstance(node, Filter):
        return leaf(node)
    stack: list[tuple[Filter, list[T]]] = [(node, [])]
    while True:
        current, reduced = stack[-1]
        arguments = current.arguments
        if len(reduced) < len(arguments):
            child = arguments[len(reduced)]
            if isinstance(child, Filter):
                stack.append((child, []))
            else:
                reduced.append(leaf(child))
            continue
        stack.pop()
        result = branch(current, reduced)
        if not stack:
            return result
        stack[-1][1].append(result)


def _encode_literal(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        raise PayloadError(
            "Filter values must be finite numbers", details={"value": repr(value)}
        )
    if isinstance(value, (bool, int, float, str)):
        return value
    raise TypeError(f"Not a filter value: {value!r}")


def _encode_filter(node: Filter, arguments: list[Any]) -> dict[str, Any]:
    if isinstance(node.args, Single):
        return {node.name: arguments[0]}
    return {node.name: arguments}


def encode_value(node: FilterNode) -> Any:
    """Encode a literal or filter node to its JSON-compatible wire form.

    Raises:
        PayloadError: For NaN or infinite floats, which JSON cannot carry.
        TypeError: For values that are neither literals nor filter nodes.
    """
    return fold(node, _encode_literal, _encode_filter)


@dataclass(frozen=True, eq=False)
class Empty:
    """No arguments, as in ``Empty()``."""

    @property
    def values(self) -> tuple[FilterNode, ...]:
        return ()

    def to_wire(self) -> list[Any]:
        return []

    def _structure(self) -> Any:
        return ("empty",)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Empty)

    def __hash__(self) -> int:
        return hash(self._structure())


@dataclass(frozen=True, eq=False)
class Single:
    """Exactly one argument, encoded without a surrounding list."""

    value: FilterNode

    @property
    def values(self) -> tuple[FilterNode, ...]:
        return (self.value,)

    def to_wire(self) -> Any:
        return encode_value(self.value)

    def _structure(self) -> Any:
        return ("single", _structure(self.value))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Single):
            return NotImplemented
        return self._structure() == other._structure()

    def __hash__(self) -> int:
        return hash(self._structure())


@dataclass(frozen=True, eq=False)
class Multiple:
    """Two or more arguments, in order."""

    values: tuple[FilterNode, ...]

    def __post_init__(self) -> None:
        values = tuple(self.values)
        if len(values) < 2:
            raise ValueError(
                f"Multiple needs at least two arguments, got {len(values)}"
            )
        object.__setattr__(self, "values", values)

    def to_wire(self) -> list[Any]:
        return [encode_value(v) for v in self.values]

    def _structure(self) -> Any:
        return ("multiple", tuple(_structure(v) for v in self.values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Multiple):
            return NotImplemented
        return self._structure() == other._structure()

    def __hash__(self) -> int:
        return hash(self._structure())


FilterArgs = Union[Empty, Single, Multiple]


def make_args(values: Iterable[FilterNode]) -> FilterArgs:
    """Pick the argument payload for *values* by count alone."""
    values = tuple(values)
    if not values:
        return Empty()
    if len(values) == 1:
        return Single(values[0])
    return Multiple(values)


@dataclass(frozen=True, eq=False)
class Filter:
    """A filter operator applied to zero or more arguments."""

    name: str
    args: FilterArgs = Empty()

    @property
    def arguments(self) -> tuple[FilterNode, ...]:
        return self.args.values

    def to_wire(self) -> dict[str, Any]:
        return encode_value(self)

    def to_query(self) -> str:
        """Render as query text that parses back to an equal node."""
        from adminapi.parse import render_value

        return render_value(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return _structure(self) == _structure(other)

    def __hash__(self) -> int:
        return hash(_structure(self))

    def __repr__(self) -> str:
        return fold(
            self, repr, lambda node, arguments: f"{node.name}({', '.join(arguments)})"
        )


# =============================================================================
# COMBINATORS
# =============================================================================


def make_filter(name: str, *values: FilterNode) -> Filter:
    """Build a filter node for a canonical operator *name*.

    The name is used as given; pass one of :data:`CANONICAL_OPERATORS`.
    """
    return Filter(name, make_args(values))


def any_(*values: FilterNode) -> Filter:
    return make_filter("Any", *values)


def all_(*values: FilterNode) -> Filter:
    return make_filter("All", *values)


def contained_by(*values: FilterNode) -> Filter:
    return make_filter("ContainedBy", *values)


def contained_only_by(*values: FilterNode) -> Filter:
    return make_filter("ContainedOnlyBy", *values)


def contains(*values: FilterNode) -> Filter:
    return make_filter("Contains", *values)


def empty(*values: FilterNode) -> Filter:
    return make_filter("Empty", *values)


def greater_than(*values: FilterNode) -> Filter:
    return make_filter("GreaterThan", *values)


def greater_than_or_equals(*values: FilterNode) -> Filter:
    return make_filter("GreaterThanOrEquals", *values)


def less_than(*values: FilterNode) -> Filter:
    return make_filter("LessThan", *values)


def less_than_or_equals(*values: FilterNode) -> Filter:
    return make_filter("LessThanOrEquals", *values)


def not_(*values: FilterNode) -> Filter:
    return make_filter("Not", *values)


def overlaps(*values: FilterNode) -> Filter:
    return make_filter("Overlaps", *values)


def regexp(*values: FilterNode) -> Filter:
    return make_filter("Regexp", *values)


def starts_with(*values: FilterNode) -> Filter:
    return make_filter("StartsWith", *values)


# =============================================================================
# FILTERS CONTAINER
# =============================================================================


class Filters(dict[str, FilterNode]):
    """Attribute name -> literal or filter node, in insertion order.

    Attribute names are kept exactly as given. Replacing an attribute keeps
    its original position.
    """

    def add_filter(self, attribute: str, value: FilterNode) -> None:
        """Set or replace the filter for *attribute*."""
        if not attribute:
            raise ValueError("Attribute name must not be empty")
        self[attribute] = value

    def to_wire(self) -> dict[str, Any]:
        return {attribute: encode_value(value) for attribute, value in self.items()}

    def to_query(self) -> str:
        """Render as query text that parses back to equal filters."""
        from adminapi.parse import render_query

        return render_query(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        if self.keys() != other.keys():
            return False
        return all(
            _structure(value) == _structure(other[key])
            for key, value in self.items()
        )

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Filters({dict.__repr__(self)})"
