"""FilterOperator: canonical comparison operators and the token table."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

from .exceptions import InvalidOperatorError

if TYPE_CHECKING:
    from collections.abc import Mapping


class FilterOperator(str, Enum):
    """Supported filter operators."""

    # Standard comparison
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="

    # String matching
    LIKE = "like"
    NOT_LIKE = "not like"

    # Set / range
    IN = "in"
    NOT_IN = "not in"
    BETWEEN = "between"
    NOT_BETWEEN = "not between"

    # Null checks (only reachable through the "null" / "!null" sentinels)
    IS_NULL = "is null"
    IS_NOT_NULL = "is not null"


# Operators a request (or a where-condition) may name explicitly.
CANONICAL_OPERATORS: frozenset[FilterOperator] = frozenset(
    {
        FilterOperator.EQ,
        FilterOperator.NE,
        FilterOperator.GT,
        FilterOperator.LT,
        FilterOperator.GE,
        FilterOperator.LE,
        FilterOperator.LIKE,
        FilterOperator.NOT_LIKE,
        FilterOperator.IN,
        FilterOperator.NOT_IN,
        FilterOperator.BETWEEN,
        FilterOperator.NOT_BETWEEN,
    }
)

# Operators whose value is a list.
LIST_OPERATORS: frozenset[FilterOperator] = frozenset(
    {
        FilterOperator.IN,
        FilterOperator.NOT_IN,
        FilterOperator.BETWEEN,
        FilterOperator.NOT_BETWEEN,
    }
)

RANGE_OPERATORS: frozenset[FilterOperator] = frozenset(
    {FilterOperator.BETWEEN, FilterOperator.NOT_BETWEEN}
)

PATTERN_OPERATORS: frozenset[FilterOperator] = frozenset(
    {FilterOperator.LIKE, FilterOperator.NOT_LIKE}
)

# Short tokens used by the ``field:token=value`` syntax.
OPERATOR_TOKENS: Mapping[str, FilterOperator] = MappingProxyType(
    {
        "eq": FilterOperator.EQ,
        "neq": FilterOperator.NE,
        "gt": FilterOperator.GT,
        "lt": FilterOperator.LT,
        "gte": FilterOperator.GE,
        "lte": FilterOperator.LE,
        "like": FilterOperator.LIKE,
        "nlike": FilterOperator.NOT_LIKE,
        "in": FilterOperator.IN,
        "nin": FilterOperator.NOT_IN,
        "between": FilterOperator.BETWEEN,
        "nbetween": FilterOperator.NOT_BETWEEN,
    }
)

# Spellings accepted for canonical operators in the legacy
# ``field[operator]=...`` syntax and in where-conditions.
_CANONICAL_ALIASES: dict[str, FilterOperator] = {
    "<>": FilterOperator.NE,
    "not_like": FilterOperator.NOT_LIKE,
    "not_in": FilterOperator.NOT_IN,
    "not_between": FilterOperator.NOT_BETWEEN,
}


def operator_from_token(token: str) -> FilterOperator:
    """Resolve a ``field:token`` operator token.

    Raises:
        InvalidOperatorError: If the token is not in the operator table.
    """
    normalized = token.strip().lower()
    try:
        return OPERATOR_TOKENS[normalized]
    except KeyError:
        raise InvalidOperatorError(token, sorted(OPERATOR_TOKENS)) from None


def resolve_operator(operator: FilterOperator | str) -> FilterOperator:
    """Resolve a canonical operator spelling (``"not like"``, ``">="``...).

    Tokens from the operator table are accepted as well so the legacy syntax
    tolerates ``field[operator]=gte``.

    Raises:
        InvalidOperatorError: If the operator is outside the canonical set.
    """
    if isinstance(operator, FilterOperator):
        if operator in CANONICAL_OPERATORS:
            return operator
        raise InvalidOperatorError(operator.value, canonical_operator_names())

    normalized = " ".join(str(operator).strip().lower().split())
    if normalized in _CANONICAL_ALIASES:
        return _CANONICAL_ALIASES[normalized]
    if normalized in OPERATOR_TOKENS:
        return OPERATOR_TOKENS[normalized]
    for op in CANONICAL_OPERATORS:
        if op.value == normalized:
            return op
    raise InvalidOperatorError(str(operator), canonical_operator_names())


def canonical_operator_names() -> list[str]:
    return [op.value for op in FilterOperator if op in CANONICAL_OPERATORS]
