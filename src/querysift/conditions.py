"""
Condition compilation: (target, operator, value) to builder predicates.

Value handling, in order:

1. ``=`` with ``"null"``/``"NULL"`` → IS NULL, ``"!null"``/``"!NULL"`` →
   IS NOT NULL.
2. ``=`` without an explicit operator and a list value → IN.
3. ``like``/``not like`` wrap the value as ``%value%`` (once).
4. ``in``/``not in`` take a list (an empty list is a valid predicate).
5. ``between``/``not between`` take exactly ``[low, high]``.

Relationship targets become nested existence predicates, one per hop of
the relation path, with the column condition applied at the innermost hop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidOperatorError, InvalidValueError
from .keys import ParsedKey, RelationshipPath, is_relationship_field, parse_relationship_key
from .operators import (
    CANONICAL_OPERATORS,
    LIST_OPERATORS,
    PATTERN_OPERATORS,
    RANGE_OPERATORS,
    FilterOperator,
    canonical_operator_names,
)
from .values import FilterValue, Scalar, ValueList, coerce_value, split_list, unwrap

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .query import QueryBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Condition:
    """A resolved filter: target column or relation path, operator, value.

    Built per request parameter and consumed immediately by the compiler.
    """

    target: str | RelationshipPath
    operator: FilterOperator
    value: FilterValue
    explicit: bool = False

    @classmethod
    def from_parsed(cls, parsed: ParsedKey) -> Condition:
        target: str | RelationshipPath = parsed.field
        if is_relationship_field(parsed.field):
            target = parse_relationship_key(parsed.field)
        return cls(target, parsed.operator, parsed.value, parsed.explicit)

    @classmethod
    def create(
        cls,
        field: str,
        operator: FilterOperator = FilterOperator.EQ,
        value: Any = None,
        *,
        explicit: bool = True,
    ) -> Condition:
        target: str | RelationshipPath = field
        if is_relationship_field(field):
            target = parse_relationship_key(field)
        return cls(target, operator, coerce_value(value), explicit)

    @property
    def field(self) -> str:
        if isinstance(self.target, RelationshipPath):
            return self.target.identifier
        return self.target

    @property
    def column(self) -> str:
        if isinstance(self.target, RelationshipPath):
            return self.target.column
        return self.target


class ConditionCompiler:
    """Apply ``Condition`` objects to a ``QueryBuilder``."""

    def compile(self, builder: QueryBuilder, condition: Condition) -> None:
        """Apply *condition* to *builder*.

        Raises:
            InvalidOperatorError: Operator outside the canonical set.
            InvalidValueError: Value shape does not fit the operator.
        """
        leaf = self._leaf(condition)
        if isinstance(condition.target, RelationshipPath):
            self.apply_path(builder, condition.target.relations, leaf)
        else:
            leaf(builder)

    def apply_path(
        self,
        builder: QueryBuilder,
        relations: Sequence[str],
        leaf: Callable[[QueryBuilder], Any],
    ) -> None:
        """Nest one existence predicate per relation, innermost applies *leaf*."""
        if not relations:
            leaf(builder)
            return
        head, *rest = relations
        builder.where_has(head, lambda inner: self.apply_path(inner, rest, leaf))

    def _leaf(self, condition: Condition) -> Callable[[QueryBuilder], None]:
        # Resolve the value shape eagerly so errors surface before any
        # existence predicate is opened.
        operator, value = self.resolve(condition)
        column = condition.column

        def apply(builder: QueryBuilder) -> None:
            if operator is FilterOperator.IS_NULL:
                builder.where_null(column)
            elif operator is FilterOperator.IS_NOT_NULL:
                builder.where_not_null(column)
            elif operator is FilterOperator.IN:
                builder.where_in(column, value)
            elif operator is FilterOperator.NOT_IN:
                builder.where_not_in(column, value)
            elif operator is FilterOperator.BETWEEN:
                builder.where_between(column, value)
            elif operator is FilterOperator.NOT_BETWEEN:
                builder.where_not_between(column, value)
            else:
                builder.where(column, operator, value)

        return apply

    def resolve(self, condition: Condition) -> tuple[FilterOperator, Any]:
        """Return the effective operator and the plain value to bind."""
        operator = condition.operator
        value = condition.value

        if operator not in CANONICAL_OPERATORS:
            raise InvalidOperatorError(str(operator.value), canonical_operator_names())

        if operator is FilterOperator.EQ and isinstance(value, Scalar):
            if value.is_null:
                return FilterOperator.IS_NULL, None
            if value.is_not_null:
                return FilterOperator.IS_NOT_NULL, None

        if isinstance(value, ValueList) and operator not in LIST_OPERATORS:
            if operator is FilterOperator.EQ and not condition.explicit:
                operator = FilterOperator.IN
            else:
                raise InvalidValueError(condition.field, list(value.values), "a single value")

        if operator in PATTERN_OPERATORS:
            return operator, f"%{unwrap(value)}%"

        if operator in RANGE_OPERATORS:
            bounds = split_list(value)
            if len(bounds) != 2:
                raise InvalidValueError(
                    condition.field, bounds, "exactly two values [low, high]"
                )
            return operator, bounds

        if operator in LIST_OPERATORS:
            return operator, split_list(value)

        return operator, unwrap(value)
