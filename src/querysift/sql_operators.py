"""
SQL rendering of filter operators.

Every ``FilterOperator`` is rendered by one ``SQLAlchemyOperator`` held in
an ``OperatorRegistry``. The query builder looks the operator up and passes
it the mapped column and the already-resolved value; the registry can be
extended per builder to support extra operators.

Usage::

    expr = DEFAULT_REGISTRY.render(FilterOperator.LIKE, User.name, "%jo%")
"""

from __future__ import annotations

import operator as op_module
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import String
from sqlalchemy import cast as sql_cast
from sqlalchemy.types import NullType

from .exceptions import InvalidOperatorError
from .operators import FilterOperator

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy import ColumnElement


class SQLAlchemyOperator(ABC):
    """Renders one operator into a ``ColumnElement[bool]``."""

    def __init__(self, operator: FilterOperator) -> None:
        self.operator = operator

    @abstractmethod
    def render(self, column: Any, value: Any) -> ColumnElement[bool]: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.operator.value!r})"


class Comparison(SQLAlchemyOperator):
    """Binary comparison through a function of the ``operator`` module."""

    def __init__(
        self, operator: FilterOperator, compare: Callable[[Any, Any], Any]
    ) -> None:
        super().__init__(operator)
        self._compare = compare

    def render(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", self._compare(column, value))


class Pattern(SQLAlchemyOperator):
    """``LIKE`` / ``NOT LIKE``; non-string columns are cast to text first."""

    def render(self, column: Any, value: Any) -> ColumnElement[bool]:
        if not isinstance(getattr(column, "type", None), (String, NullType)):
            column = sql_cast(column, String)
        if self.operator is FilterOperator.NOT_LIKE:
            return cast("ColumnElement[bool]", column.not_like(value))
        return cast("ColumnElement[bool]", column.like(value))


class Membership(SQLAlchemyOperator):
    """``IN`` / ``NOT IN``; an empty list renders SQLAlchemy's empty-set form."""

    def render(self, column: Any, value: Any) -> ColumnElement[bool]:
        values = list(value)
        if self.operator is FilterOperator.NOT_IN:
            return cast("ColumnElement[bool]", column.not_in(values))
        return cast("ColumnElement[bool]", column.in_(values))


class Range(SQLAlchemyOperator):
    def render(self, column: Any, value: Any) -> ColumnElement[bool]:
        low, high = value
        expr = column.between(low, high)
        if self.operator is FilterOperator.NOT_BETWEEN:
            expr = ~expr
        return cast("ColumnElement[bool]", expr)


class NullCheck(SQLAlchemyOperator):
    def render(self, column: Any, value: Any) -> ColumnElement[bool]:
        if self.operator is FilterOperator.IS_NOT_NULL:
            return cast("ColumnElement[bool]", column.is_not(None))
        return cast("ColumnElement[bool]", column.is_(None))


class OperatorRegistry:
    """``FilterOperator`` → ``SQLAlchemyOperator`` lookup."""

    def __init__(self, operators: Iterable[SQLAlchemyOperator] = ()) -> None:
        self._operators: dict[FilterOperator, SQLAlchemyOperator] = {}
        for strategy in operators:
            self.register(strategy)

    def register(self, strategy: SQLAlchemyOperator) -> OperatorRegistry:
        self._operators[strategy.operator] = strategy
        return self

    def __contains__(self, operator: object) -> bool:
        return operator in self._operators

    @property
    def operators(self) -> frozenset[FilterOperator]:
        return frozenset(self._operators)

    def extended(self, *strategies: SQLAlchemyOperator) -> OperatorRegistry:
        """A copy with *strategies* added or replaced."""
        return OperatorRegistry([*self._operators.values(), *strategies])

    def render(
        self, operator: FilterOperator, column: Any, value: Any
    ) -> ColumnElement[bool]:
        """
        Raises:
            InvalidOperatorError: No strategy is registered for *operator*.
        """
        strategy = self._operators.get(operator)
        if strategy is None:
            raise InvalidOperatorError(
                operator.value, sorted(op.value for op in self._operators)
            )
        return strategy.render(column, value)


def build_default_registry() -> OperatorRegistry:
    """Registry covering every ``FilterOperator``."""
    return OperatorRegistry(
        [
            Comparison(FilterOperator.EQ, op_module.eq),
            Comparison(FilterOperator.NE, op_module.ne),
            Comparison(FilterOperator.GT, op_module.gt),
            Comparison(FilterOperator.LT, op_module.lt),
            Comparison(FilterOperator.GE, op_module.ge),
            Comparison(FilterOperator.LE, op_module.le),
            Pattern(FilterOperator.LIKE),
            Pattern(FilterOperator.NOT_LIKE),
            Membership(FilterOperator.IN),
            Membership(FilterOperator.NOT_IN),
            Range(FilterOperator.BETWEEN),
            Range(FilterOperator.NOT_BETWEEN),
            NullCheck(FilterOperator.IS_NULL),
            NullCheck(FilterOperator.IS_NOT_NULL),
        ]
    )


DEFAULT_REGISTRY: OperatorRegistry = build_default_registry()
