"""
QueryBuilder: a mutable, request-scoped query over one mapped entity.

The builder collects predicates, ordering, grouping, joins and loader
options and renders them into a SQLAlchemy ``Select`` on demand.

Relationship predicates nest: ``where_has("items.product", fn)`` opens a
builder on ``Item``, which opens one on ``Product`` where ``fn`` runs; each
hop becomes ``relationship.any(...)`` (collections) or
``relationship.has(...)`` (scalar relations), i.e. one ``EXISTS`` per hop.

Example::

    builder = QueryBuilder(User)
    builder.where("status", "=", "active")
    builder.where_has("posts", lambda q: q.where("title", "like", "%sql%"))
    stmt = builder.statement
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, asc, desc, func, or_, select
from sqlalchemy import column as sql_column
from sqlalchemy import inspect as sa_inspect

from .exceptions import InvalidColumnError, InvalidRelationshipError
from .keys import PATH_SEPARATOR
from .operators import FilterOperator, resolve_operator
from .sql_operators import DEFAULT_REGISTRY

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.orm import RelationshipProperty

    from .sql_operators import OperatorRegistry

logger = logging.getLogger(__name__)

SORT_DIRECTIONS = ("asc", "desc")


class QueryBuilder:
    """SQLAlchemy implementation of ``IQueryBuilder``."""

    def __init__(
        self,
        entity: type[Any],
        *,
        registry: OperatorRegistry | None = None,
        statement: Select[Any] | None = None,
    ) -> None:
        self._entity = entity
        self._registry = registry or DEFAULT_REGISTRY
        self._base = statement if statement is not None else select(entity)
        self._criteria: list[ColumnElement[bool]] = []
        self._ordering: list[Any] = []
        self._grouping: list[Any] = []
        self._joined: dict[tuple[str, ...], Any] = {}
        self._join_chain: list[tuple[Any, bool]] = []
        self._options: list[Any] = []
        self._limit: int | None = None
        self._offset: int | None = None

    @property
    def entity(self) -> type[Any]:
        return self._entity

    def nested(self, entity: type[Any]) -> QueryBuilder:
        """A predicate-only builder for a related entity."""
        return QueryBuilder(entity, registry=self._registry)

    # -- column resolution ----------------------------------------------------

    def column(self, name: str) -> Any:
        """Return the mapped attribute for *name*.

        Names that are not mapped attributes render as a bare column
        reference; callers that want them rejected validate first.

        Raises:
            InvalidColumnError: *name* is a relationship, not a column.
        """
        mapper = sa_inspect(self._entity).mapper
        if name in mapper.relationships:
            raise InvalidColumnError(
                name,
                [attr.key for attr in mapper.column_attrs],
                entity=self._entity.__name__,
            )
        attr = getattr(self._entity, name, None)
        if attr is not None and hasattr(attr, "__clause_element__"):
            return attr
        logger.debug(
            "Column %r is not mapped on %s; passing it through unchecked",
            name,
            self._entity.__name__,
        )
        return sql_column(name)

    def _relationship(self, name: str) -> tuple[Any, RelationshipProperty[Any]]:
        mapper = sa_inspect(self._entity).mapper
        if name not in mapper.relationships:
            raise InvalidRelationshipError(
                name, [rel.key for rel in mapper.relationships]
            )
        return getattr(self._entity, name), mapper.relationships[name]

    # -- predicates -----------------------------------------------------------

    def add_criterion(self, criterion: ColumnElement[bool]) -> QueryBuilder:
        self._criteria.append(criterion)
        return self

    def where(
        self,
        column: str,
        operator: FilterOperator | str = FilterOperator.EQ,
        value: Any = None,
    ) -> QueryBuilder:
        op = operator if isinstance(operator, FilterOperator) else resolve_operator(operator)
        return self.add_criterion(self._registry.render(op, self.column(column), value))

    def where_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where(column, FilterOperator.IN, list(values))

    def where_not_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where(column, FilterOperator.NOT_IN, list(values))

    def where_null(self, column: str) -> QueryBuilder:
        return self.where(column, FilterOperator.IS_NULL)

    def where_not_null(self, column: str) -> QueryBuilder:
        return self.where(column, FilterOperator.IS_NOT_NULL)

    def where_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where(column, FilterOperator.BETWEEN, list(values))

    def where_not_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where(column, FilterOperator.NOT_BETWEEN, list(values))

    def where_has(
        self,
        relation: str,
        callback: Callable[[QueryBuilder], Any] | None = None,
    ) -> QueryBuilder:
        """Require at least one related row (via *relation*) matching *callback*.

        Dotted relations nest one existence check per hop.
        """
        return self.add_criterion(self.has_criterion(relation, callback))

    def has_criterion(
        self,
        relation: str,
        callback: Callable[[QueryBuilder], Any] | None = None,
    ) -> ColumnElement[bool]:
        """Build (without applying) the existence predicate for *relation*."""
        head, _, rest = relation.partition(PATH_SEPARATOR)
        attr, prop = self._relationship(head)
        inner = self.nested(prop.mapper.class_)
        if rest:
            inner.where_has(rest, callback)
        elif callback is not None:
            callback(inner)
        criterion = inner.criterion
        if prop.uselist:
            expr = attr.any(criterion) if criterion is not None else attr.any()
        else:
            expr = attr.has(criterion) if criterion is not None else attr.has()
        return cast("ColumnElement[bool]", expr)

    def or_where(self, *groups: Callable[[QueryBuilder], Any]) -> QueryBuilder:
        """Add one parenthesised disjunction; each group is a conjunction."""
        alternatives = []
        for group in groups:
            inner = self.nested(self._entity)
            group(inner)
            if inner.criterion is not None:
                alternatives.append(inner.criterion)
        if alternatives:
            self.add_criterion(or_(*alternatives))
        return self

    @property
    def criterion(self) -> ColumnElement[bool] | None:
        if not self._criteria:
            return None
        if len(self._criteria) == 1:
            return self._criteria[0]
        return and_(*self._criteria)

    @property
    def criteria(self) -> list[ColumnElement[bool]]:
        return list(self._criteria)

    # -- joins, ordering, grouping -------------------------------------------

    def join_path(self, relations: Sequence[str], *, outer: bool = False) -> type[Any]:
        """Join along *relations* once and return the final entity."""
        current = self._entity
        walked: tuple[str, ...] = ()
        for name in relations:
            walked = (*walked, name)
            if walked in self._joined:
                current = self._joined[walked]
                continue
            attr = getattr(current, name, None)
            mapper = sa_inspect(current).mapper
            if attr is None or name not in mapper.relationships:
                raise InvalidRelationshipError(
                    PATH_SEPARATOR.join(walked),
                    [rel.key for rel in mapper.relationships],
                )
            self._join_chain.append((attr, outer))
            current = mapper.relationships[name].mapper.class_
            self._joined[walked] = current
        return current

    def order_by(self, column: Any, direction: str = "asc") -> QueryBuilder:
        expr = self.column(column) if isinstance(column, str) else column
        direction = direction.lower() if direction.lower() in SORT_DIRECTIONS else "asc"
        self._ordering.append(desc(expr) if direction == "desc" else asc(expr))
        return self

    def group_by(self, *columns: Any) -> QueryBuilder:
        for col in columns:
            self._grouping.append(self.column(col) if isinstance(col, str) else col)
        return self

    def options(self, *options: Any) -> QueryBuilder:
        self._options.extend(options)
        return self

    def limit(self, limit: int | None) -> QueryBuilder:
        self._limit = limit
        return self

    def offset(self, offset: int | None) -> QueryBuilder:
        self._offset = offset
        return self

    def for_page(self, page: int, per_page: int) -> QueryBuilder:
        return self.offset((page - 1) * per_page).limit(per_page)

    # -- rendering ------------------------------------------------------------

    def _filtered(self) -> Select[Any]:
        stmt = self._base
        for attr, outer in self._join_chain:
            stmt = stmt.outerjoin(attr) if outer else stmt.join(attr)
        if self._criteria:
            stmt = stmt.where(*self._criteria)
        if self._grouping:
            stmt = stmt.group_by(*self._grouping)
        return stmt

    @property
    def statement(self) -> Select[Any]:
        stmt = self._filtered()
        if self._ordering:
            stmt = stmt.order_by(*self._ordering)
        if self._options:
            stmt = stmt.options(*self._options)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        if self._offset is not None:
            stmt = stmt.offset(self._offset)
        return stmt

    def count_statement(self) -> Select[Any]:
        """Row count of the filtered query, ignoring ordering and pagination."""
        return select(func.count()).select_from(self._filtered().subquery())
