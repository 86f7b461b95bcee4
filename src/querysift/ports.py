"""Protocols for the collaborators the filter core drives."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .operators import FilterOperator


@runtime_checkable
class ISchemaInspector(Protocol):
    """Column and relationship introspection for mapped entities.

    ``entity`` is whatever the implementation uses to identify a table,
    e.g. a declarative model class.
    """

    def has_column(self, entity: Any, column: str) -> bool: ...

    def list_columns(self, entity: Any) -> list[str]: ...

    def has_relation(self, entity: Any, name: str) -> bool: ...

    def related_entity_of(self, entity: Any, name: str) -> Any: ...

    def list_relation_names(self, entity: Any) -> list[str]: ...

    def is_collection(self, entity: Any, name: str) -> bool: ...

    def primary_key(self, entity: Any) -> list[str]: ...


@runtime_checkable
class IQueryBuilder(Protocol):
    """Mutable query under construction, scoped to one entity."""

    @property
    def entity(self) -> Any: ...

    def where(
        self, column: str, operator: FilterOperator | str, value: Any
    ) -> IQueryBuilder: ...

    def where_in(self, column: str, values: Sequence[Any]) -> IQueryBuilder: ...

    def where_not_in(self, column: str, values: Sequence[Any]) -> IQueryBuilder: ...

    def where_null(self, column: str) -> IQueryBuilder: ...

    def where_not_null(self, column: str) -> IQueryBuilder: ...

    def where_between(self, column: str, values: Sequence[Any]) -> IQueryBuilder: ...

    def where_not_between(
        self, column: str, values: Sequence[Any]
    ) -> IQueryBuilder: ...

    def where_has(
        self, relation: str, callback: Callable[[IQueryBuilder], Any] | None = None
    ) -> IQueryBuilder: ...

    def or_where(self, *groups: Callable[[IQueryBuilder], Any]) -> IQueryBuilder: ...

    def order_by(self, column: str, direction: str = "asc") -> IQueryBuilder: ...
