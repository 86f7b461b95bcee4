"""
Schema and relationship introspection for SQLAlchemy declarative models.

``SQLAlchemyInspector`` answers from the ORM mapper (no database round
trip). ``LiveSchemaInspector`` confirms columns against the connected
database, reporting only columns that are both mapped and present in the
live table, and delegates relationship questions to the mapper.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect as sa_inspect

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.orm import Mapper, RelationshipProperty

logger = logging.getLogger(__name__)


class SQLAlchemyInspector:
    """Mapper-based implementation of ``ISchemaInspector``."""

    @staticmethod
    def _mapper(entity: Any) -> Mapper[Any]:
        return sa_inspect(entity).mapper  # type: ignore[no-any-return]

    def _relationship(self, entity: Any, name: str) -> RelationshipProperty[Any]:
        return self._mapper(entity).relationships[name]

    def has_column(self, entity: Any, column: str) -> bool:
        return column in self._mapper(entity).column_attrs

    def list_columns(self, entity: Any) -> list[str]:
        return [attr.key for attr in self._mapper(entity).column_attrs]

    def has_relation(self, entity: Any, name: str) -> bool:
        return name in self._mapper(entity).relationships

    def related_entity_of(self, entity: Any, name: str) -> Any:
        return self._relationship(entity, name).mapper.class_

    def list_relation_names(self, entity: Any) -> list[str]:
        return [rel.key for rel in self._mapper(entity).relationships]

    def is_collection(self, entity: Any, name: str) -> bool:
        return bool(self._relationship(entity, name).uselist)

    def primary_key(self, entity: Any) -> list[str]:
        mapper = self._mapper(entity)
        return [mapper.get_property_by_column(col).key for col in mapper.primary_key]


class LiveSchemaInspector(SQLAlchemyInspector):
    """Confirms mapped columns against the live database schema.

    Column listings are cached per table for the lifetime of the inspector,
    which is meant to be request-scoped.
    """

    def __init__(self, bind: Engine | Connection) -> None:
        self._bind = bind
        self._columns: dict[tuple[str | None, str], frozenset[str]] = {}

    def _live_columns(self, entity: Any) -> frozenset[str]:
        table = self._mapper(entity).local_table
        key = (getattr(table, "schema", None), table.name)  # type: ignore[attr-defined]
        if key not in self._columns:
            logger.debug("Reflecting columns for table %s", table.name)  # type: ignore[attr-defined]
            columns = sa_inspect(self._bind).get_columns(key[1], schema=key[0])
            self._columns[key] = frozenset(col["name"] for col in columns)
        return self._columns[key]

    def has_column(self, entity: Any, column: str) -> bool:
        if not super().has_column(entity, column):
            return False
        mapper = self._mapper(entity)
        names = {col.name for col in mapper.column_attrs[column].columns}
        return bool(names & self._live_columns(entity))

    def list_columns(self, entity: Any) -> list[str]:
        return [col for col in super().list_columns(entity) if self.has_column(entity, col)]
