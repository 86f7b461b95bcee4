"""
RelationshipHandler: eager loading and ``only`` field selection.

Declared relationships are loaded with ``selectinload``; dotted names chain
one loader per hop. ``only`` restricts the root entity's columns and, for
entries such as ``posts.title``, the columns loaded for that relationship.
Primary keys are always kept so rows stay identifiable.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import load_only, selectinload

from .exceptions import FilterError, InvalidColumnError, InvalidRelationshipError
from .keys import is_relationship_field, parse_relationship_key

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .ports import ISchemaInspector
    from .query import QueryBuilder

logger = logging.getLogger(__name__)


class RelationshipHandler:
    def __init__(self, inspector: ISchemaInspector) -> None:
        self._inspector = inspector

    def load_relationships(
        self,
        builder: QueryBuilder,
        relationships: Sequence[str],
        only: Sequence[str] = (),
        errors: list[str] | None = None,
    ) -> list[str]:
        errors = errors if errors is not None else []
        relation_fields = self.relation_fields(only)
        for relationship in relationships:
            try:
                builder.options(
                    self._loader(builder.entity, relationship, relation_fields.get(relationship))
                )
            except FilterError as exc:
                errors.append(f"Error loading relationships: {exc.message}")
                logger.warning("Cannot load relationship %r: %s", relationship, exc.message)
        return errors

    def select_only(
        self,
        builder: QueryBuilder,
        only: Sequence[str],
        errors: list[str] | None = None,
    ) -> list[str]:
        errors = errors if errors is not None else []
        fields = [f for f in only if not is_relationship_field(f)]
        if not fields:
            return errors
        try:
            columns = self._columns(builder.entity, fields)
        except FilterError as exc:
            errors.append(f"Error applying select only: {exc.message}")
            logger.warning("Cannot apply 'only' fields: %s", exc.message)
            return errors
        builder.options(load_only(*columns))
        return errors

    @staticmethod
    def relation_fields(only: Sequence[str]) -> dict[str, list[str]]:
        """Group relationship entries of ``only`` by relation path."""
        grouped: dict[str, list[str]] = {}
        for field in only:
            if is_relationship_field(field):
                path = parse_relationship_key(field)
                grouped.setdefault(path.relation, []).append(path.column)
        return grouped

    def _loader(self, entity: Any, relationship: str, columns: list[str] | None) -> Any:
        loader: Any = None
        current = entity
        walked: list[str] = []
        for name in relationship.split("."):
            walked.append(name)
            if not self._inspector.has_relation(current, name):
                raise InvalidRelationshipError(
                    ".".join(walked), self._inspector.list_relation_names(current)
                )
            attr = getattr(current, name)
            loader = selectinload(attr) if loader is None else loader.selectinload(attr)
            current = self._inspector.related_entity_of(current, name)
        if columns:
            loader = loader.load_only(*self._columns(current, columns))
        return loader

    def _columns(self, entity: Any, fields: Sequence[str]) -> list[Any]:
        names = list(dict.fromkeys([*fields, *self._inspector.primary_key(entity)]))
        for name in names:
            if not self._inspector.has_column(entity, name):
                raise InvalidColumnError(
                    name,
                    self._inspector.list_columns(entity),
                    entity=getattr(entity, "__name__", None),
                )
        return [getattr(entity, name) for name in names]
