"""FilterValidator: allow-list and live schema checks for filter targets."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import FilterNotAllowedError, InvalidColumnError, InvalidRelationshipError

if TYPE_CHECKING:
    from collections.abc import Collection

    from .config import SiftConfig
    from .keys import RelationshipPath
    from .ports import ISchemaInspector

logger = logging.getLogger(__name__)


class FilterValidator:
    """Validate fields against the allow-list and, optionally, the schema.

    The two strict checks follow ``config.security`` and are skipped entirely
    when disabled, trusting the caller's allow-list.
    """

    def __init__(self, config: SiftConfig, inspector: ISchemaInspector) -> None:
        self._config = config
        self._inspector = inspector

    @property
    def strict_columns(self) -> bool:
        return self._config.security.strict_column_checking

    @property
    def strict_relationships(self) -> bool:
        return self._config.security.strict_relationship_checking

    def validate(
        self,
        entity: Any,
        field: str,
        path: RelationshipPath | None,
        allowed: Collection[str],
        standard: Collection[str] = (),
    ) -> None:
        """Run the allow-list check, then the enabled strict checks.

        Raises:
            FilterNotAllowedError: *field* is neither allowed nor standard.
            InvalidRelationshipError: A relation hop does not exist.
            InvalidColumnError: The terminal column does not exist.
        """
        self.check_allowed(field, allowed, standard)
        self.check_target(entity, field, path)

    def check_allowed(
        self,
        field: str,
        allowed: Collection[str],
        standard: Collection[str] = (),
    ) -> None:
        if field in allowed or field in standard:
            return
        raise FilterNotAllowedError(
            field,
            [*allowed, *standard],
            reveal_allowed=self._config.security.validate_all_filters,
        )

    def check_target(
        self, entity: Any, field: str, path: RelationshipPath | None
    ) -> None:
        """Strict relationship and column checks, without the allow-list."""
        if path is None:
            if self.strict_columns:
                self.check_column(entity, field)
            return

        if self.strict_relationships:
            target = self.resolve_path(entity, path)
        elif self.strict_columns:
            target = self.try_resolve_path(entity, path)
        else:
            return

        if self.strict_columns and target is not None:
            self.check_column(target, path.column)

    def resolve_path(self, entity: Any, path: RelationshipPath) -> Any:
        """Walk *path* hop by hop and return the final entity.

        Raises:
            InvalidRelationshipError: Naming the partial path up to the first
                invalid hop and the relations available at that level.
        """
        current = entity
        for depth, name in enumerate(path.relations):
            if not self._inspector.has_relation(current, name):
                raise InvalidRelationshipError(
                    path.partial(depth), self._inspector.list_relation_names(current)
                )
            current = self._inspector.related_entity_of(current, name)
        return current

    def try_resolve_path(self, entity: Any, path: RelationshipPath) -> Any | None:
        try:
            return self.resolve_path(entity, path)
        except InvalidRelationshipError:
            logger.debug("Relation path %s not resolvable; skipping column check", path)
            return None

    def check_column(self, entity: Any, column: str) -> None:
        if not self._inspector.has_column(entity, column):
            raise InvalidColumnError(
                column,
                self._inspector.list_columns(entity),
                entity=getattr(entity, "__name__", str(entity)),
            )
