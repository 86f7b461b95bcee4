"""GroupByHandler: ``group_by`` on direct or related columns."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import FilterError
from .keys import is_relationship_field, parse_relationship_key

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .query import QueryBuilder
    from .validator import FilterValidator

logger = logging.getLogger(__name__)


class GroupByHandler:
    """Group by each field; related columns are reached with an inner join."""

    def __init__(self, validator: FilterValidator) -> None:
        self._validator = validator

    def apply(
        self,
        builder: QueryBuilder,
        fields: Sequence[str],
        errors: list[str] | None = None,
    ) -> list[str]:
        errors = errors if errors is not None else []
        for field in fields:
            try:
                self.group_by(builder, field)
            except FilterError as exc:
                errors.append(f"Error applying group by '{field}': {exc.message}")
                logger.warning("Group by %r failed: %s", field, exc.message)
        return errors

    def group_by(self, builder: QueryBuilder, field: str) -> None:
        if not is_relationship_field(field):
            self._validator.check_target(builder.entity, field, None)
            builder.group_by(field)
            return

        path = parse_relationship_key(field)
        self._validator.check_target(builder.entity, field, path)
        target = builder.join_path(path.relations)
        builder.group_by(builder.nested(target).column(path.column))
