"""AbstractSearchCompiler: one free-text term across every allowed field."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from .conditions import Condition, ConditionCompiler
from .exceptions import FilterError
from .keys import is_relationship_field, parse_relationship_key
from .operators import FilterOperator
from .values import Scalar

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement

    from .query import QueryBuilder
    from .validator import FilterValidator

logger = logging.getLogger(__name__)


class AbstractSearchCompiler:
    """
    Build a single OR group of substring matches.

    Direct fields contribute ``field LIKE '%term%'``; relationship fields
    contribute a nested existence predicate whose innermost condition is the
    same substring match on the terminal column. Fields that fail the
    enabled strict checks are dropped from the search without error.
    """

    def __init__(
        self,
        validator: FilterValidator,
        compiler: ConditionCompiler | None = None,
    ) -> None:
        self._validator = validator
        self._compiler = compiler or ConditionCompiler()

    def apply(self, builder: QueryBuilder, term: Any, allowed: Iterable[str]) -> int:
        """Add the search group to *builder*; return the number of fields searched."""
        if term is None or (isinstance(term, str) and not term.strip()):
            return 0
        if isinstance(term, (list, tuple)):
            term = " ".join(str(part) for part in term)

        alternatives: list[ColumnElement[bool]] = []
        for condition in self._conditions(builder, str(term), allowed):
            criterion = self._alternative(builder, condition)
            if criterion is not None:
                alternatives.append(criterion)
        if not alternatives:
            logger.debug("Abstract search %r has no searchable fields", term)
            return 0
        builder.add_criterion(or_(*alternatives))
        logger.debug(
            "Abstract search %r applied across %d field(s)", term, len(alternatives)
        )
        return len(alternatives)

    def _conditions(
        self, builder: QueryBuilder, term: str, allowed: Iterable[str]
    ) -> list[Condition]:
        direct: list[Condition] = []
        related: list[Condition] = []
        for field in dict.fromkeys(allowed):
            try:
                path = parse_relationship_key(field) if is_relationship_field(field) else None
                self._validator.check_target(builder.entity, field, path)
            except FilterError as exc:
                logger.debug("Dropping %r from abstract search: %s", field, exc)
                continue
            condition = Condition(
                path or field, FilterOperator.LIKE, Scalar(term), explicit=True
            )
            (related if path is not None else direct).append(condition)
        return direct + related

    def _alternative(
        self, builder: QueryBuilder, condition: Condition
    ) -> ColumnElement[bool] | None:
        inner = builder.nested(builder.entity)
        try:
            self._compiler.compile(inner, condition)
        except FilterError as exc:
            logger.debug("Dropping %r from abstract search: %s", condition.field, exc)
            return None
        return inner.criterion
