"""WhereConditionHandler: caller-declared conditions applied to every request."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

from .conditions import Condition, ConditionCompiler
from .exceptions import FilterError
from .operators import FilterOperator, resolve_operator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .query import QueryBuilder

logger = logging.getLogger(__name__)


class WhereCondition(NamedTuple):
    column: str
    operator: FilterOperator
    value: Any
    explicit: bool


def parse_where_conditions(conditions: Iterable[Any]) -> list[WhereCondition]:
    """Normalise ``(column, value)`` and ``(column, operator, value)`` tuples.

    Any other shape is skipped. Operators are resolved here, so an unknown
    operator fails when the conditions are declared.
    """
    parsed: list[WhereCondition] = []
    for condition in conditions:
        if not isinstance(condition, (list, tuple)):
            continue
        if len(condition) == 2:
            column, value = condition
            parsed.append(WhereCondition(str(column), FilterOperator.EQ, value, False))
        elif len(condition) == 3:
            column, operator, value = condition
            parsed.append(
                WhereCondition(str(column), resolve_operator(operator), value, True)
            )
    return parsed


class WhereConditionHandler:
    """Apply trusted where-conditions; they bypass the allow-list."""

    def __init__(self, compiler: ConditionCompiler | None = None) -> None:
        self._compiler = compiler or ConditionCompiler()

    def apply(
        self,
        builder: QueryBuilder,
        conditions: Iterable[WhereCondition],
        errors: list[str] | None = None,
    ) -> list[str]:
        errors = errors if errors is not None else []
        for where in conditions:
            try:
                self._compiler.compile(
                    builder,
                    Condition.create(
                        where.column, where.operator, where.value, explicit=where.explicit
                    ),
                )
            except FilterError as exc:
                errors.append(f"Error applying where condition '{where.column}': {exc.message}")
                logger.warning("Where condition %r failed: %s", where.column, exc.message)
            except Exception as exc:  # noqa: BLE001
                errors.append(f"Error applying where condition '{where.column}': {exc}")
                logger.error("Where condition %r failed", where.column, exc_info=True)
        return errors
