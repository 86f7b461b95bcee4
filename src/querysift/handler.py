"""
FilterHandler: apply every request parameter as a filter, collecting errors.

One bad parameter never blocks the others: each failure is converted into a
message on the error list and processing moves on to the next key.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

from .conditions import Condition, ConditionCompiler
from .config import DEFAULT_CONFIG
from .exceptions import FilterError, InvalidRelationshipError
from .inspection import SQLAlchemyInspector
from .keys import (
    OPERATOR_SEPARATOR,
    RelationshipPath,
    base_field,
    is_relationship_field,
    parse_key,
    parse_relationship_key,
    shorthand_for,
    split_key,
)
from .query import SORT_DIRECTIONS
from .search import AbstractSearchCompiler
from .validator import FilterValidator

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

    from .config import SiftConfig
    from .ports import ISchemaInspector
    from .query import QueryBuilder

logger = logging.getLogger(__name__)

SORT_PARAMETER = "sort"
ORDER_PARAMETER = "order"


class FilterResult(NamedTuple):
    """Outcome of one filtering pass."""

    applied: int
    errors: list[str]


class FilterHandler:
    """Orchestrates key parsing, validation and compilation per parameter."""

    def __init__(
        self,
        config: SiftConfig | None = None,
        inspector: ISchemaInspector | None = None,
        *,
        compiler: ConditionCompiler | None = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._inspector = inspector or SQLAlchemyInspector()
        self._validator = FilterValidator(self._config, self._inspector)
        self._compiler = compiler or ConditionCompiler()
        self._search = AbstractSearchCompiler(self._validator, self._compiler)

    @property
    def validator(self) -> FilterValidator:
        return self._validator

    @property
    def compiler(self) -> ConditionCompiler:
        return self._compiler

    # -- filters --------------------------------------------------------------

    def apply_filters(
        self,
        builder: QueryBuilder,
        params: Mapping[str, Any],
        allowed: Collection[str],
        ignored: Collection[str] = (),
        errors: list[str] | None = None,
    ) -> FilterResult:
        """Apply every filter parameter in *params* to *builder*.

        Returns the number of applied filters and the error list (the one
        passed in, extended, or a new one).
        """
        errors = errors if errors is not None else []
        applied = 0
        search_key = self._config.search_parameter

        if search_key in params and allowed:
            try:
                if self._search.apply(builder, params[search_key], allowed):
                    applied += 1
            except FilterError as exc:
                self._record(errors, exc)
            except Exception as exc:  # noqa: BLE001
                self._record_unexpected(errors, search_key, exc)

        shorthand = self._shorthand_map(allowed)
        for key, value in params.items():
            if key == search_key or self.should_ignore(key, ignored):
                continue
            try:
                condition = self.apply_filter(
                    builder, self._canonical_key(key, allowed, shorthand), value, allowed
                )
            except FilterError as exc:
                self._record(errors, exc)
            except Exception as exc:  # noqa: BLE001
                self._record_unexpected(errors, key, exc)
            else:
                applied += 1
                logger.debug(
                    "Applied filter %s %s on %s",
                    condition.field,
                    condition.operator.value,
                    builder.entity.__name__,
                )

        return FilterResult(applied, errors)

    def apply_filter(
        self,
        builder: QueryBuilder,
        key: str,
        value: Any,
        allowed: Collection[str],
    ) -> Condition:
        """Validate and compile a single parameter; raises ``FilterError``."""
        field, _ = split_key(key)
        self._validator.check_allowed(field, allowed, self._config.standard_parameters)
        condition = Condition.from_parsed(parse_key(key, value))
        path = condition.target if isinstance(condition.target, RelationshipPath) else None
        self._validator.check_target(builder.entity, field, path)
        self._compiler.compile(builder, condition)
        return condition

    def should_ignore(self, key: str, ignored: Collection[str] = ()) -> bool:
        field = base_field(key)
        return (
            self._config.is_standard_parameter(field)
            or field in ignored
            or key in ignored
        )

    @staticmethod
    def _shorthand_map(allowed: Collection[str]) -> dict[str, str]:
        return {
            shorthand_for(entry): entry
            for entry in allowed
            if is_relationship_field(entry)
        }

    @staticmethod
    def _canonical_key(
        key: str, allowed: Collection[str], shorthand: Mapping[str, str]
    ) -> str:
        """Map ``posts_title`` back to ``posts.title`` when only the latter is allowed."""
        field, token = split_key(key)
        if field in allowed or field not in shorthand:
            return key
        canonical = shorthand[field]
        return canonical if token is None else f"{canonical}{OPERATOR_SEPARATOR}{token}"

    # -- sorting --------------------------------------------------------------

    def apply_sorting(
        self,
        builder: QueryBuilder,
        params: Mapping[str, Any],
        sortable: Collection[str] = (),
        errors: list[str] | None = None,
    ) -> list[str]:
        """Apply ``sort``/``order``; an unknown direction falls back to ``asc``."""
        errors = errors if errors is not None else []
        column = params.get(SORT_PARAMETER)
        if isinstance(column, (list, tuple)):
            column = column[0] if column else None
        if not column:
            return errors

        direction = str(params.get(ORDER_PARAMETER) or "asc").lower()
        if direction not in SORT_DIRECTIONS:
            direction = "asc"

        try:
            self.sort(builder, str(column), direction, sortable)
        except FilterError as exc:
            errors.append(f"Error applying sorting: {exc.message}")
            logger.warning("Sort error: %s", exc.message)
        except Exception as exc:  # noqa: BLE001
            errors.append(f"Error applying sorting: {exc}")
            logger.error("Error applying sorting", exc_info=True)
        return errors

    def sort(
        self,
        builder: QueryBuilder,
        column: str,
        direction: str = "asc",
        sortable: Collection[str] = (),
    ) -> None:
        if sortable:
            self._validator.check_allowed(column, sortable)

        if not is_relationship_field(column):
            self._validator.check_target(builder.entity, column, None)
            builder.order_by(column, direction)
            return

        path = parse_relationship_key(column)
        self._validator.check_target(builder.entity, column, path)
        self._check_sortable_path(builder.entity, path)
        target = builder.join_path(path.relations, outer=True)
        builder.order_by(builder.nested(target).column(path.column), direction)

    def _check_sortable_path(self, entity: Any, path: RelationshipPath) -> None:
        current = entity
        for depth, name in enumerate(path.relations):
            if not self._inspector.has_relation(current, name):
                raise InvalidRelationshipError(
                    path.partial(depth), self._inspector.list_relation_names(current)
                )
            if self._inspector.is_collection(current, name):
                raise InvalidRelationshipError(
                    path.partial(depth),
                    reason=(
                        f"Cannot sort by '{path.identifier}': "
                        f"'{path.partial(depth)}' is a to-many relationship."
                    ),
                )
            current = self._inspector.related_entity_of(current, name)

    # -- error recording ------------------------------------------------------

    @staticmethod
    def _record(errors: list[str], exc: FilterError) -> None:
        errors.append(exc.message)
        logger.warning("Filter error: %s", exc.message)

    @staticmethod
    def _record_unexpected(errors: list[str], key: str, exc: Exception) -> None:
        errors.append(f"Error applying filter '{key}': {exc}")
        logger.error("Error applying filter %r", key, exc_info=True)
