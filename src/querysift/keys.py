"""
Key parsing: request parameter keys to fields, operators and relation paths.

Two key syntaxes are accepted, per key:

* modern: ``field:token=value`` (``age:gte=18``, ``status:in=a,b``)
* legacy: ``field=value`` or ``field[operator]=>=&field[value]=18``

Relationship fields use ``relation.subrelation.column`` (any depth) or
``relation*column`` (single level).
"""

from __future__ import annotations

from typing import Any, NamedTuple

from .exceptions import InvalidRelationshipError, InvalidValueError
from .operators import (
    LIST_OPERATORS,
    FilterOperator,
    operator_from_token,
    resolve_operator,
)
from .values import (
    FilterValue,
    LegacyOperatorValue,
    Scalar,
    ValueList,
    coerce_value,
    split_list,
)

OPERATOR_SEPARATOR = ":"
PATH_SEPARATOR = "."
STAR_SEPARATOR = "*"


class FilterKey(NamedTuple):
    """A raw key split into its base field and optional operator token."""

    field: str
    operator_token: str | None


class ParsedKey(NamedTuple):
    """A fully resolved request parameter.

    ``explicit`` is True when the request named the operator (modern token
    or legacy mapping) rather than relying on the ``=`` default.
    """

    field: str
    operator: FilterOperator
    value: FilterValue
    explicit: bool


class RelationshipPath(NamedTuple):
    """Ordered relation names leading to the entity that owns ``column``."""

    relations: tuple[str, ...]
    column: str
    separator: str = PATH_SEPARATOR

    @property
    def relation(self) -> str:
        return PATH_SEPARATOR.join(self.relations)

    @property
    def identifier(self) -> str:
        """The canonical field identifier (``a.b.col`` or ``a*col``)."""
        return f"{self.separator.join(self.relations)}{self.separator}{self.column}"

    def partial(self, depth: int) -> str:
        """Relation path up to and including hop ``depth`` (0-based)."""
        return PATH_SEPARATOR.join(self.relations[: depth + 1])

    def __str__(self) -> str:
        return self.identifier


def split_key(raw_key: str) -> FilterKey:
    """Split ``field:token`` once on the first colon."""
    if OPERATOR_SEPARATOR in raw_key:
        field, token = raw_key.split(OPERATOR_SEPARATOR, 1)
        return FilterKey(field, token)
    return FilterKey(raw_key, None)


def base_field(raw_key: str) -> str:
    """Return the key stripped of any ``:operator`` suffix."""
    return split_key(raw_key).field


def is_relationship_field(field: str) -> bool:
    return PATH_SEPARATOR in field or STAR_SEPARATOR in field


def parse_key(raw_key: str, raw_value: Any) -> ParsedKey:
    """Resolve a request parameter into field, operator and value.

    Raises:
        InvalidOperatorError: Unknown ``:token`` or legacy operator.
        InvalidValueError: A legacy ``{operator, value}`` mapping used with
            the modern ``field:token`` syntax.
    """
    field, token = split_key(raw_key)
    value = coerce_value(raw_value)

    if token is not None:
        operator = operator_from_token(token)
        if isinstance(value, LegacyOperatorValue):
            raise InvalidValueError(raw_key, raw_value, "a scalar or a list")
        return ParsedKey(field, operator, normalize_value(operator, value), True)

    if isinstance(value, LegacyOperatorValue):
        operator = resolve_operator(value.operator)
        return ParsedKey(
            field, operator, normalize_value(operator, coerce_value(value.value)), True
        )

    return ParsedKey(field, FilterOperator.EQ, value, False)


def normalize_value(operator: FilterOperator, value: FilterValue) -> FilterValue:
    """List operators take comma-separated strings as lists."""
    if operator in LIST_OPERATORS and isinstance(value, Scalar):
        return ValueList(tuple(split_list(value)))
    return value


def parse_relationship_key(field: str) -> RelationshipPath:
    """Split a relationship field into its relation path and column.

    ``a.b.c.col`` → ``(("a", "b", "c"), "col")``; ``a*col`` → ``(("a",), "col")``.

    Raises:
        InvalidRelationshipError: The field is not a well-formed relationship
            field.
    """
    has_dot = PATH_SEPARATOR in field
    has_star = STAR_SEPARATOR in field

    if has_dot and has_star:
        raise InvalidRelationshipError(
            field,
            reason=(
                f"The relationship field '{field}' mixes '.' and '*' separators; "
                "use exactly one."
            ),
        )

    if has_star:
        relation, column = field.split(STAR_SEPARATOR, 1)
        if not relation or not column or STAR_SEPARATOR in column:
            raise InvalidRelationshipError(
                field,
                reason=(
                    f"The relationship field '{field}' must have the form "
                    "'relation*column'."
                ),
            )
        return RelationshipPath((relation,), column, STAR_SEPARATOR)

    if not has_dot:
        raise InvalidRelationshipError(
            field, reason=f"The field '{field}' is not a relationship field."
        )

    parts = field.split(PATH_SEPARATOR)
    if any(not part for part in parts):
        raise InvalidRelationshipError(
            field, reason=f"The relationship field '{field}' has an empty segment."
        )
    *relations, column = parts
    return RelationshipPath(tuple(relations), column, PATH_SEPARATOR)


def shorthand_for(identifier: str) -> str:
    """Transport form of a relationship identifier (``posts.title`` → ``posts_title``)."""
    return identifier.replace(PATH_SEPARATOR, "_").replace(STAR_SEPARATOR, "_")
