"""
Filter exception hierarchy.

Every error raised while interpreting request parameters derives from
``FilterError``. The orchestrator converts them into entries of the
request's error list, so each class builds a complete, human-readable
message and exposes ``to_dict()`` for API-friendly responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence


def _suggest(value: str, candidates: Sequence[str], n: int = 3) -> list[str]:
    return get_close_matches(value, list(candidates), n=n, cutoff=0.6)


def _join(items: Sequence[str]) -> str:
    return ", ".join(items)


class FilterError(Exception):
    """Base exception for all request-level filtering errors."""

    code = "FILTER_ERROR"
    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
        }


class FilterNotAllowedError(FilterError):
    """A request parameter is not in the caller's allow-list."""

    code = "FILTER_NOT_ALLOWED"

    def __init__(
        self,
        filter_name: str,
        allowed_filters: Sequence[str] | None = None,
        *,
        reveal_allowed: bool = True,
    ) -> None:
        self.filter_name = filter_name
        self.allowed_filters = list(allowed_filters or [])
        self.reveal_allowed = reveal_allowed

        message = f"The filter '{filter_name}' is not allowed."
        if self.allowed_filters and reveal_allowed:
            message += f" Allowed filters: {_join(self.allowed_filters)}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["filter"] = self.filter_name
        if self.reveal_allowed:
            data["allowed_filters"] = self.allowed_filters
        return data


class InvalidRelationshipError(FilterError):
    """
    A relation path segment does not name a relationship.

    ``relationship`` is the partial path up to and including the first
    invalid segment (``a.b`` for ``a.b.c.column`` when ``b`` is unknown),
    ``available`` lists the relation names valid at that level.
    """

    code = "INVALID_RELATIONSHIP"

    def __init__(
        self,
        relationship: str,
        available: Sequence[str] | None = None,
        *,
        reason: str | None = None,
    ) -> None:
        self.relationship = relationship
        self.available = sorted(available or [])
        self.reason = reason
        segment = relationship.rsplit(".", 1)[-1]
        self.suggestions = _suggest(segment, self.available)

        message = reason or (
            f"The relationship '{relationship}' does not exist or is not accessible."
        )
        if self.suggestions:
            message += f" Did you mean: {_join(self.suggestions)}?"
        if self.available:
            message += f" Available relationships: {_join(self.available)}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "relationship": self.relationship,
                "suggestions": self.suggestions,
                "available_relationships": self.available,
            }
        )
        return data


class InvalidColumnError(FilterError):
    """The terminal column does not exist on the target entity."""

    code = "INVALID_COLUMN"

    def __init__(
        self,
        column: str,
        available: Sequence[str] | None = None,
        *,
        entity: str | None = None,
    ) -> None:
        self.column = column
        self.entity = entity
        self.available = list(available or [])
        self.suggestions = _suggest(column, self.available)

        message = f"The column '{column}' does not exist."
        if self.suggestions:
            message += f" Did you mean: {_join(self.suggestions)}?"
        if self.available:
            message += f" Available columns: {_join(self.available)}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "column": self.column,
                "entity": self.entity,
                "suggestions": self.suggestions,
                "available_columns": self.available,
            }
        )
        return data


class InvalidOperatorError(FilterError):
    """Unknown operator token or an operator outside the canonical set."""

    code = "INVALID_OPERATOR"

    def __init__(
        self, operator: str, allowed_operators: Sequence[str] | None = None
    ) -> None:
        self.operator = operator
        self.allowed_operators = list(allowed_operators or [])
        self.suggestions = _suggest(operator, self.allowed_operators)

        message = f"The operator '{operator}' is not valid."
        if self.suggestions:
            message += f" Did you mean: {_join(self.suggestions)}?"
        if self.allowed_operators:
            message += f" Allowed operators: {_join(self.allowed_operators)}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "operator": self.operator,
                "suggestions": self.suggestions,
                "allowed_operators": self.allowed_operators,
            }
        )
        return data


class InvalidValueError(FilterError):
    """The value does not have the shape the operator requires."""

    code = "INVALID_VALUE"

    def __init__(self, filter_name: str, value: Any, expected: str) -> None:
        self.filter_name = filter_name
        self.value = value
        self.expected = expected
        super().__init__(
            f"Invalid value for filter '{filter_name}'. "
            f"Expected {expected}, got {value!r}."
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"filter": self.filter_name, "expected": self.expected})
        return data


class ConfigurationError(FilterError):
    """The filtering configuration itself is invalid."""

    code = "CONFIGURATION_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(f"Filter configuration error: {message}")
