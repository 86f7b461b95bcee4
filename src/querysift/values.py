"""
Request value shapes.

Request values arrive untyped: a scalar string, a list (repeated keys or
``key[]=``), or, in the legacy syntax, a ``{"operator": ..., "value": ...}``
mapping. ``coerce_value`` resolves the shape once so compilation only deals
with the three variants below.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

NULL_SENTINELS: frozenset[str] = frozenset({"null", "NULL"})
NOT_NULL_SENTINELS: frozenset[str] = frozenset({"!null", "!NULL"})


@dataclass(frozen=True)
class Scalar:
    value: Any

    @property
    def is_null(self) -> bool:
        return isinstance(self.value, str) and self.value in NULL_SENTINELS

    @property
    def is_not_null(self) -> bool:
        return isinstance(self.value, str) and self.value in NOT_NULL_SENTINELS


@dataclass(frozen=True)
class ValueList:
    values: tuple[Any, ...]


@dataclass(frozen=True)
class LegacyOperatorValue:
    operator: str
    value: Any


FilterValue = Scalar | ValueList | LegacyOperatorValue


def is_legacy_mapping(raw: Any) -> bool:
    """Return True for the two-key ``{"operator", "value"}`` legacy shape."""
    return (
        isinstance(raw, Mapping)
        and "operator" in raw
        and "value" in raw
        and raw["operator"] is not None
        and raw["value"] is not None
    )


def coerce_value(raw: Any) -> FilterValue:
    """Resolve a raw request value into a ``FilterValue`` variant."""
    if isinstance(raw, (Scalar, ValueList, LegacyOperatorValue)):
        return raw
    if is_legacy_mapping(raw):
        return LegacyOperatorValue(str(raw["operator"]), raw["value"])
    if isinstance(raw, Mapping):
        # Indexed mappings (``tags[0]=a&tags[1]=b``) behave like lists.
        return ValueList(tuple(raw.values()))
    if isinstance(raw, (list, tuple, set, frozenset)):
        return ValueList(tuple(raw))
    return Scalar(raw)


def split_list(value: Any) -> list[Any]:
    """Coerce a value into a list, splitting comma-separated strings.

    ``"a,b"`` → ``["a", "b"]``; ``["a", "b"]`` stays as-is; ``""`` → ``[]``;
    any other scalar becomes a one-element list.
    """
    if isinstance(value, ValueList):
        return list(value.values)
    if isinstance(value, Scalar):
        value = value.value
    if value is None:
        return []
    if isinstance(value, str):
        if value == "":
            return []
        return [part.strip() for part in value.split(",")]
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def unwrap(value: FilterValue | Any) -> Any:
    """Return the plain Python value carried by a variant."""
    if isinstance(value, Scalar):
        return value.value
    if isinstance(value, ValueList):
        return list(value.values)
    if isinstance(value, LegacyOperatorValue):
        return value.value
    return value
