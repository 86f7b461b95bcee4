"""Request-driven filtering, sorting and pagination for SQLAlchemy models."""

from __future__ import annotations

from .conditions import Condition, ConditionCompiler
from .config import (
    DEFAULT_CONFIG,
    MetaConfig,
    PaginationConfig,
    ResponseFormatConfig,
    SecurityConfig,
    SiftConfig,
)
from .exceptions import (
    ConfigurationError,
    FilterError,
    FilterNotAllowedError,
    InvalidColumnError,
    InvalidOperatorError,
    InvalidRelationshipError,
    InvalidValueError,
)
from .handler import FilterHandler, FilterResult
from .inspection import LiveSchemaInspector, SQLAlchemyInspector
from .keys import ParsedKey, RelationshipPath, parse_key, parse_relationship_key
from .operators import FilterOperator, resolve_operator
from .pagination import Page, Paginator
from .ports import IQueryBuilder, ISchemaInspector
from .query import QueryBuilder
from .query_string import QueryStringBuilder, decode_query_string
from .response import ResponseFormatter
from .sql_operators import OperatorRegistry, SQLAlchemyOperator
from .sifter import Sifter

__all__ = [
    "DEFAULT_CONFIG",
    "Condition",
    "ConditionCompiler",
    "ConfigurationError",
    "FilterError",
    "FilterHandler",
    "FilterNotAllowedError",
    "FilterOperator",
    "FilterResult",
    "IQueryBuilder",
    "ISchemaInspector",
    "InvalidColumnError",
    "InvalidOperatorError",
    "InvalidRelationshipError",
    "InvalidValueError",
    "LiveSchemaInspector",
    "OperatorRegistry",
    "MetaConfig",
    "Page",
    "PaginationConfig",
    "Paginator",
    "ParsedKey",
    "QueryBuilder",
    "QueryStringBuilder",
    "RelationshipPath",
    "ResponseFormatConfig",
    "ResponseFormatter",
    "SQLAlchemyInspector",
    "SQLAlchemyOperator",
    "SecurityConfig",
    "SiftConfig",
    "Sifter",
    "decode_query_string",
    "parse_key",
    "parse_relationship_key",
    "resolve_operator",
]
