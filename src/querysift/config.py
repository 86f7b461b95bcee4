"""
Immutable configuration for the filtering pipeline.

``SiftConfig`` is passed into the facade and handlers at construction;
nothing reads module-level settings while a request is processed.

Example::

    config = SiftConfig.from_mapping(
        {
            "security": {"strict_column_checking": False},
            "pagination": {"default_per_page": 25},
        }
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_STANDARD_PARAMETERS: tuple[str, ...] = (
    "sort",
    "order",
    "page",
    "per_page",
    "only",
    "group_by",
    "meta_ignore",
    "meta_count_only",
    "only_meta",
    "abstract_search",
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SecurityConfig(_Frozen):
    """Validation strictness.

    Attributes:
        validate_all_filters: Reveal the allowed filters in
            ``FilterNotAllowedError`` messages.
        strict_column_checking: Confirm terminal columns exist on the
            mapped entity before compiling a predicate.
        strict_relationship_checking: Walk relation paths hop by hop and
            confirm every segment is a relationship.
    """

    validate_all_filters: bool = True
    strict_column_checking: bool = True
    strict_relationship_checking: bool = True


class PaginationConfig(_Frozen):
    enabled: bool = True
    default_per_page: int = Field(default=15, ge=1)
    max_per_page: int = Field(default=100, ge=1)
    page_name: str = "page"
    per_page_name: str = "per_page"

    @model_validator(mode="after")
    def _check_bounds(self) -> PaginationConfig:
        if self.default_per_page > self.max_per_page:
            raise ValueError("default_per_page must not exceed max_per_page")
        return self


class MetaConfig(_Frozen):
    enabled: bool = True
    include_execution_time: bool = True
    include_payload_size: bool = True
    include_filter_params: bool = True
    include_result_size: bool = True
    include_request_details: bool = True


class ResponseFormatConfig(_Frozen):
    success_message: str = "Resources retrieved successfully"
    partial_message: str = "There were errors processing some filters"
    error_message: str = "Error retrieving resources"
    wrap_data: bool = True
    data_key: str = "data"
    meta_key: str = "meta"
    success_key: str = "success"
    message_key: str = "message"
    errors_key: str = "errors"


class SiftConfig(_Frozen):
    """Top-level configuration."""

    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    meta: MetaConfig = Field(default_factory=MetaConfig)
    response_format: ResponseFormatConfig = Field(
        default_factory=ResponseFormatConfig
    )
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    standard_parameters: tuple[str, ...] = DEFAULT_STANDARD_PARAMETERS
    search_parameter: str = "abstract_search"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None = None) -> SiftConfig:
        """Validate a plain mapping (e.g. a loaded settings file).

        Raises:
            ConfigurationError: If the mapping does not describe a valid
                configuration.
        """
        try:
            return cls.model_validate(dict(data or {}))
        except PydanticValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    def with_security(self, **flags: bool) -> SiftConfig:
        """Return a copy with some security flags replaced."""
        return self.model_copy(
            update={"security": self.security.model_copy(update=flags)}
        )

    def is_standard_parameter(self, name: str) -> bool:
        return name in self.standard_parameters or name == self.search_parameter


DEFAULT_CONFIG = SiftConfig()
