"""Paginator: page/per_page parsing and page retrieval."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple

from .config import PaginationConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Session

    from .query import QueryBuilder


class PageRequest(NamedTuple):
    page: int
    per_page: int


@dataclass(frozen=True)
class Page:
    """One page of results plus the numbers the response meta reports."""

    items: list[Any] = field(default_factory=list)
    total: int = 0
    per_page: int = 0
    current_page: int = 1

    @property
    def last_page(self) -> int:
        if self.per_page <= 0:
            return 1
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def first_item(self) -> int | None:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self) -> int | None:
        first = self.first_item
        return None if first is None else first + len(self.items) - 1

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    def to_meta(self) -> dict[str, Any]:
        return {
            "current_page": self.current_page,
            "per_page": self.per_page,
            "total_pages": self.last_page,
            "from": self.first_item,
            "to": self.last_item,
            "has_more_pages": self.has_more_pages,
        }


class Paginator:
    """Parse page parameters and fetch one page from a ``QueryBuilder``."""

    def __init__(self, config: PaginationConfig | None = None) -> None:
        self._config = config or PaginationConfig()

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def parse(
        self, params: Mapping[str, Any], per_page: int | None = None
    ) -> PageRequest:
        page = self._as_int(params.get(self._config.page_name), 1)
        requested = params.get(self._config.per_page_name)
        if requested is None:
            requested = per_page
        size = self._as_int(requested, self._config.default_per_page)
        return PageRequest(
            page=max(1, page),
            per_page=min(self._config.max_per_page, max(1, size)),
        )

    def paginate(
        self,
        session: Session,
        builder: QueryBuilder,
        request: PageRequest,
        total: int | None = None,
    ) -> Page:
        if total is None:
            total = session.scalar(builder.count_statement()) or 0
        builder.for_page(request.page, request.per_page)
        items = list(session.scalars(builder.statement).unique().all())
        return Page(
            items=items,
            total=total,
            per_page=request.per_page,
            current_page=request.page,
        )

    @staticmethod
    def _as_int(value: Any, default: int) -> int:
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
