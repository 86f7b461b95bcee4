"""
Sifter: request-scoped facade tying the handlers together.

Example::

    result = (
        Sifter.for_params(request.args)
        .filter_on(session, User)
        .allowed_filters("name", "status", "posts.title")
        .relationships("posts")
        .paginate()
        .get()
        .to_dict()
    )

Each stage turns its failures into ErrorList entries; ``get()`` always
produces an envelope, falling back to the error envelope when results cannot
be retrieved.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .config import DEFAULT_CONFIG
from .exceptions import ConfigurationError, FilterError
from .grouping import GroupByHandler
from .handler import FilterHandler
from .inspection import SQLAlchemyInspector
from .keys import parse_relationship_key
from .pagination import Page, Paginator
from .parameters import ParameterParser, StandardParameters
from .query import QueryBuilder
from .query_string import QueryStringBuilder, decode_query_string
from .relationships import RelationshipHandler
from .response import RequestContext, ResponseFormatter, dumps
from .where import WhereCondition, WhereConditionHandler, parse_where_conditions

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from sqlalchemy import Select
    from sqlalchemy.orm import Session

    from .config import SiftConfig
    from .ports import ISchemaInspector

logger = logging.getLogger(__name__)


class Sifter:
    """Filter, sort, paginate and format one request against one model."""

    parse_relationship_key = staticmethod(parse_relationship_key)

    def __init__(
        self,
        params: Mapping[str, Any],
        config: SiftConfig | None = None,
        *,
        inspector: ISchemaInspector | None = None,
    ) -> None:
        self._params: dict[str, Any] = dict(params)
        self._config = config or DEFAULT_CONFIG
        self._inspector = inspector or SQLAlchemyInspector()
        self._handler = FilterHandler(self._config, self._inspector)
        self._errors: list[str] = []

        standard = ParameterParser().parse(self._params, self._errors)
        self._context = RequestContext(
            params=self._params,
            standard=standard,
            errors=self._errors,
            payload_size=QueryStringBuilder().payload_size(self._params),
        )

        self._session: Session | None = None
        self._builder: QueryBuilder | None = None
        self._allowed: list[str] = []
        self._sortable: list[str] = []
        self._relationships: list[str] = []
        self._ignored: list[str] = []
        self._where: list[WhereCondition] = []
        self._ordering: list[tuple[str, str]] = []
        self._limit: int | None = None

        self._applied = False
        self._total: int | None = None
        self._page: Page | None = None
        self._results: list[Any] | None = None
        self._response: dict[str, Any] = {}

    @classmethod
    def for_params(
        cls, params: Mapping[str, Any], config: SiftConfig | None = None
    ) -> Sifter:
        return cls(params, config)

    @classmethod
    def for_query_string(cls, query: str, config: SiftConfig | None = None) -> Sifter:
        return cls(decode_query_string(query), config)

    # -- declaration ------------------------------------------------------------

    def filter_on(self, session: Session, model: type[Any]) -> Sifter:
        self._session = session
        self._builder = QueryBuilder(model)
        return self

    def allowed_filters(self, *names: str) -> Sifter:
        self._allowed.extend(names)
        return self

    def allowed_sorts(self, *names: str) -> Sifter:
        self._sortable.extend(names)
        return self

    def relationships(self, *names: str) -> Sifter:
        self._relationships.extend(names)
        return self

    def ignore_filters(self, names: Iterable[str]) -> Sifter:
        self._ignored.extend(names)
        return self

    def with_where_conditions(self, *conditions: Any) -> Sifter:
        try:
            self._where.extend(parse_where_conditions(conditions))
        except FilterError as exc:
            self._fail("Error setting where conditions", exc)
        return self

    def append(self, values: Mapping[str, Any]) -> Sifter:
        self._context.appends.update(values)
        return self

    def order_by(self, column: str, direction: str = "asc") -> Sifter:
        self._ordering.append((column, direction))
        return self

    def order_by_desc(self, column: str) -> Sifter:
        return self.order_by(column, "desc")

    def limit(self, limit: int) -> Sifter:
        self._limit = limit
        return self

    # -- execution --------------------------------------------------------------

    def apply(self) -> Select[Any]:
        """Apply every stage once and compute the total count.

        Stage failures are recorded, never raised. Calling again returns
        the already-built statement.
        """
        builder = self.builder
        if self._applied:
            return builder.statement
        self._applied = True

        standard = self._context.standard
        stages: list[tuple[str, Callable[[], Any]]] = [
            (
                "Error loading relationships",
                lambda: RelationshipHandler(self._inspector).load_relationships(
                    builder, self._relationships, standard.only, self._errors
                ),
            ),
            (
                "Error applying where conditions",
                lambda: WhereConditionHandler(self._handler.compiler).apply(
                    builder, self._where, self._errors
                ),
            ),
            (
                "Error applying filters",
                lambda: self._handler.apply_filters(
                    builder, self._params, self._allowed, self._ignored, self._errors
                ),
            ),
            ("Error applying sorting", self._apply_sorting),
            (
                "Error applying group by",
                lambda: GroupByHandler(self._handler.validator).apply(
                    builder, standard.group_by, self._errors
                ),
            ),
            (
                "Error applying select only",
                lambda: RelationshipHandler(self._inspector).select_only(
                    builder, standard.only, self._errors
                ),
            ),
            ("Error counting results", self._count),
        ]
        for context, stage in stages:
            try:
                stage()
            except Exception as exc:  # noqa: BLE001
                self._fail(context, exc)
        return builder.statement

    def paginate(self, per_page: int | None = None) -> Sifter:
        self.apply()
        paginator = Paginator(self._config.pagination)
        try:
            if paginator.enabled:
                self._page = paginator.paginate(
                    self._require_session(),
                    self.builder,
                    paginator.parse(self._params, per_page),
                    self._total,
                )
            else:
                self._results = self._fetch()
        except Exception as exc:  # noqa: BLE001
            self._fail("Error during pagination", exc)
            self._page = Page(
                per_page=self._config.pagination.default_per_page, current_page=1
            )
        return self

    def get(self) -> Sifter:
        formatter = ResponseFormatter(self._config)
        try:
            if self._page is not None:
                self._response = formatter.format(
                    self._page.items, self._context, page=self._page
                )
                return self
            if self._results is None:
                self.apply()
                if self._limit is not None:
                    self.builder.limit(self._limit)
                self._results = self._fetch()
            self._response = formatter.format(
                self._results, self._context, count=self._count_for_results()
            )
        except Exception as exc:  # noqa: BLE001
            self._fail("Error retrieving results", exc)
            self._response = formatter.format_error(self._context)
        return self

    def to_dict(self) -> dict[str, Any]:
        return self._response

    def to_json(self) -> str:
        return dumps(self._response)

    # -- accessors --------------------------------------------------------------

    @property
    def builder(self) -> QueryBuilder:
        if self._builder is None:
            raise ConfigurationError("filter_on() must be called before sifting.")
        return self._builder

    @property
    def errors(self) -> list[str]:
        return self._errors

    @property
    def total_count(self) -> int | None:
        return self._total

    @property
    def page(self) -> Page | None:
        return self._page

    @property
    def standard_parameters(self) -> StandardParameters:
        return self._context.standard

    # -- internals --------------------------------------------------------------

    def _apply_sorting(self) -> None:
        self._handler.apply_sorting(
            self.builder, self._params, self._sortable or self._allowed, self._errors
        )
        for column, direction in self._ordering:
            try:
                self._handler.sort(self.builder, column, direction)
            except FilterError as exc:
                self._fail("Error applying sorting", exc)

    def _count(self) -> None:
        self._total = self._require_session().scalar(self.builder.count_statement()) or 0

    def _count_for_results(self) -> int | None:
        if self._limit is None:
            return None
        return self._total

    def _fetch(self) -> list[Any]:
        return list(self._require_session().scalars(self.builder.statement).unique().all())

    def _require_session(self) -> Session:
        if self._session is None:
            raise ConfigurationError("filter_on() must be called before sifting.")
        return self._session

    def _fail(self, context: str, exc: Exception) -> None:
        message = exc.message if isinstance(exc, FilterError) else str(exc)
        self._errors.append(f"{context}: {message}")
        entity = self._builder.entity.__name__ if self._builder is not None else None
        if isinstance(exc, FilterError):
            logger.warning("%s: %s (model=%s)", context, message, entity)
        else:
            logger.error("%s: %s (model=%s)", context, message, entity, exc_info=True)
