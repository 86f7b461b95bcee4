"""
ResponseFormatter: the success/partial and error envelopes.

Rows are serialised from already-loaded ORM state only; unloaded columns
and relationships are skipped instead of triggering lazy loads, and an
object already on the current serialisation path is not revisited.
"""

from __future__ import annotations

import enum
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from .config import DEFAULT_CONFIG
from .parameters import StandardParameters

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .config import SiftConfig
    from .pagination import Page

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Per-request inputs to the envelope."""

    params: Mapping[str, Any] = field(default_factory=dict)
    standard: StandardParameters = field(default_factory=StandardParameters)
    errors: list[str] = field(default_factory=list)
    appends: dict[str, Any] = field(default_factory=dict)
    payload_size: int = 0
    started_at: float = field(default_factory=time.perf_counter)

    @property
    def processing_time(self) -> float:
        return round(time.perf_counter() - self.started_at, 4)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(data: Any) -> str:
    return json.dumps(data, default=_json_default)


def serialize(obj: Any) -> Any:
    """Convert an ORM instance (or list of them) into plain dicts."""
    if isinstance(obj, (list, tuple)):
        return [serialize(item) for item in obj]
    return _serialize_instance(obj, set())


def _serialize_instance(obj: Any, path: set[int]) -> Any:
    try:
        state = sa_inspect(obj)
    except NoInspectionAvailable:
        return obj
    mapper = state.mapper
    unloaded = state.unloaded
    data: dict[str, Any] = {}

    path.add(id(obj))
    try:
        for attr in mapper.column_attrs:
            if attr.key not in unloaded:
                data[attr.key] = state.dict.get(attr.key)
        for rel in mapper.relationships:
            if rel.key in unloaded or rel.key not in state.dict:
                continue
            value = state.dict[rel.key]
            if value is None:
                data[rel.key] = None
            elif rel.uselist:
                data[rel.key] = [
                    _serialize_instance(item, path)
                    for item in value
                    if id(item) not in path
                ]
            elif id(value) not in path:
                data[rel.key] = _serialize_instance(value, path)
    finally:
        path.discard(id(obj))
    return data


def remove_nested_key(data: dict[str, Any], dotted: str) -> None:
    *parents, last = dotted.split(".")
    node: Any = data
    for key in parents:
        node = node.get(key) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            return
    node.pop(last, None)


class ResponseFormatter:
    """Build response envelopes from results and a ``RequestContext``."""

    def __init__(self, config: SiftConfig | None = None) -> None:
        self._config = config or DEFAULT_CONFIG

    def format(
        self,
        rows: Iterable[Any],
        context: RequestContext,
        *,
        page: Page | None = None,
        count: int | None = None,
    ) -> dict[str, Any]:
        fmt = self._config.response_format
        data = serialize(list(rows))
        logger.debug("Formatting response with %d rows", len(data))
        errors = context.errors

        response: dict[str, Any] = {
            fmt.success_key: not errors,
            fmt.message_key: fmt.partial_message if errors else fmt.success_message,
        }
        if errors:
            response[fmt.errors_key] = list(errors)

        if self._config.meta.enabled:
            meta = self.meta(data, context, page=page, count=count)
            for key in context.standard.meta_ignore:
                remove_nested_key(meta, key)
            response[fmt.meta_key] = meta

        response.update(context.appends)

        if context.standard.only_meta:
            keep = (fmt.success_key, fmt.message_key, fmt.errors_key, fmt.meta_key)
            return {k: v for k, v in response.items() if k in keep}

        if fmt.wrap_data:
            response[fmt.data_key] = data
        else:
            response.update({str(index): row for index, row in enumerate(data)})
        return response

    def format_error(self, context: RequestContext) -> dict[str, Any]:
        fmt = self._config.response_format
        response: dict[str, Any] = {
            fmt.success_key: False,
            fmt.message_key: fmt.error_message,
            fmt.errors_key: list(context.errors),
            fmt.data_key: [],
        }
        if self._config.meta.enabled:
            meta = {
                "request_details": {
                    "processing_time": context.processing_time,
                    "payload_size": context.payload_size,
                    "filter_params": self.filter_params(context.params),
                }
            }
            for key in context.standard.meta_ignore:
                remove_nested_key(meta, key)
            response[fmt.meta_key] = meta
        return response

    def meta(
        self,
        data: list[Any],
        context: RequestContext,
        *,
        page: Page | None = None,
        count: int | None = None,
    ) -> dict[str, Any]:
        total = page.total if page is not None else (len(data) if count is None else count)
        if context.standard.meta_count_only:
            return {"count": total}

        flags = self._config.meta
        meta: dict[str, Any] = {"count": total}
        if page is not None:
            meta["pagination"] = page.to_meta()

        if flags.include_request_details:
            details: dict[str, Any] = {}
            if flags.include_execution_time:
                details["processing_time"] = context.processing_time
            if flags.include_payload_size:
                details["payload_size"] = context.payload_size
            if flags.include_filter_params:
                details["filter_params"] = self.filter_params(context.params)
            if details:
                meta["request_details"] = details

        if flags.include_result_size:
            meta["result_details"] = {"result_size": len(dumps(data).encode("utf-8"))}

        used = {
            name: context.params[name]
            for name in self._config.standard_parameters
            if name in context.params
        }
        if used:
            meta["standard_parameters"] = used
        if context.standard.group_by:
            meta["group_by"] = list(context.standard.group_by)
        return meta

    def filter_params(self, params: Mapping[str, Any]) -> dict[str, Any]:
        standard = set(self._config.standard_parameters)
        return {k: v for k, v in params.items() if k not in standard}
