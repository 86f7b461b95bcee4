"""Tests for envelope formatting and row serialisation."""

from __future__ import annotations

import json

from conftest import Post, User
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from querysift import SiftConfig
from querysift.pagination import Page
from querysift.parameters import ParameterParser, StandardParameters
from querysift.response import RequestContext, ResponseFormatter, remove_nested_key, serialize


def _rows(session: Session) -> list[User]:
    stmt = select(User).options(selectinload(User.posts)).order_by(User.id)
    return list(session.scalars(stmt))


def test_serialize_skips_unloaded_relationships(session: Session) -> None:
    users = list(session.scalars(select(User).order_by(User.id)))
    data = serialize(users)
    assert data[0]["name"] == "Alice"
    assert "posts" not in data[0]
    assert "profile" not in data[0]


def test_serialize_follows_loaded_relationships_without_cycles(
    session: Session,
) -> None:
    stmt = (
        select(User)
        .options(selectinload(User.posts).selectinload(Post.user))
        .order_by(User.id)
    )
    data = serialize(list(session.scalars(stmt)))
    titles = sorted(post["title"] for post in data[0]["posts"])
    assert titles == ["Advanced Python", "Intro to SQL"]
    # The back-reference to the owning user is on the path and is not revisited.
    assert all("user" not in post for post in data[0]["posts"])


def test_success_envelope(session: Session) -> None:
    context = RequestContext(params={"role": "admin", "sort": "name"}, payload_size=22)
    response = ResponseFormatter().format(_rows(session), context)
    assert response["success"] is True
    assert response["message"] == "Resources retrieved successfully"
    assert "errors" not in response
    assert len(response["data"]) == 4
    meta = response["meta"]
    assert meta["count"] == 4
    assert meta["request_details"]["payload_size"] == 22
    assert meta["request_details"]["filter_params"] == {"role": "admin"}
    assert isinstance(meta["request_details"]["processing_time"], float)
    assert meta["standard_parameters"] == {"sort": "name"}
    assert meta["result_details"]["result_size"] > 0
    assert "pagination" not in meta
    json.dumps(response, default=str)


def test_partial_envelope_lists_errors(session: Session) -> None:
    context = RequestContext(errors=["The filter 'x' is not allowed."])
    response = ResponseFormatter().format([], context)
    assert response["success"] is False
    assert response["message"] == "There were errors processing some filters"
    assert response["errors"] == ["The filter 'x' is not allowed."]


def test_pagination_meta(session: Session) -> None:
    page = Page(items=_rows(session)[:2], total=4, per_page=2, current_page=1)
    response = ResponseFormatter().format(page.items, RequestContext(), page=page)
    assert response["meta"]["count"] == 4
    assert response["meta"]["pagination"]["has_more_pages"] is True
    assert response["meta"]["pagination"]["to"] == 2


def test_meta_count_only_and_meta_ignore(session: Session) -> None:
    params = {"meta_count_only": "", "meta_ignore": "count"}
    standard = ParameterParser().parse(params)
    response = ResponseFormatter().format(
        _rows(session), RequestContext(params=params, standard=standard)
    )
    assert response["meta"] == {}

    params = {"meta_ignore": "request_details.filter_params,result_details"}
    standard = ParameterParser().parse(params)
    meta = ResponseFormatter().format(
        [], RequestContext(params=params, standard=standard)
    )["meta"]
    assert "filter_params" not in meta["request_details"]
    assert "result_details" not in meta


def test_only_meta_drops_data_and_appends(session: Session) -> None:
    context = RequestContext(
        standard=StandardParameters(only_meta=True), appends={"version": 2}
    )
    response = ResponseFormatter().format(_rows(session), context)
    assert set(response) == {"success", "message", "meta"}


def test_appends_and_unwrapped_data(session: Session) -> None:
    config = SiftConfig.from_mapping({"response_format": {"wrap_data": False}})
    context = RequestContext(appends={"version": 2})
    response = ResponseFormatter(config).format(_rows(session)[:2], context)
    assert response["version"] == 2
    assert "data" not in response
    assert response["0"]["name"] == "Alice"
    assert response["1"]["name"] == "Bob"


def test_meta_disabled(session: Session) -> None:
    config = SiftConfig.from_mapping({"meta": {"enabled": False}})
    response = ResponseFormatter(config).format([], RequestContext())
    assert "meta" not in response


def test_error_envelope() -> None:
    context = RequestContext(
        params={"name": "x", "page": "1"},
        errors=["Error retrieving results: boom"],
    )
    response = ResponseFormatter().format_error(context)
    assert response["success"] is False
    assert response["message"] == "Error retrieving resources"
    assert response["data"] == []
    assert response["meta"]["request_details"]["filter_params"] == {"name": "x"}


def test_remove_nested_key_ignores_missing_paths() -> None:
    data = {"a": {"b": 1, "c": 2}, "d": 3}
    remove_nested_key(data, "a.b")
    remove_nested_key(data, "x.y")
    remove_nested_key(data, "d.e")
    assert data == {"a": {"c": 2}, "d": 3}
