"""End-to-end tests for FilterHandler against an in-memory SQLite database."""

from __future__ import annotations

from typing import Any

import pytest
from conftest import User, compiled, ids
from sqlalchemy.orm import Session

from querysift import DEFAULT_CONFIG, FilterHandler, QueryBuilder, SQLAlchemyInspector


def test_equality_and_null_sentinel(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder,
        {"role": "editor", "verified_at": "null"},
        ["role", "verified_at"],
    )
    assert result.applied == 2
    assert result.errors == []
    assert ids(session, builder) == [2, 4]


def test_filter_not_in_allow_list(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(builder, {"email": "x@y.com"}, ["name"])
    assert result.applied == 0
    assert len(result.errors) == 1
    assert result.errors[0].startswith("The filter 'email' is not allowed.")
    assert builder.criterion is None


def test_allow_list_is_hidden_when_validation_details_are_off() -> None:
    handler = FilterHandler(DEFAULT_CONFIG.with_security(validate_all_filters=False))
    result = handler.apply_filters(QueryBuilder(User), {"email": "x"}, ["name"])
    assert result.errors == ["The filter 'email' is not allowed."]


def test_unknown_token_does_not_block_other_filters(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder, {"age:foo": "1", "status": "active"}, ["age", "status"]
    )
    assert result.applied == 1
    assert len(result.errors) == 1
    assert "The operator 'foo' is not valid." in result.errors[0]
    assert ids(session, builder) == [1, 2]


def test_invalid_relation_names_partial_path(handler: FilterHandler) -> None:
    result = handler.apply_filters(
        QueryBuilder(User), {"posts.nope.body": "x"}, ["posts.nope.body"]
    )
    assert len(result.errors) == 1
    message = result.errors[0]
    assert "The relationship 'posts.nope' does not exist" in message
    assert "Available relationships: comments, user" in message


def test_invalid_column_on_related_entity(handler: FilterHandler) -> None:
    result = handler.apply_filters(
        QueryBuilder(User), {"posts.titel": "x"}, ["posts.titel"]
    )
    assert len(result.errors) == 1
    assert "The column 'titel' does not exist. Did you mean: title?" in result.errors[0]


def test_disabled_column_checking_passes_unknown_column_through() -> None:
    handler = FilterHandler(DEFAULT_CONFIG.with_security(strict_column_checking=False))
    builder = QueryBuilder(User)
    result = handler.apply_filters(builder, {"nickname": "ace"}, ["nickname"])
    assert result.errors == []
    assert result.applied == 1
    assert "nickname = 'ace'" in compiled(builder.statement)


def test_in_and_not_in_lists(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    handler.apply_filters(builder, {"status:in": "active,pending"}, ["status"])
    assert ids(session, builder) == [1, 2, 4]

    builder = QueryBuilder(User)
    handler.apply_filters(builder, {"status:nin": "inactive,blocked"}, ["status"])
    assert ids(session, builder) == [1, 2, 4]


def test_empty_in_list_matches_nothing(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(builder, {"status:in": ""}, ["status"])
    assert result.errors == []
    assert ids(session, builder) == []


def test_between_with_wrong_arity_is_one_error(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder, {"age:between": "1,2,3", "role": "editor"}, ["age", "role"]
    )
    assert result.applied == 1
    assert len(result.errors) == 1
    assert "Invalid value for filter 'age'" in result.errors[0]
    assert ids(session, builder) == [2, 4]


def test_between_on_database(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    handler.apply_filters(builder, {"age:between": "20,35"}, ["age"])
    assert ids(session, builder) == [1, 2]


def test_nested_relationship_filter(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder, {"posts.comments.body:like": "help"}, ["posts.comments.body"]
    )
    assert result.errors == []
    assert ids(session, builder) == [1]


def test_star_relationship_filter(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    handler.apply_filters(builder, {"posts*title": "Cooking tips"}, ["posts*title"])
    assert ids(session, builder) == [2]


def test_scalar_relationship_filter(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    handler.apply_filters(builder, {"profile.city": "Berlin"}, ["profile.city"])
    assert ids(session, builder) == [2]


def test_each_relationship_filter_is_independent(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    handler.apply_filters(
        builder,
        {"posts.title:like": "SQL", "posts.status": "draft"},
        ["posts.title", "posts.status"],
    )
    # Alice has an SQL post and a (different) draft post.
    assert ids(session, builder) == [1]


def test_underscore_shorthand_maps_to_relationship(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(builder, {"posts_title:like": "sql"}, ["posts.title"])
    assert result.errors == []
    assert ids(session, builder) == [1, 3]


def test_standard_and_ignored_parameters_are_not_filters(
    handler: FilterHandler,
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder,
        {"sort": "name", "sort:eq": "x", "page": "2", "only": "id", "token": "abc"},
        ["name"],
        ignored=["token"],
    )
    assert result == (0, [])
    assert builder.criterion is None


def test_abstract_search_spans_direct_and_related_fields(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder, {"abstract_search": "o"}, ["name", "profile.bio"]
    )
    assert result.errors == []
    # Bob and Carol by name, Alice through her profile bio.
    assert ids(session, builder) == [1, 2, 3]
    sql = compiled(builder.statement)
    assert "users.name LIKE '%o%'" in sql
    assert "profiles.bio LIKE '%o%'" in sql
    assert " OR " in sql


def test_abstract_search_drops_unknown_fields(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder, {"abstract_search": "dav"}, ["name", "nickname", "posts.nope"]
    )
    assert result.errors == []
    assert ids(session, builder) == [4]


def test_abstract_search_without_allowed_filters_is_ignored(
    handler: FilterHandler,
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(builder, {"abstract_search": "x"}, [])
    assert result == (0, [])


def test_sort_descending(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    errors = handler.apply_sorting(builder, {"sort": "age", "order": "DESC"}, ["age"])
    assert errors == []
    assert [u.id for u in session.scalars(builder.statement)] == [3, 1, 2, 4]


def test_invalid_direction_falls_back_to_ascending(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    handler.apply_sorting(builder, {"sort": "name", "order": "sideways"}, ["name"])
    assert [u.id for u in session.scalars(builder.statement)] == [1, 2, 3, 4]


def test_sort_by_to_one_relationship(session: Session, handler: FilterHandler) -> None:
    builder = QueryBuilder(User)
    errors = handler.apply_sorting(
        builder, {"sort": "profile.city", "order": "desc"}, ["profile.city"]
    )
    assert errors == []
    assert [u.id for u in session.scalars(builder.statement)][:2] == [2, 1]
    assert "LEFT OUTER JOIN profiles" in compiled(builder.statement)


def test_sort_by_collection_is_rejected(handler: FilterHandler) -> None:
    errors = handler.apply_sorting(
        QueryBuilder(User), {"sort": "posts.title"}, ["posts.title"]
    )
    assert len(errors) == 1
    assert errors[0].startswith("Error applying sorting: Cannot sort by 'posts.title'")


def test_sort_outside_sortable_set(handler: FilterHandler) -> None:
    errors = handler.apply_sorting(QueryBuilder(User), {"sort": "email"}, ["name"])
    assert len(errors) == 1
    assert "The filter 'email' is not allowed." in errors[0]


def test_relation_name_as_terminal_column_is_rejected() -> None:
    handler = FilterHandler(DEFAULT_CONFIG.with_security(strict_column_checking=False))
    result = handler.apply_filters(
        QueryBuilder(User), {"posts.comments": "x"}, ["posts.comments"]
    )
    assert result.applied == 0
    assert len(result.errors) == 1
    assert "The column 'comments' does not exist." in result.errors[0]


@pytest.mark.filterwarnings("error::sqlalchemy.exc.SADeprecationWarning")
def test_abstract_search_casts_numeric_fields(
    session: Session, handler: FilterHandler
) -> None:
    builder = QueryBuilder(User)
    result = handler.apply_filters(builder, {"abstract_search": "3"}, ["name", "age"])
    assert result.errors == []
    assert ids(session, builder) == [1]
    assert "CAST(users.age AS VARCHAR) LIKE '%3%'" in compiled(builder.statement)


def test_abstract_search_keeps_other_fields_when_a_relation_is_unknown(
    session: Session,
) -> None:
    handler = FilterHandler(
        DEFAULT_CONFIG.with_security(strict_relationship_checking=False)
    )
    builder = QueryBuilder(User)
    result = handler.apply_filters(
        builder, {"abstract_search": "ali"}, ["name", "nope.title"]
    )
    assert result.errors == []
    assert result.applied == 1
    assert ids(session, builder) == [1]


class UnreachableInspector(SQLAlchemyInspector):
    def has_column(self, entity: Any, column: str) -> bool:
        raise ConnectionError("schema backend unreachable")


def test_unreachable_inspector_is_reported_per_parameter() -> None:
    handler = FilterHandler(DEFAULT_CONFIG, UnreachableInspector())
    result = handler.apply_filters(
        QueryBuilder(User), {"abstract_search": "a", "name": "Alice"}, ["name"]
    )
    assert result.applied == 0
    assert result.errors == [
        "Error applying filter 'abstract_search': schema backend unreachable",
        "Error applying filter 'name': schema backend unreachable",
    ]
