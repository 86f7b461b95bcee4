"""Tests for page parsing and page retrieval."""

from __future__ import annotations

from conftest import User
from sqlalchemy.orm import Session

from querysift.config import PaginationConfig
from querysift.pagination import Page, PageRequest, Paginator
from querysift.query import QueryBuilder


def test_parse_defaults() -> None:
    assert Paginator().parse({}) == PageRequest(page=1, per_page=15)


def test_parse_clamps_values() -> None:
    paginator = Paginator(PaginationConfig(default_per_page=10, max_per_page=50))
    assert paginator.parse({"page": "0", "per_page": "500"}) == PageRequest(1, 50)
    assert paginator.parse({"page": "-3", "per_page": "0"}) == PageRequest(1, 1)
    assert paginator.parse({"page": "abc", "per_page": "x"}) == PageRequest(1, 10)


def test_parse_uses_explicit_per_page_when_absent_from_params() -> None:
    assert Paginator().parse({"page": "2"}, per_page=3) == PageRequest(2, 3)
    assert Paginator().parse({"per_page": "4"}, per_page=3) == PageRequest(1, 4)


def test_custom_parameter_names() -> None:
    paginator = Paginator(PaginationConfig(page_name="p", per_page_name="size"))
    assert paginator.parse({"p": "3", "size": "5"}) == PageRequest(3, 5)


def test_paginate_reports_bounds(session: Session) -> None:
    builder = QueryBuilder(User).order_by("id")
    page = Paginator().paginate(session, builder, PageRequest(page=2, per_page=3))
    assert [u.id for u in page.items] == [4]
    assert page.to_meta() == {
        "current_page": 2,
        "per_page": 3,
        "total_pages": 2,
        "from": 4,
        "to": 4,
        "has_more_pages": False,
    }


def test_page_beyond_last_has_no_bounds(session: Session) -> None:
    builder = QueryBuilder(User)
    page = Paginator().paginate(session, builder, PageRequest(page=5, per_page=2))
    assert page.items == []
    assert page.total == 4
    assert page.first_item is None
    assert page.last_item is None
    assert page.last_page == 2


def test_empty_page_defaults() -> None:
    page = Page()
    assert page.last_page == 1
    assert not page.has_more_pages
