from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from typing import Any

import pytest
from sqlalchemy import DateTime, ForeignKey, Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship

from querysift import DEFAULT_CONFIG, FilterHandler, QueryBuilder, SiftConfig


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50))
    email: Mapped[str] = mapped_column(String(100))
    role: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20))
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    posts: Mapped[list[Post]] = relationship(back_populates="user")
    profile: Mapped[Profile | None] = relationship(back_populates="user", uselist=False)


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    bio: Mapped[str | None] = mapped_column(String(200), nullable=True)
    city: Mapped[str] = mapped_column(String(50))

    user: Mapped[User] = relationship(back_populates="profile")


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    title: Mapped[str] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20))

    user: Mapped[User] = relationship(back_populates="posts")
    comments: Mapped[list[Comment]] = relationship(back_populates="post")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id"))
    body: Mapped[str] = mapped_column(String(200))

    post: Mapped[Post] = relationship(back_populates="comments")


def seed(session: Session) -> None:
    verified = datetime(2024, 1, 15, 12, 0, 0)
    alice = User(
        id=1, name="Alice", email="alice@example.com", role="admin",
        status="active", age=30, verified_at=verified,
    )
    bob = User(
        id=2, name="Bob", email="bob@example.com", role="editor",
        status="active", age=25,
    )
    carol = User(
        id=3, name="Carol", email="carol@example.org", role="viewer",
        status="inactive", age=41, verified_at=verified,
    )
    dave = User(
        id=4, name="Dave", email="dave@example.org", role="editor",
        status="pending",
    )
    session.add_all([alice, bob, carol, dave])
    session.add_all(
        [
            Profile(id=1, user_id=1, bio="Loves SQL", city="Athens"),
            Profile(id=2, user_id=2, bio=None, city="Berlin"),
        ]
    )
    session.add_all(
        [
            Post(id=1, user_id=1, title="Intro to SQL", status="published"),
            Post(id=2, user_id=1, title="Advanced Python", status="draft"),
            Post(id=3, user_id=2, title="Cooking tips", status="published"),
            Post(id=4, user_id=3, title="SQL joins explained", status="published"),
        ]
    )
    session.add_all(
        [
            Comment(id=1, post_id=1, body="Great read"),
            Comment(id=2, post_id=1, body="Very helpful"),
            Comment(id=3, post_id=3, body="Yummy"),
            Comment(id=4, post_id=4, body="Needs more examples"),
        ]
    )
    session.commit()


@pytest.fixture
def session() -> Iterator[Session]:
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine, expire_on_commit=False) as session:
        seed(session)
        session.expunge_all()
        yield session
    engine.dispose()


@pytest.fixture
def config() -> SiftConfig:
    return DEFAULT_CONFIG


@pytest.fixture
def handler(config: SiftConfig) -> FilterHandler:
    return FilterHandler(config)


@pytest.fixture
def builder() -> QueryBuilder:
    return QueryBuilder(User)


def compiled(stmt: Any) -> str:
    """Render a statement or criterion with inlined literals."""
    return str(stmt.compile(compile_kwargs={"literal_binds": True}))


def ids(session: Session, builder: QueryBuilder) -> list[int]:
    return sorted(row.id for row in session.scalars(builder.statement).unique())
