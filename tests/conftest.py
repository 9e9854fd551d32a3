"""Pytest configuration for all tests."""

from datetime import datetime
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Generator

import pytest
import pytest_asyncio
from sqlalchemy import DateTime, Integer, String, Text, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from userstamp.core.config import get_settings
from userstamp.core.context import clear_current_stamper
from userstamp.core.exceptions import set_diagnostic_handler
from userstamp.infrastructure.persistence import ALWAYS_REWRITE, Stampable, Stamper


@pytest.fixture(autouse=True)
def _reset_userstamp_state() -> Generator[None, None, None]:
    """Start every test with default settings and no current stamper."""
    get_settings.cache_clear()
    clear_current_stamper()
    yield
    clear_current_stamper()
    set_diagnostic_handler(None)
    get_settings.cache_clear()


def build_models() -> SimpleNamespace:
    """Declare a fresh set of models on their own declarative base.

    - User: the stamper, with a soft-delete column
    - Post: default columns plus a deleter
    - Comment: default columns, no deleter
    - Document: explicit column names, an always-rewrite column, and
      associations that include soft-deleted users
    """

    class Base(DeclarativeBase):
        pass

    class User(Stamper, Base):
        __tablename__ = "users"

        id: Mapped[int] = mapped_column(Integer, primary_key=True)
        name: Mapped[str] = mapped_column(String(50), nullable=False)
        deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    class Post(Stampable, Base):
        __tablename__ = "posts"
        __userstamp__ = {"deleter_attribute": "deleter_id"}

        id: Mapped[int] = mapped_column(Integer, primary_key=True)
        title: Mapped[str] = mapped_column(String(100), nullable=False)
        creator_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
        updater_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
        deleter_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    class Comment(Stampable, Base):
        __tablename__ = "comments"

        id: Mapped[int] = mapped_column(Integer, primary_key=True)
        body: Mapped[str] = mapped_column(Text, nullable=False)
        creator_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
        updater_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    class Document(Stampable, Base):
        __tablename__ = "documents"
        __userstamp__ = {
            "creator_attribute": "created_by",
            "updater_attribute": "updated_by",
            "include_soft_deleted": True,
        }

        id: Mapped[int] = mapped_column(Integer, primary_key=True)
        payload: Mapped[str | None] = mapped_column(Text, nullable=True, info=ALWAYS_REWRITE)
        created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
        updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    return SimpleNamespace(Base=Base, User=User, Post=Post, Comment=Comment, Document=Document)


@pytest.fixture
def models() -> SimpleNamespace:
    """Fresh model classes for one test."""
    return build_models()


@pytest_asyncio.fixture
async def engine(models: SimpleNamespace) -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with the model tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine: AsyncEngine, models: SimpleNamespace) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session with users 7 (alice) and 9 (bob)."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        session.add_all([
            models.User(id=7, name="alice"),
            models.User(id=9, name="bob"),
        ])
        await session.commit()

        yield session
        await session.rollback()


@pytest.fixture
def sql_log(engine: AsyncEngine) -> Generator[list[tuple[str, Any]], None, None]:
    """Record (statement, parameters) for every statement sent to the database."""
    statements: list[tuple[str, Any]] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        statements.append((statement, parameters))

    event.listen(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    yield statements
    event.remove(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
