"""Database engine, session factory and FastAPI session dependency.

The engine is a process-wide resource created in the application lifespan
and released at shutdown. Request handlers receive sessions through
``get_db`` rather than importing a global engine.
"""

from typing import Any, AsyncGenerator

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Declarative base for all patientstore tables."""


def _is_sqlite_memory(database_url: str) -> bool:
    """True for SQLite URLs without a file (``:memory:`` or empty path)."""
    url = make_url(database_url)
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def create_db_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create async database engine.

    Handles SQLite and PostgreSQL with appropriate settings.
    """
    if database_url.startswith("sqlite"):
        engine_kwargs: dict[str, Any] = {
            "echo": echo,
            "connect_args": {"check_same_thread": False},
        }
        if _is_sqlite_memory(database_url):
            # An in-memory database exists only inside its one connection
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs = {
            "echo": echo,
            "pool_pre_ping": True,
            "pool_size": 5,
            "max_overflow": 10,
        }

    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for dependency injection."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables known to the metadata (dev/test helper)."""
    # Import models so their tables are registered on Base.metadata
    import patientstore.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session bound to the application's engine.

    Transactions are owned by the service layer; any transaction still open
    when the request ends is rolled back by ``close()``.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        yield session
