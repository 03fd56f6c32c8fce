"""SQLAlchemy async database session factory."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from leadscore.config import Settings

from .models import Base


def create_engine(settings: Settings) -> AsyncEngine:
    url = settings.database_url
    kwargs: dict[str, Any] = {"echo": settings.app_debug}

    # SQLite runs on a single-connection pool; sizing only applies to servers
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )

    if "sslmode=" in url:
        import ssl

        from sqlalchemy.engine.url import make_url

        # asyncpg wants ``ssl`` in connect_args, not ``sslmode`` in the query
        parsed_url = make_url(url)
        query = dict(parsed_url.query)
        ssl_mode = query.pop("sslmode", "require")
        url = parsed_url.set(query=query).render_as_string(hide_password=False)
        if ssl_mode in ("require", "verify-full", "verify-ca"):
            kwargs["connect_args"] = {"ssl": ssl.create_default_context()}

    return create_async_engine(url, **kwargs)


def create_session_factory(
    settings: Settings, engine: AsyncEngine | None = None
) -> async_sessionmaker[AsyncSession]:
    engine = engine or create_engine(settings)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables. Development and tests only; production uses Alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
