"""AsyncEngine + session factory for PostgreSQL."""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from perp_indexer.db.models import Base


def create_db_engine(
    database_url: str,
    pool_size: int = 2,
    max_overflow: int = 0,
    pool_recycle: int = 1800,
    pool_timeout: int = 30,
) -> AsyncEngine:
    """Create async SQLAlchemy engine with asyncpg.

    Sized for one processor committing one event at a time: one writing
    connection plus one for checkpoint restore and ad hoc reads.
    """
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=pool_recycle,
        pool_timeout=pool_timeout,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create async session factory."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create entity tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
