"""Database connection and session management."""

from collections.abc import AsyncGenerator

from sqlalchemy import Table
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from showtally.config import settings

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    future=True,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI to provide database sessions.

    Usage:
        @app.get("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            # Use db here
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def upsert_for(db: AsyncSession, table: Table | type):
    """
    Build an INSERT that supports ON CONFLICT for the session's dialect.

    PostgreSQL is the production store; SQLite is accepted so the same
    statements can run against an in-memory database.
    """
    bind = db.bind
    if bind is not None and bind.dialect.name == "sqlite":
        return sqlite_insert(table)
    return pg_insert(table)
