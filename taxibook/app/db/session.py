"""
Database engine and sessions.

One async engine per process. PostgreSQL (asyncpg) in deployments; any
SQLAlchemy async URL works, tests swap in sqlite+aiosqlite through get_db.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from taxibook.app.core.config import settings


def _engine_options() -> dict:
    options = {"echo": settings.db_echo, "pool_pre_ping": True}
    # SQLite pools do not take sizing arguments
    if not settings.database_url.startswith("sqlite"):
        options.update(pool_size=settings.db_pool_size, max_overflow=settings.db_max_overflow)
    return options


engine = create_async_engine(settings.database_url, **_engine_options())

# Services read attributes after commit, so objects must not expire on commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def create_tables():
    """Create every table registered on Base (models must be imported first)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """
    FastAPI dependency yielding one session per request.

    Anything left uncommitted when the request fails is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
