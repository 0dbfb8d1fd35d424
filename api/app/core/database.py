"""Async database engine and session management.

One engine per process. Request handlers get a session from `get_db`, which
commits when the handler returns and rolls back on any exception, so every
multi-row mutation a handler performs lands atomically or not at all.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

# SQLite (tests, local dev) uses its own pool implementation without sizing knobs
_pool_options = {} if settings.database_url.startswith("sqlite") else {"pool_size": 20, "max_overflow": 10}

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
    **_pool_options,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session. Used as a FastAPI dependency."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
