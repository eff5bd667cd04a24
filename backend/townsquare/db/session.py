"""
Database session management.

Provides async session factory and dependency injection for FastAPI.
"""
from collections.abc import AsyncGenerator

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from townsquare.core.config import settings

logger = structlog.get_logger(__name__)


def _engine_kwargs(url: str) -> dict:
    """Pool settings only apply to server databases."""
    if url.startswith("sqlite"):
        return {"echo": settings.api_debug}
    return {
        "echo": settings.api_debug,
        "pool_pre_ping": True,  # Verify connections before using them
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_recycle": 1800,
        "pool_timeout": 20,
        "connect_args": {
            "server_settings": {
                "statement_timeout": "25000",
                "idle_in_transaction_session_timeout": "300000",
                "application_name": "townsquare_api",
            },
            "command_timeout": 25,
        },
    }


engine = create_async_engine(
    settings.database_url_computed,
    **_engine_kwargs(settings.database_url_computed),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides an async database session.

    Services commit their own units of work through ``atomic()``; anything
    left pending when the request finishes is committed here, and rolled back
    if the handler raised.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(
                "Database session error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


async def init_db() -> None:
    """Create any missing tables from the ORM metadata."""
    from townsquare.db.base import Base
    import townsquare.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")
